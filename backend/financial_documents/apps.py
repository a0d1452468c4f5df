# backend/financial_documents/apps.py
from django.apps import AppConfig


class FinancialDocumentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "financial_documents"
    verbose_name = "Financial documents"
