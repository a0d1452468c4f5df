# core/celery_app.py

from celery import Celery
import os

# Set the default Django settings module for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")

app = Celery("core")

# CELERY_* keys in settings (broker, result backend, eager mode in tests)
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up agreements.tasks and financial_documents.tasks
app.autodiscover_tasks()

app.conf.task_serializer = "json"
app.conf.result_serializer = "json"
app.conf.accept_content = ["json"]
