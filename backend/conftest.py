# backend/conftest.py
from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth.models import Permission
from rest_framework.test import APIClient

from agreements.models import AgreementTemplate, AgreementType
from agreements.services import lifecycle

TEMPLATE_STRUCTURE = {
    "title": "LEASE AGREEMENT",
    "nodes": [
        {
            "type": "section",
            "title": "1. PARTIES",
            "children": [
                {"type": "subsection", "number": "1.1", "content": "Lessor: {{lessor_name}}"},
                {"type": "subsection", "number": "1.2", "content": "Tenant: {{tenant_name}}, passport {{tenant_passport}}"},
            ],
        },
        {"type": "paragraph", "content": "Monthly rent {{rent_amount_monthly}}, total {{rent_amount_total}}."},
        {"type": "bulletList", "items": ["Deposit {{deposit_amount}}", "Unknown {{not_a_variable}}"]},
    ],
}


@pytest.fixture
def user_factory(django_user_model):
    def make(email="staff@example.com", perms=(), **extra):
        user = django_user_model.objects.create_user(email=email, password="pass12345", **extra)
        for code in perms:
            app_label, codename = code.split(".", 1)
            user.user_permissions.add(
                Permission.objects.get(content_type__app_label=app_label, codename=codename)
            )
        return user
    return make


@pytest.fixture
def admin_user(user_factory):
    return user_factory(email="admin@example.com", is_staff=True, is_superuser=True)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def no_pdf(mocker):
    """Stub the headless browser for both document families."""
    agreements_printer = mocker.patch("agreements.services.pdf.print_url_to_pdf", return_value=b"%PDF-1.4 test")
    documents_printer = mocker.patch("financial_documents.services.pdf.print_url_to_pdf", return_value=b"%PDF-1.4 test")
    return agreements_printer, documents_printer


@pytest.fixture
def template(db):
    return AgreementTemplate.objects.create(
        name="Standard lease",
        type=AgreementType.RENT,
        content="<p>Lease {{agreement_number}} between {{lessor_name}} and {{tenant_name}} in {{city}}</p>",
        structure=TEMPLATE_STRUCTURE,
    )


@pytest.fixture
def agreement_factory(template, admin_user, no_pdf):
    def make(parties=None, **data):
        if parties is None:
            parties = [
                {"role": "lessor", "individual_name": "Anna Lessor", "individual_country": "Thailand"},
                {"role": "tenant", "individual_name": "Tom Tenant", "individual_passport": "P1234567"},
            ]
        values = {
            "city": "Phuket",
            "date_from": date(2024, 1, 1),
            "date_to": date(2024, 3, 15),
            "rent_amount_monthly": Decimal("1000"),
            "deposit_amount": Decimal("2000"),
        }
        values.update(data)
        return lifecycle.create_agreement(template=template, data=values, parties=parties, user=admin_user)
    return make


@pytest.fixture
def agreement(agreement_factory):
    return agreement_factory()
