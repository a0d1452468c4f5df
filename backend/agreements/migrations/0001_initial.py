# backend/agreements/migrations/0001_initial.py
import uuid

import agreements.models
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AgreementTemplate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("type", models.CharField(choices=[("rent", "Rent"), ("sale", "Sale"), ("bilateral", "Bilateral"), ("trilateral", "Trilateral"), ("agency", "Agency"), ("transfer_act", "Transfer act")], max_length=20)),
                ("content", models.TextField()),
                ("structure", models.JSONField(blank=True, null=True)),
                ("description", models.TextField(blank=True)),
                ("is_active", models.BooleanField(default=True)),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="agreement_templates", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Property",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("property_number", models.CharField(blank=True, db_index=True, max_length=50)),
                ("property_name", models.CharField(blank=True, max_length=255)),
                ("complex_name", models.CharField(blank=True, max_length=255)),
                ("address", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["property_number", "id"],
                "verbose_name_plural": "Properties",
            },
        ),
        migrations.CreateModel(
            name="Agreement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("agreement_number", models.CharField(max_length=64, unique=True)),
                ("type", models.CharField(choices=[("rent", "Rent"), ("sale", "Sale"), ("bilateral", "Bilateral"), ("trilateral", "Trilateral"), ("agency", "Agency"), ("transfer_act", "Transfer act")], max_length=20)),
                ("content", models.TextField(blank=True)),
                ("structure", models.JSONField(blank=True, null=True)),
                ("status", models.CharField(choices=[("draft", "Draft"), ("pending_signatures", "Pending signatures"), ("signed", "Signed"), ("active", "Active"), ("expired", "Expired"), ("cancelled", "Cancelled")], db_index=True, default="draft", max_length=20)),
                ("description", models.TextField(blank=True)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("date_from", models.DateField(blank=True, null=True)),
                ("date_to", models.DateField(blank=True, null=True)),
                ("public_link", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("verify_link", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("rent_amount_monthly", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("rent_amount_total", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("deposit_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("utilities_included", models.TextField(blank=True)),
                ("bank_name", models.CharField(blank=True, max_length=255)),
                ("bank_account_name", models.CharField(blank=True, max_length=255)),
                ("bank_account_number", models.CharField(blank=True, max_length=255)),
                ("upon_signed_pay", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("upon_checkin_pay", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("upon_checkout_pay", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("pdf_file", models.FileField(blank=True, null=True, upload_to="agreements-pdf/")),
                ("pdf_generated_at", models.DateTimeField(blank=True, null=True)),
                ("qr_code_base64", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="agreements_created", to=settings.AUTH_USER_MODEL)),
                ("property", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="agreements", to="agreements.property")),
                ("template", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="agreements", to="agreements.agreementtemplate")),
            ],
            options={
                "ordering": ["-created_at"],
                "permissions": [("manage_templates", "Can manage agreement templates"), ("manage_signatures", "Can manage agreement signatures")],
            },
        ),
        migrations.CreateModel(
            name="AgreementParty",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(blank=True, max_length=50)),
                ("is_company", models.BooleanField(default=False)),
                ("individual_name", models.CharField(blank=True, max_length=255)),
                ("individual_country", models.CharField(blank=True, max_length=100)),
                ("individual_passport", models.CharField(blank=True, max_length=100)),
                ("company_name", models.CharField(blank=True, max_length=255)),
                ("company_address", models.TextField(blank=True)),
                ("company_tax_id", models.CharField(blank=True, max_length=100)),
                ("director_name", models.CharField(blank=True, max_length=255)),
                ("director_passport", models.CharField(blank=True, max_length=100)),
                ("director_country", models.CharField(blank=True, max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("agreement", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="parties", to="agreements.agreement")),
            ],
            options={
                "ordering": ["id"],
                "verbose_name_plural": "Agreement parties",
            },
        ),
        migrations.CreateModel(
            name="AgreementPartyDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("document", models.FileField(blank=True, null=True, upload_to="party-documents/")),
                ("document_base64", models.TextField(blank=True)),
                ("document_type", models.CharField(default="passport", max_length=30)),
                ("file_size", models.PositiveIntegerField(default=0)),
                ("mime_type", models.CharField(blank=True, max_length=100)),
                ("uploaded_at", models.DateTimeField(auto_now_add=True)),
                ("party", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="documents", to="agreements.agreementparty")),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="AgreementLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("created", "Created"), ("updated", "Updated"), ("deleted", "Deleted"), ("signed", "Signed"), ("signature_added", "Signature added"), ("signature_updated", "Signature updated"), ("signature_deleted", "Signature deleted"), ("link_regenerated", "Signature link regenerated"), ("documents_uploaded", "Documents uploaded"), ("ai_edit", "AI edit applied")], max_length=30)),
                ("description", models.TextField(blank=True)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("agreement", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="logs", to="agreements.agreement")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="AgreementAIEditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("conversation_id", models.CharField(db_index=True, max_length=100)),
                ("prompt", models.TextField()),
                ("description", models.TextField(blank=True)),
                ("changes_summary", models.JSONField(blank=True, default=dict)),
                ("structure_before", models.JSONField(blank=True, null=True)),
                ("structure_after", models.JSONField(blank=True, null=True)),
                ("html_before", models.TextField(blank=True)),
                ("html_after", models.TextField(blank=True)),
                ("database_updates", models.JSONField(blank=True, default=dict)),
                ("ai_response", models.TextField(blank=True)),
                ("was_applied", models.BooleanField(default=False)),
                ("applied_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("agreement", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="ai_edits", to="agreements.agreement")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Agreement AI edit",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="AgreementPrintToken",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("token", models.CharField(default=agreements.models._new_print_token, max_length=64, unique=True)),
                ("expires_at", models.DateTimeField()),
                ("used_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("agreement", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="print_tokens", to="agreements.agreement")),
            ],
        ),
        migrations.CreateModel(
            name="AgreementSignature",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("signer_name", models.CharField(max_length=255)),
                ("signer_role", models.CharField(max_length=50)),
                ("position", models.PositiveIntegerField(default=0)),
                ("signature_link", models.UUIDField(default=uuid.uuid4, unique=True)),
                ("is_signed", models.BooleanField(default=False)),
                ("signature_data", models.TextField(blank=True)),
                ("signed_at", models.DateTimeField(blank=True, null=True)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
                ("first_visit_at", models.DateTimeField(blank=True, null=True)),
                ("device_type", models.CharField(blank=True, choices=[("desktop", "Desktop"), ("mobile", "Mobile"), ("tablet", "Tablet")], max_length=20)),
                ("browser", models.CharField(blank=True, max_length=100)),
                ("os", models.CharField(blank=True, max_length=100)),
                ("agreement_view_duration", models.PositiveIntegerField(default=0)),
                ("signature_clear_count", models.PositiveIntegerField(default=0)),
                ("total_session_duration", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("agreement", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="signatures", to="agreements.agreement")),
            ],
            options={
                "ordering": ["position", "id"],
                "indexes": [models.Index(fields=["agreement", "is_signed"], name="agr_sig_agreement_signed_idx")],
                "unique_together": {("agreement", "signer_role")},
            },
        ),
    ]
