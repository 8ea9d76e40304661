import decimal
import uuid

import django.contrib.auth.validators
import django.db.models.deletion
import django.db.models.expressions
import django.utils.timezone
import invoicing.managers
import invoicing.models.workspace
from django.conf import settings
from django.db import migrations, models

CURRENCY_CHOICES = [
    ("AED", "AED"), ("AUD", "AUD"), ("BHD", "BHD"), ("BRL", "BRL"), ("CAD", "CAD"),
    ("CHF", "CHF"), ("CNY", "CNY"), ("DKK", "DKK"), ("EUR", "EUR"), ("GBP", "GBP"),
    ("HKD", "HKD"), ("INR", "INR"), ("JPY", "JPY"), ("KRW", "KRW"), ("KWD", "KWD"),
    ("MXN", "MXN"), ("NOK", "NOK"), ("NZD", "NZD"), ("OMR", "OMR"), ("SEK", "SEK"),
    ("SGD", "SGD"), ("USD", "USD"), ("ZAR", "ZAR"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "abstract": False,
            },
            managers=[
                ("objects", invoicing.managers.WorkspaceUserManager()),
            ],
        ),
        migrations.CreateModel(
            name="Workspace",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("default_currency", models.CharField(choices=CURRENCY_CHOICES, default=invoicing.models.workspace._default_currency, max_length=3)),
                ("company_name", models.CharField(blank=True, max_length=200)),
                ("company_email", models.EmailField(blank=True, max_length=254)),
                ("company_address", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="owned_workspaces", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.AddField(
            model_name="user",
            name="default_workspace",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="default_users", to="invoicing.workspace"),
        ),
        migrations.AddIndex(
            model_name="user",
            index=models.Index(fields=["default_workspace"], name="invoicing_u_default_7c1e0d_idx"),
        ),
        migrations.CreateModel(
            name="WorkspaceMembership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(choices=[("owner", "Owner"), ("admin", "Admin"), ("member", "Member"), ("viewer", "Viewer")], default="viewer", max_length=20)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to=settings.AUTH_USER_MODEL)),
                ("workspace", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to="invoicing.workspace")),
            ],
            options={
                "indexes": [models.Index(fields=["workspace", "user"], name="invoicing_w_workspa_3b9f21_idx")],
                "constraints": [models.UniqueConstraint(fields=("user", "workspace"), name="uq_user_workspace_membership")],
            },
        ),
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("email", models.EmailField(max_length=254)),
                ("phone", models.CharField(blank=True, max_length=32)),
                ("address", models.TextField(blank=True)),
                ("company", models.CharField(blank=True, max_length=200)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("INACTIVE", "Inactive"), ("ARCHIVED", "Archived")], default="ACTIVE", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("workspace", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="clients", to="invoicing.workspace")),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["workspace", "name"], name="invoicing_c_workspa_5d2a10_idx"),
                    models.Index(fields=["workspace", "status"], name="invoicing_c_workspa_8e4b37_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=64)),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("issue_date", models.DateField()),
                ("due_date", models.DateField()),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, max_length=3)),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("SENT", "Sent"), ("VIEWED", "Viewed"), ("PAID", "Paid"), ("OVERDUE", "Overdue"), ("CANCELLED", "Cancelled"), ("REFUNDED", "Refunded")], default="DRAFT", max_length=10)),
                ("subtotal", models.DecimalField(decimal_places=3, default=decimal.Decimal("0"), max_digits=18)),
                ("tax_amount", models.DecimalField(decimal_places=3, default=decimal.Decimal("0"), max_digits=18)),
                ("discount_amount", models.DecimalField(decimal_places=3, default=decimal.Decimal("0"), max_digits=18)),
                ("total", models.DecimalField(decimal_places=3, default=decimal.Decimal("0"), max_digits=18)),
                ("tax_mode", models.CharField(choices=[("none", "No tax"), ("rate", "Flat rate on subtotal"), ("per_item", "Rate per line item"), ("absolute", "Absolute amount")], default="none", max_length=10)),
                ("tax_rate", models.DecimalField(blank=True, decimal_places=4, max_digits=7, null=True)),
                ("tax_fixed_amount", models.DecimalField(blank=True, decimal_places=3, max_digits=18, null=True)),
                ("description", models.TextField(blank=True)),
                ("notes", models.TextField(blank=True)),
                ("terms", models.TextField(blank=True)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("viewed_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("overdue_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.RESTRICT, related_name="invoices", to="invoicing.client")),
                ("issued_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="issued_invoices", to=settings.AUTH_USER_MODEL)),
                ("workspace", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="invoices", to="invoicing.workspace")),
            ],
            options={
                "ordering": ("-issue_date", "-id"),
                "indexes": [
                    models.Index(fields=["workspace", "invoice_number"], name="invoicing_i_workspa_1f0c42_idx"),
                    models.Index(fields=["workspace", "status"], name="invoicing_i_workspa_9a7d5e_idx"),
                    models.Index(fields=["workspace", "issue_date"], name="invoicing_i_workspa_c3e816_idx"),
                    models.Index(fields=["status", "due_date"], name="invoicing_i_status_4b6f09_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("workspace", "invoice_number"), name="uq_invoice_workspace_number"),
                    models.CheckConstraint(condition=models.Q(("due_date__gte", django.db.models.expressions.F("issue_date"))), name="inv_due_after_issue"),
                    models.CheckConstraint(condition=models.Q(("total__gte", 0)), name="inv_total_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="LineItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                ("description", models.CharField(max_length=500)),
                ("quantity", models.DecimalField(decimal_places=4, default=decimal.Decimal("1"), max_digits=14)),
                ("unit_price", models.DecimalField(decimal_places=4, max_digits=18)),
                ("amount", models.DecimalField(decimal_places=3, default=decimal.Decimal("0"), editable=False, max_digits=18)),
                ("tax_rate", models.DecimalField(blank=True, decimal_places=4, max_digits=7, null=True)),
                ("notes", models.TextField(blank=True)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="line_items", to="invoicing.invoice")),
            ],
            options={
                "ordering": ("position", "id"),
                "indexes": [models.Index(fields=["invoice", "position"], name="invoicing_l_invoice_6e2d93_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gt", 0), ("unit_price__gte", 0)), name="li_positive_quantity_non_negative_price"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ("workspace", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="invoicing.workspace")),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["workspace", "user"], name="invoicing_a_workspa_0d8e57_idx"),
                    models.Index(fields=["workspace", "created_at"], name="invoicing_a_workspa_72c1ab_idx"),
                    models.Index(fields=["object_type", "object_id"], name="invoicing_a_object__e5f3c8_idx"),
                ],
            },
        ),
    ]
