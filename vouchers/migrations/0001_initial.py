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
            name="Voucher",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("code", models.CharField(max_length=32, unique=True, verbose_name="Code")),
                ("amount_initial_minor", models.PositiveIntegerField(verbose_name="Initial value")),
                ("amount_remaining_minor", models.PositiveIntegerField(verbose_name="Remaining value")),
                ("currency", models.CharField(default="GBP", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("redeemed", "Redeemed"), ("void", "Void")],
                        db_index=True,
                        default="active",
                        max_length=10,
                    ),
                ),
                ("buyer_email", models.EmailField(max_length=254, verbose_name="Buyer email")),
                ("recipient_email", models.EmailField(blank=True, max_length=254, verbose_name="Recipient email")),
                ("to_name", models.CharField(blank=True, max_length=100, verbose_name="To")),
                ("from_name", models.CharField(blank=True, max_length=100, verbose_name="From")),
                ("personal_message", models.TextField(blank=True, verbose_name="Message")),
                (
                    "delivery",
                    models.CharField(
                        choices=[
                            ("email_now", "Email now"),
                            ("schedule", "Email on a date"),
                            ("print", "Print at home"),
                        ],
                        default="email_now",
                        max_length=10,
                    ),
                ),
                ("send_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("payment_id", models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ("transaction_id", models.CharField(blank=True, max_length=100)),
                ("expires_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount_remaining_minor__gte", 0),
                            ("amount_remaining_minor__lte", models.F("amount_initial_minor")),
                        ),
                        name="voucher_remaining_within_initial",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="VoucherRedemption",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("amount_minor", models.PositiveIntegerField()),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "redeemed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "voucher",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="vouchers.voucher",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
