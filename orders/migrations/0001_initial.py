import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def paid_order_fields():
    return [
        ("total_minor", models.PositiveIntegerField(default=0)),
        ("currency", models.CharField(default="GBP", max_length=3)),
        (
            "status",
            models.CharField(
                choices=[("pending", "Pending"), ("completed", "Completed")],
                default="pending",
                max_length=20,
            ),
        ),
        ("payment_id", models.CharField(blank=True, max_length=100, null=True, unique=True)),
        ("transaction_id", models.CharField(blank=True, max_length=100)),
        ("receipt_url", models.URLField(blank=True)),
        ("card_brand", models.CharField(blank=True, max_length=32)),
        ("card_last4", models.CharField(blank=True, max_length=4)),
        ("paid_at", models.DateTimeField(blank=True, null=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
    ]


def line_item_fields():
    return [
        ("description", models.CharField(blank=True, max_length=255)),
        ("quantity", models.PositiveIntegerField()),
        ("unit_price_minor", models.PositiveIntegerField()),
        (
            "product",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to="orders.product",
            ),
        ),
    ]


def pk_field():
    return (
        "id",
        models.BigAutoField(
            auto_created=True,
            primary_key=True,
            serialize=False,
            verbose_name="ID",
        ),
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("events", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                pk_field(),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                ("slug", models.SlugField(max_length=140, unique=True, verbose_name="Slug")),
                ("price_minor", models.PositiveIntegerField(verbose_name="Price (minor units)")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                pk_field(),
                *paid_order_fields(),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="GuestOrder",
            fields=[
                pk_field(),
                *paid_order_fields(),
                ("email", models.EmailField(db_index=True, max_length=254)),
                ("guest_token", models.CharField(db_index=True, max_length=64)),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                pk_field(),
                *line_item_fields(),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="order_items",
                        to="events.event",
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="GuestOrderItem",
            fields=[
                pk_field(),
                *line_item_fields(),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.guestorder",
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
    ]
