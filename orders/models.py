from django.conf import settings
from django.db import models


class Product(models.Model):
    name = models.CharField('Name', max_length=255)
    slug = models.SlugField('Slug', max_length=140, unique=True)
    price_minor = models.PositiveIntegerField('Price (minor units)')
    is_active = models.BooleanField('Active', default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class PaidOrderBase(models.Model):
    """Fields shared by user and guest orders: totals and gateway receipt data."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        COMPLETED = 'completed', 'Completed'

    total_minor = models.PositiveIntegerField(default=0)
    currency = models.CharField(max_length=3, default='GBP')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    # gateway payment id is the external session id: one order per checkout attempt
    payment_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True)
    receipt_url = models.URLField(blank=True)
    card_brand = models.CharField(max_length=32, blank=True)
    card_last4 = models.CharField(max_length=4, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ['-created_at']

    @property
    def has_receipt_details(self) -> bool:
        return bool(self.card_last4 and self.paid_at)


class Order(PaidOrderBase):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='orders')

    def __str__(self):
        return f'Order #{self.pk} ({self.get_status_display()})'


class GuestOrder(PaidOrderBase):
    email = models.EmailField(db_index=True)
    guest_token = models.CharField(max_length=64, db_index=True)

    def __str__(self):
        return f'Guest order #{self.pk} <{self.email}>'


class LineItemBase(models.Model):
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    description = models.CharField(max_length=255, blank=True)
    quantity = models.PositiveIntegerField()
    unit_price_minor = models.PositiveIntegerField()  # price at purchase time

    class Meta:
        abstract = True

    def total_price_minor(self):
        return self.unit_price_minor * self.quantity


class OrderItem(LineItemBase):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    event = models.ForeignKey('events.Event', on_delete=models.SET_NULL, null=True, blank=True,
                              related_name='order_items')


class GuestOrderItem(LineItemBase):
    order = models.ForeignKey(GuestOrder, on_delete=models.CASCADE, related_name='items')
