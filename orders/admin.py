from django.contrib import admin
from .models import GuestOrder, GuestOrderItem, Order, OrderItem, Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'price_minor', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name', 'slug')
    prepopulated_fields = {'slug': ('name',)}


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('unit_price_minor',)


class GuestOrderItemInline(admin.TabularInline):
    model = GuestOrderItem
    extra = 0
    readonly_fields = ('unit_price_minor',)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'status', 'total_minor', 'currency', 'payment_id', 'created_at', 'paid_at')
    list_filter = ('status', 'created_at', 'paid_at')
    search_fields = ('user__username', 'user__email', 'payment_id', 'transaction_id')
    readonly_fields = ('payment_id', 'transaction_id', 'receipt_url', 'card_brand', 'card_last4', 'paid_at')
    inlines = [OrderItemInline]


@admin.register(GuestOrder)
class GuestOrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'email', 'status', 'total_minor', 'currency', 'payment_id', 'created_at')
    list_filter = ('status', 'created_at')
    search_fields = ('email', 'payment_id')
    inlines = [GuestOrderItemInline]
