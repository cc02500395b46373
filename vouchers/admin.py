from django import forms
from django.contrib import admin, messages
from django.contrib.admin.helpers import ActionForm

from .models import Voucher, VoucherRedemption
from .services import VoucherError, redeem, void_voucher


class RedeemActionForm(ActionForm):
    amount = forms.IntegerField(required=False, min_value=1, label="Amount (minor units)")
    note = forms.CharField(required=False, label="Note")


@admin.action(description="Redeem amount from selected vouchers")
def redeem_vouchers(modeladmin, request, queryset):
    amount = request.POST.get('amount')
    if not amount or not amount.isdigit():
        modeladmin.message_user(request, "Enter an amount to redeem.", level=messages.WARNING)
        return
    done = 0
    for voucher in queryset:
        try:
            redeem(voucher, int(amount), staff_user=request.user, note=request.POST.get('note', ''))
            done += 1
        except VoucherError as e:
            modeladmin.message_user(request, str(e), level=messages.ERROR)
    modeladmin.message_user(request, f"Redeemed: {done}")


@admin.action(description="Void selected vouchers")
def void_vouchers(modeladmin, request, queryset):
    for voucher in queryset:
        void_voucher(voucher)
    modeladmin.message_user(request, f"Voided: {queryset.count()}")


class VoucherRedemptionInline(admin.TabularInline):
    model = VoucherRedemption
    extra = 0
    readonly_fields = ('amount_minor', 'redeemed_by', 'note', 'created_at')
    can_delete = False


@admin.register(Voucher)
class VoucherAdmin(admin.ModelAdmin):
    list_display = ('code', 'amount_initial_minor', 'amount_remaining_minor', 'currency', 'status',
                    'delivery', 'buyer_email', 'recipient_email', 'expires_at')
    list_filter = ('status', 'delivery', 'created_at')
    search_fields = ('code', 'buyer_email', 'recipient_email', 'payment_id')
    readonly_fields = ('code', 'amount_initial_minor', 'amount_remaining_minor', 'payment_id',
                       'transaction_id', 'delivered_at', 'created_at')
    inlines = [VoucherRedemptionInline]
    action_form = RedeemActionForm
    actions = [redeem_vouchers, void_vouchers]
