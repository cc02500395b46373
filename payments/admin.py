from django.contrib import admin, messages

from .exceptions import MalformedNotification, PaymentGatewayError
from .gateway import reprocess
from .models import PaymentTransaction


@admin.action(description="Re-fetch from the gateway and reprocess")
def reprocess_selected(modeladmin, request, queryset):
    for pt in queryset:
        try:
            outcome = reprocess(pt.payment_id)
            modeladmin.message_user(request, f"{pt.payment_id}: {outcome}")
        except (PaymentGatewayError, MalformedNotification) as e:
            modeladmin.message_user(request, f"{pt.payment_id}: {e}", level=messages.ERROR)


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ('payment_id', 'provider', 'event', 'kind', 'outcome', 'amount_minor', 'deliveries', 'created_at')
    search_fields = ('payment_id', 'error')
    list_filter = ('outcome', 'kind', 'event', 'provider', 'created_at')
    readonly_fields = ('payload', 'error', 'deliveries')
    actions = [reprocess_selected]
