from django import forms
from django.conf import settings
from django.utils import timezone

from .models import Voucher


class VoucherCheckoutForm(forms.Form):
    amount = forms.IntegerField(label="Amount (minor units)")
    delivery = forms.ChoiceField(choices=Voucher.Delivery.choices)
    send_date = forms.DateField(required=False)
    to_name = forms.CharField(max_length=100, required=False)
    from_name = forms.CharField(max_length=100, required=False)
    # metadata values are capped by the gateway
    message = forms.CharField(max_length=400, required=False)
    buyer_email = forms.EmailField(required=False)
    recipient_email = forms.EmailField(required=False)

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = user

    def clean_amount(self):
        amount = self.cleaned_data["amount"]
        if amount < settings.VOUCHER_MIN_AMOUNT:
            raise forms.ValidationError(f"Minimum voucher value is {settings.VOUCHER_MIN_AMOUNT} minor units.")
        return amount

    def clean_message(self):
        return self.cleaned_data["message"].strip()

    def clean(self):
        cleaned = super().clean()
        if self.user is not None and self.user.is_authenticated:
            cleaned["buyer_email"] = self.user.email
        if not cleaned.get("buyer_email"):
            self.add_error("buyer_email", "We need your email for the receipt.")
        else:
            cleaned["buyer_email"] = cleaned["buyer_email"].strip().lower()
        cleaned["recipient_email"] = (cleaned.get("recipient_email") or "").strip().lower()

        if cleaned.get("delivery") == Voucher.Delivery.SCHEDULE:
            send_date = cleaned.get("send_date")
            if not send_date:
                self.add_error("send_date", "Choose a delivery date.")
            elif send_date <= timezone.localdate():
                self.add_error("send_date", "Delivery date must be in the future.")
            if not cleaned["recipient_email"]:
                self.add_error("recipient_email", "Scheduled vouchers need a recipient email.")
        else:
            cleaned["send_date"] = None
        return cleaned
