class PaymentGatewayError(Exception):
    """The payment provider call failed or returned an unusable answer."""


class SignatureError(Exception):
    """Webhook body could not be authenticated against the shared secret."""


class MalformedNotification(Exception):
    """Webhook body is not a notification we can read."""


class ClassificationError(Exception):
    """Payment metadata lacks the fields needed to attribute it to a domain."""
