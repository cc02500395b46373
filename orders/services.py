import logging
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from core.mail import format_money, send_templated_email
from payments import services as gateway
from payments.classifier import KIND_STORE, LineItem, StorePurchase, encode_line_items
from payments.notifications import PaymentNotification, from_payment_object
from .models import GuestOrder, GuestOrderItem, Order, OrderItem, Product

logger = logging.getLogger('orders')

RECEIPT_FIELDS = ('transaction_id', 'receipt_url', 'card_brand', 'card_last4', 'paid_at')
COPIED_ORDER_FIELDS = ('total_minor', 'currency', 'status', 'payment_id') + RECEIPT_FIELDS
MAX_METADATA_VALUE = 512  # gateway limit per metadata value


class OrderError(Exception):
    pass


def receipt_fields(notification: PaymentNotification) -> dict:
    return {
        'transaction_id': notification.transaction_id,
        'receipt_url': notification.receipt_url,
        'card_brand': notification.card_brand,
        'card_last4': notification.card_last4,
        'paid_at': notification.paid_at,
    }


def send_order_confirmation(order_id: int, guest: bool = False) -> None:
    model = GuestOrder if guest else Order
    try:
        order = model.objects.prefetch_related('items').get(pk=order_id)
    except model.DoesNotExist:
        logger.error("send_order_confirmation: order %s does not exist (guest=%s)", order_id, guest)
        return
    to = order.email if guest else order.user.email
    send_templated_email(
        subject=f"{settings.SITE_NAME}: order confirmation #{order.pk}",
        template='email/order_confirmation',
        context={'order': order, 'total': format_money(order.total_minor, order.currency)},
        to=to,
    )


# --- checkout ---
def resolve_cart_lines(raw_items) -> list:
    """[{'product_id': 1, 'quantity': 2}, ...] -> [(Product, 2), ...] with live prices."""
    if not isinstance(raw_items, list) or not raw_items:
        raise OrderError("Cart is empty.")
    wanted = []
    for raw in raw_items:
        try:
            product_id = int(raw.get('product_id'))
            quantity = int(raw.get('quantity', 1))
        except (AttributeError, TypeError, ValueError):
            raise OrderError("Invalid cart item.")
        if quantity < 1:
            raise OrderError("Invalid quantity.")
        wanted.append((product_id, quantity))

    products = Product.objects.filter(is_active=True).in_bulk([pid for pid, _ in wanted])
    lines = []
    for product_id, quantity in wanted:
        product = products.get(product_id)
        if product is None:
            raise OrderError(f"Product {product_id} is not available.")
        lines.append((product, quantity))
    return lines


def start_store_checkout(lines, *, user=None, guest_token: str = '', email: str = '') -> gateway.CheckoutSession:
    """
    Snapshots the current prices into the payment metadata so the order is
    written with the prices the buyer saw, referencing products by id.
    """
    items = [LineItem(product_id=p.pk, quantity=q, unit_price_minor=p.price_minor) for p, q in lines]
    total = sum(i.unit_price_minor * i.quantity for i in items)
    if total <= 0:
        raise OrderError("Order total must be positive.")

    encoded = encode_line_items(items)
    if len(encoded) > MAX_METADATA_VALUE:
        raise OrderError("Too many different items for one checkout.")

    metadata = {'kind': KIND_STORE, 'items': encoded}
    if user is not None:
        metadata['user_id'] = user.pk
        email = user.email
    else:
        if not guest_token or not email:
            raise OrderError("Guest checkout needs an email address.")
        metadata['guest_token'] = guest_token
        metadata['email'] = email

    return gateway.create_payment(
        amount_minor=total,
        currency=settings.SHOP_CURRENCY,
        description=f"{settings.SITE_NAME} order",
        metadata=metadata,
        customer_email=email,
        return_url=gateway.return_url_for(KIND_STORE),
    )


# --- payment fulfilment ---
def record_store_order(purchase: StorePurchase, notification: PaymentNotification):
    """
    Writes the completed order for a paid store checkout. Returns (order, created).
    The unique payment id makes a redelivered notification return the existing row.
    """
    if not purchase.is_guest and not get_user_model().objects.filter(pk=purchase.user_id).exists():
        raise OrderError(f"User {purchase.user_id} does not exist")

    products = Product.objects.in_bulk([i.product_id for i in purchase.items])
    fields = {
        'total_minor': notification.amount_minor,
        'currency': notification.currency or settings.SHOP_CURRENCY,
        'status': Order.Status.COMPLETED,
        **receipt_fields(notification),
    }

    with transaction.atomic():
        if purchase.is_guest:
            order, created = GuestOrder.objects.get_or_create(
                payment_id=notification.session_id,
                defaults={'email': purchase.email, 'guest_token': purchase.guest_token, **fields},
            )
            item_model = GuestOrderItem
        else:
            order, created = Order.objects.get_or_create(
                payment_id=notification.session_id,
                defaults={'user_id': purchase.user_id, **fields},
            )
            item_model = OrderItem

        if created:
            item_model.objects.bulk_create([
                item_model(
                    order=order,
                    product=products.get(i.product_id),
                    description=products[i.product_id].name if i.product_id in products else f'Product #{i.product_id}',
                    quantity=i.quantity,
                    unit_price_minor=i.unit_price_minor,
                )
                for i in purchase.items
            ])
            transaction.on_commit(lambda: send_order_confirmation(order.pk, guest=purchase.is_guest))

    if created:
        logger.info("Store order recorded: order=%s guest=%s payment=%s",
                    order.pk, purchase.is_guest, notification.session_id)
    return order, created


def backfill_receipt(order: Order) -> bool:
    """Fills missing card/receipt details from the gateway. The only change allowed on a completed order."""
    if order.has_receipt_details or not order.payment_id:
        return False
    notification = from_payment_object(gateway.find_payment(order.payment_id))
    changed = []
    for name, value in receipt_fields(notification).items():
        if value and not getattr(order, name):
            setattr(order, name, value)
            changed.append(name)
    if changed:
        order.save(update_fields=changed)
        logger.info("Receipt backfilled: order=%s fields=%s", order.pk, changed)
    return bool(changed)


# --- guest identity merge ---
def merge_guest_orders(user) -> int:
    """
    Moves guest orders placed with the user's email into the account once
    that email is verified.
    Each guest order is copied and deleted in one transaction, so a retry
    only sees what was not merged yet.
    """
    if not user.email or not user.email_verified:
        return 0

    merged = 0
    for guest in GuestOrder.objects.filter(email__iexact=user.email).prefetch_related('items'):
        try:
            with transaction.atomic():
                _merge_one(user, guest)
        except IntegrityError:
            # a concurrent sign-in merged it first
            logger.warning("Guest order %s already merged elsewhere", guest.pk)
            continue
        merged += 1

    if merged:
        logger.info("Merged %s guest order(s) into user=%s", merged, user.pk)
    return merged


def _merge_one(user, guest: GuestOrder) -> Optional[Order]:
    order = None
    if not (guest.payment_id and Order.objects.filter(payment_id=guest.payment_id).exists()):
        payment_id = guest.payment_id
        # the unique payment id moves over with the order
        guest.payment_id = None
        guest.save(update_fields=['payment_id'])

        order = Order.objects.create(
            user=user,
            **{name: getattr(guest, name) for name in COPIED_ORDER_FIELDS if name != 'payment_id'},
            payment_id=payment_id,
        )
        Order.objects.filter(pk=order.pk).update(created_at=guest.created_at)
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product_id=item.product_id,
                description=item.description,
                quantity=item.quantity,
                unit_price_minor=item.unit_price_minor,
            )
            for item in guest.items.all()
        ])
    guest.delete()
    return order
