import io

from django.conf import settings
from django.utils import timezone

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader

import qrcode

from core.mail import format_money

_FONT_REGULAR = "Helvetica"
_FONT_BOLD = "Helvetica-Bold"


def _format_date(dt):
    if not dt:
        return ""
    return timezone.localtime(dt).strftime("%d %B %Y")


def qr_payload(voucher) -> str:
    return f"VOUCHER:{voucher.code}"


def build_qr_png(payload: str) -> bytes:
    qr = qrcode.QRCode(version=1, box_size=8, border=2)
    qr.add_data(payload)
    qr.make(fit=True)

    # PNG bytes work both as a mail attachment and for ReportLab
    qr_img = qr.make_image(fill_color="black", back_color="white").get_image()
    qr_buffer = io.BytesIO()
    qr_img.save(qr_buffer, format="PNG")
    return qr_buffer.getvalue()


def build_voucher_pdf(voucher) -> bytes:
    """
    Printable gift voucher with the code, value, expiry and a QR code.
    Returns bytes.
    """
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    margin_left = 20 * mm
    margin_top = height - 20 * mm

    c.setFont(_FONT_BOLD, 22)
    c.drawString(margin_left, margin_top, f"{settings.SITE_NAME} gift voucher")

    y = margin_top - 18 * mm
    c.setFont(_FONT_BOLD, 28)
    c.drawString(margin_left, y, format_money(voucher.amount_initial_minor, voucher.currency))
    y -= 12 * mm

    c.setFont(_FONT_REGULAR, 12)
    if voucher.to_name:
        c.drawString(margin_left, y, f"To: {voucher.to_name}")
        y -= 7 * mm
    if voucher.from_name:
        c.drawString(margin_left, y, f"From: {voucher.from_name}")
        y -= 7 * mm

    if voucher.personal_message:
        y -= 3 * mm
        c.setFont(_FONT_REGULAR, 11)
        # naive wrapping, the message is capped at checkout
        line = ""
        for word in voucher.personal_message.split():
            candidate = f"{line} {word}".strip()
            if c.stringWidth(candidate, _FONT_REGULAR, 11) > width - 100 * mm:
                c.drawString(margin_left, y, line)
                y -= 6 * mm
                line = word
            else:
                line = candidate
        if line:
            c.drawString(margin_left, y, line)
            y -= 6 * mm
    y -= 8 * mm

    c.setFont(_FONT_BOLD, 12)
    c.drawString(margin_left, y, "Voucher code")
    y -= 8 * mm
    c.setFont(_FONT_BOLD, 18)
    c.drawString(margin_left, y, voucher.code)
    y -= 9 * mm
    c.setFont(_FONT_REGULAR, 11)
    c.drawString(margin_left, y, f"Valid until: {_format_date(voucher.expires_at)}")

    qr_size = 50 * mm
    c.drawImage(
        ImageReader(io.BytesIO(build_qr_png(qr_payload(voucher)))),
        width - qr_size - 20 * mm,
        margin_top - qr_size - 10 * mm,
        qr_size,
        qr_size,
        mask='auto'
    )

    c.setFont(_FONT_REGULAR, 9)
    footer_y = 15 * mm
    c.drawString(margin_left, footer_y, "Present this voucher or quote the code at the till or online.")
    c.drawString(margin_left, footer_y - 5 * mm, "The balance can be used across several purchases until it expires.")

    c.showPage()
    c.save()
    pdf = buffer.getvalue()
    buffer.close()
    return pdf
