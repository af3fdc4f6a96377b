# Overview: Outbound customer email (payment receipts, refund notices) sent after commit.

"""
Email is fire-and-forget and strictly post-commit.

Services call queue_* while building a transaction; the payload is parked in
db.session.info. A Session after_commit hook sends everything parked once the
financial change is durable, and after_rollback discards it, so a rolled-back
payment never produces a receipt. Delivery problems are logged and never
reach the caller.
"""

from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app
from sqlalchemy import event
from sqlalchemy.orm import Session

from ..extensions import db
from ..money import from_cents


_PENDING_KEY = "pending_emails"


def _format_amount(cents: int) -> str:
    return f"${from_cents(cents):,.2f}"


def queue_email(to_email: str | None, subject: str, text_content: str, html_content: str | None = None) -> bool:
    """Park an email on the current session. Returns False when there is no recipient."""
    if not to_email:
        current_app.logger.debug("Skipping email %r: no recipient", subject)
        return False
    pending = db.session.info.setdefault(_PENDING_KEY, [])
    pending.append({
        "to_email": to_email,
        "subject": subject,
        "text_content": text_content,
        "html_content": html_content,
    })
    return True


def queue_payment_receipt(invoice) -> bool:
    customer = invoice.customer
    if customer is None:
        return False

    method = invoice.payment_method or "payment"
    lines = [
        f"Hi {customer.full_name},",
        "",
        f"Thank you for your payment of {_format_amount(invoice.total_amount_cents)} "
        f"for invoice {invoice.invoice_number}.",
        "",
        f"Subtotal: {_format_amount(invoice.subtotal_cents)}",
        f"Tax: {_format_amount(invoice.tax_amount_cents)}",
        f"Discount: {_format_amount(invoice.discount_amount_cents)}",
        f"Total: {_format_amount(invoice.total_amount_cents)}",
        f"Paid by: {method}",
    ]
    if invoice.payment_reference:
        lines.append(f"Reference: {invoice.payment_reference}")

    return queue_email(
        customer.email,
        f"Receipt for invoice {invoice.invoice_number}",
        "\n".join(lines),
    )


def queue_refund_notice(invoice, amount_cents: int) -> bool:
    customer = invoice.customer
    if customer is None:
        return False

    text = "\n".join([
        f"Hi {customer.full_name},",
        "",
        f"A refund of {_format_amount(amount_cents)} has been issued for invoice "
        f"{invoice.invoice_number} ({invoice.refund_method}).",
        f"Total refunded to date: {_format_amount(invoice.refund_amount_cents)}",
    ])
    return queue_email(customer.email, f"Refund for invoice {invoice.invoice_number}", text)


def send_email(to_email: str, subject: str, text_content: str, html_content: str | None = None) -> bool:
    """
    Send one email over SMTP using the MAIL_* settings.

    Returns True if sent. Never raises: an unconfigured transport is logged at
    debug level and delivery failures at error level.
    """
    config = current_app.config
    if not config.get("MAIL_ENABLED") or not config.get("MAIL_SERVER"):
        current_app.logger.debug("Email transport not configured; dropping %r to %s", subject, to_email)
        return False

    sender = config.get("MAIL_DEFAULT_SENDER") or config.get("MAIL_USERNAME")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to_email
    msg.attach(MIMEText(text_content, "plain"))
    if html_content:
        msg.attach(MIMEText(html_content, "html"))

    try:
        with smtplib.SMTP(config["MAIL_SERVER"], config.get("MAIL_PORT", 587),
                          timeout=config.get("MAIL_TIMEOUT_SECONDS", 10)) as server:
            if config.get("MAIL_USE_TLS"):
                server.starttls()
            if config.get("MAIL_USERNAME"):
                server.login(config["MAIL_USERNAME"], config.get("MAIL_PASSWORD", ""))
            server.sendmail(sender, [to_email], msg.as_string())
    except smtplib.SMTPException as exc:
        current_app.logger.error("SMTP error sending %r to %s: %s", subject, to_email, exc)
        return False
    except OSError as exc:
        current_app.logger.error("Network error sending %r to %s: %s", subject, to_email, exc)
        return False

    current_app.logger.info("Email %r sent to %s", subject, to_email)
    return True


def _dispatch_pending(session):
    pending = session.info.pop(_PENDING_KEY, None)
    for message in pending or ():
        try:
            send_email(**message)
        except Exception:
            current_app.logger.exception("Failed to send %r to %s", message.get("subject"), message.get("to_email"))


def _discard_pending(session):
    session.info.pop(_PENDING_KEY, None)


def init_app(app) -> None:
    """Install the commit/rollback hooks once per process."""
    if not event.contains(Session, "after_commit", _dispatch_pending):
        event.listen(Session, "after_commit", _dispatch_pending)
        event.listen(Session, "after_rollback", _discard_pending)
