"""
TradeDoc Tracker - Email Service

Sends reminder emails to customers.
Supports SendGrid, SMTP, or a mock provider for development.
"""

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from html import escape
from typing import Optional

import httpx

from tradedoc.config import settings
from tradedoc.models.customer import Customer
from tradedoc.models.transaction import Transaction
from tradedoc.utils.dates import format_date

logger = logging.getLogger(__name__)


class EmailProvider:
    """Email provider types."""
    SMTP = "smtp"
    SENDGRID = "sendgrid"
    MOCK = "mock"


class EmailService:
    """
    Notifier for reminder emails.

    `send` returns False on delivery failure and does not raise.
    """

    def __init__(self):
        self.from_name = settings.mail_from_name
        self.provider = settings.email_provider

        # SMTP settings
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.mail_username
        self.smtp_password = settings.mail_password
        self.smtp_use_tls = settings.mail_use_tls

        # SendGrid settings
        self.sendgrid_api_key = settings.sendgrid_api_key

    def _determine_provider(self) -> str:
        """Determine which email provider to use based on configuration."""
        if self.provider:
            return self.provider.lower()
        if self.sendgrid_api_key:
            return EmailProvider.SENDGRID
        elif self.smtp_host:
            return EmailProvider.SMTP
        else:
            return EmailProvider.MOCK

    async def send(
        self,
        from_addr: str,
        to: str,
        subject: str,
        html_body: str,
        password: Optional[str] = None,
    ) -> bool:
        """
        Send one HTML email.

        `password` is the stored credential of the sender account; SMTP
        falls back to the configured mail user when it is absent.
        """
        provider = self._determine_provider()

        try:
            if provider == EmailProvider.SENDGRID:
                return await self._send_via_sendgrid(from_addr, to, subject, html_body)
            elif provider == EmailProvider.SMTP:
                return await asyncio.to_thread(
                    self._send_via_smtp, from_addr, to, subject, html_body, password
                )
            else:
                return await self._send_mock(from_addr, to, subject)
        except Exception as e:
            logger.error(f"Failed to send email via {provider}: {e}")
            return False

    async def _send_via_sendgrid(self, from_addr: str, to: str, subject: str, html_body: str) -> bool:
        """Send email via SendGrid API."""
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": from_addr, "name": self.from_name},
            "subject": subject,
            "content": [{"type": "text/html", "value": html_body}],
        }

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                "https://api.sendgrid.com/v3/mail/send",
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.sendgrid_api_key}",
                    "Content-Type": "application/json",
                },
            )

        if response.status_code in [200, 202]:
            logger.info(f"Email sent via SendGrid to {to}")
            return True
        logger.error(f"SendGrid API error: {response.status_code} - {response.text}")
        return False

    def _send_via_smtp(
        self,
        from_addr: str,
        to: str,
        subject: str,
        html_body: str,
        password: Optional[str] = None,
    ) -> bool:
        """Send email via SMTP. Blocking; run in a worker thread."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, from_addr))
        msg["To"] = to
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        if password:
            username = from_addr
        else:
            username, password = self.smtp_username, self.smtp_password

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            if self.smtp_use_tls:
                server.starttls(context=ssl.create_default_context())
            if username and password:
                server.login(username, password)
            server.sendmail(from_addr, [to], msg.as_string())

        logger.info(f"Email sent via SMTP to {to}")
        return True

    async def _send_mock(self, from_addr: str, to: str, subject: str) -> bool:
        """Mock email sending for development."""
        logger.info(f"[MOCK EMAIL] From: {from_addr} | To: {to} | Subject: {subject}")
        return True


# ===========================================
# REMINDER TEMPLATE
# ===========================================

REMINDER_COLUMNS = [
    ("Số giao dịch", "trref"),
    ("Mã khách hàng", "custno"),
    ("Tên khách hàng", "custnm"),
    ("Ngày giao dịch", "tradate"),
    ("Loại tiền", "currency"),
    ("Số tiền", "amount"),
    ("Người thụ hưởng", "bencust"),
    ("Nội dung", "remark"),
    ("Hạn bổ sung chứng từ", "expected_declaration_date"),
]


def _cell(transaction: Transaction, attr: str) -> str:
    value = getattr(transaction, attr)
    if attr in ("tradate", "expected_declaration_date"):
        return format_date(value)
    if attr == "amount" and value is not None:
        return f"{value:,.2f}"
    return "" if value is None else str(value)


def render_reminder_html(transaction: Transaction, customer: Optional[Customer] = None) -> str:
    """Render a reminder for one transaction as an HTML table."""
    greeting = escape(customer.name if customer else transaction.custnm)
    header = "".join(
        f'<th style="border: 1px solid #ccc; padding: 6px; background: #f3f4f6;">{escape(title)}</th>'
        for title, _ in REMINDER_COLUMNS
    )
    cells = "".join(
        f'<td style="border: 1px solid #ccc; padding: 6px;">{escape(_cell(transaction, attr))}</td>'
        for _, attr in REMINDER_COLUMNS
    )
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <p>Kính gửi Quý khách hàng {greeting},</p>
        <p>Ngân hàng xin thông báo giao dịch dưới đây đang chờ bổ sung chứng từ.
        Quý khách vui lòng bổ sung chứng từ trước hạn.</p>
        <table style="border-collapse: collapse;">
            <thead><tr>{header}</tr></thead>
            <tbody><tr>{cells}</tr></tbody>
        </table>
        <p>Trân trọng,<br>{escape(settings.mail_from_name)}</p>
    </body>
    </html>
    """
