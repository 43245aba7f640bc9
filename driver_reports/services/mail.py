"""
Mail delivery service.

Sends rendered reports to drivers. The transport is a strategy chosen by
configuration: SMTP (smtplib) or the Mailjet HTTP API (requests). The
service is built once by the caller and injected where it is needed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.message import EmailMessage
from html import escape
from typing import Callable, Dict, Iterable, List, Optional
import base64
import logging
import smtplib
import time

import requests

from ..config import Settings, get_settings
from ..config.settings import MailSettings
from ..core.exceptions import MailDeliveryError, ReportConfigError
from ..core.kpis import RANKING_KPIS, get_kpi
from ..core.models import CalculatedMetrics, TargetBand
from .trend import describe_band

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass(frozen=True)
class MailMessage:
    """One outgoing message."""

    recipient: str
    subject: str
    html_body: str
    attachments: List[MailAttachment] = field(default_factory=list)


@dataclass(frozen=True)
class DeliveryResult:
    """
    Outcome of delivering one message.

    Attributes:
        recipient: Address the message was sent to
        success: Whether any attempt succeeded
        attempts: Number of attempts made
        message: Final status or last error text
    """

    recipient: str
    success: bool
    attempts: int
    message: str = ""


class MailTransport(ABC):
    """Strategy interface for delivering a message."""

    @abstractmethod
    def send(self, message: MailMessage) -> None:
        """
        Deliver a message.

        Raises:
            MailDeliveryError: If the message was not accepted
        """


class SmtpTransport(MailTransport):
    """Delivery over SMTP; port 465 uses implicit TLS, other ports STARTTLS."""

    def __init__(self, settings: MailSettings):
        self._settings = settings

    def build(self, message: MailMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = f"{self._settings.sender_name} <{self._settings.sender_email}>"
        email["To"] = message.recipient
        email["Subject"] = message.subject
        email.set_content("Denne mail kræver en mailklient der kan vise HTML.")
        email.add_alternative(message.html_body, subtype="html")
        for attachment in message.attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            email.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return email

    def send(self, message: MailMessage) -> None:
        settings = self._settings
        email = self.build(message)
        try:
            if settings.smtp_port == 465:
                server = smtplib.SMTP_SSL(settings.smtp_server, settings.smtp_port, timeout=settings.timeout_seconds)
            else:
                server = smtplib.SMTP(settings.smtp_server, settings.smtp_port, timeout=settings.timeout_seconds)
            with server:
                if settings.smtp_port != 465:
                    server.starttls()
                if settings.smtp_user:
                    server.login(settings.smtp_user, settings.smtp_password)
                server.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP delivery to {message.recipient} failed: {e}") from e


class MailjetTransport(MailTransport):
    """Delivery through the Mailjet v3.1 send API."""

    def __init__(self, settings: MailSettings):
        self._settings = settings

    def payload(self, message: MailMessage) -> Dict:
        entry = {
            "From": {"Email": self._settings.sender_email, "Name": self._settings.sender_name},
            "To": [{"Email": message.recipient}],
            "Subject": message.subject,
            "HTMLPart": message.html_body,
        }
        if message.attachments:
            entry["Attachments"] = [
                {
                    "ContentType": attachment.content_type,
                    "Filename": attachment.filename,
                    "Base64Content": base64.b64encode(attachment.content).decode("ascii"),
                }
                for attachment in message.attachments
            ]
        return {"Messages": [entry]}

    def send(self, message: MailMessage) -> None:
        try:
            response = requests.post(
                self._settings.mailjet_url,
                json=self.payload(message),
                auth=(self._settings.mailjet_api_key, self._settings.mailjet_secret_key),
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise MailDeliveryError(f"Mailjet delivery to {message.recipient} failed: {e}") from e


def create_transport(settings: MailSettings) -> MailTransport:
    """
    Create the transport named by the configuration.

    Raises:
        ReportConfigError: For an unknown transport or missing credentials
    """
    transport = settings.transport.strip().lower()
    if transport == "smtp":
        return SmtpTransport(settings)
    if transport == "http":
        if not settings.mailjet_api_key or not settings.mailjet_secret_key:
            raise ReportConfigError(["Mailjet kræver MJ_APIKEY_PUBLIC og MJ_APIKEY_PRIVATE"])
        return MailjetTransport(settings)
    raise ReportConfigError([f"Ukendt mail transport: {settings.transport}"])


class MailService:
    """
    Service sending reports with retries.

    Each message gets up to ``mail.max_retries`` attempts, waiting
    ``retry_delay * 2 ** (attempt - 1)`` seconds between them.
    """

    def __init__(
        self,
        transport: Optional[MailTransport] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the mail service.

        Args:
            transport: Delivery strategy. If None, created from settings.
            settings: Application settings. If None, uses default settings.
            sleep: Wait function between attempts
        """
        self._settings = settings or get_settings()
        self._transport = transport or create_transport(self._settings.mail)
        self._sleep = sleep

    def send(self, message: MailMessage) -> DeliveryResult:
        """Deliver one message, retrying failed attempts."""
        max_attempts = max(1, self._settings.mail.max_retries)
        last_error = ""

        for attempt in range(1, max_attempts + 1):
            logger.info(f"Mail attempt {attempt}/{max_attempts} to {message.recipient}")
            try:
                self._transport.send(message)
            except MailDeliveryError as e:
                last_error = str(e)
                logger.warning(f"Mail attempt {attempt} failed: {e}")
                if attempt < max_attempts:
                    self._sleep(self._settings.mail.retry_delay_seconds * 2 ** (attempt - 1))
                continue
            logger.info(f"Mail delivered to {message.recipient}")
            return DeliveryResult(message.recipient, True, attempt, f"Sendt (forsøg {attempt})")

        logger.error(f"Giving up on {message.recipient} after {max_attempts} attempts")
        return DeliveryResult(message.recipient, False, max_attempts, last_error)

    def send_report(
        self,
        recipient: str,
        subject: str,
        html_body: str,
        attachment: Optional[MailAttachment] = None
    ) -> DeliveryResult:
        """
        Send a report mail.

        Args:
            recipient: Driver's address
            subject: Mail subject
            html_body: HTML body, see build_driver_summary_html
            attachment: The rendered report, if any

        Returns:
            DeliveryResult for the recipient
        """
        attachments = [attachment] if attachment is not None else []
        return self.send(MailMessage(recipient, subject, html_body, attachments))

    def send_bulk(self, messages: Iterable[MailMessage]) -> List[DeliveryResult]:
        """Send several messages; one failure does not stop the rest."""
        results = [self.send(message) for message in messages]
        sent = sum(1 for result in results if result.success)
        logger.info(f"Bulk mail finished: {sent}/{len(results)} delivered")
        return results


def first_name(full_name: str) -> str:
    """
    First name of a driver.

    Handles both "Fornavn Efternavn" and "Efternavn, Fornavn".
    """
    if not full_name:
        return ""
    if "," in full_name:
        _, _, rest = full_name.partition(",")
        if rest.strip():
            return rest.strip().split()[0]
    return full_name.strip().split()[0]


def report_subject(driver_name: str, period_label: str) -> str:
    return f"Chauffør Rapport - {driver_name} - {period_label}"


def build_driver_summary_html(
    driver_name: str,
    period_label: str,
    metrics: CalculatedMetrics,
    goals: Dict[str, bool],
    bands: Dict[str, TargetBand],
    org_name: str = "Fiskelogistik",
    sender_name: str = "Fiskelogistik Gruppen A/S"
) -> str:
    """
    HTML body of a driver's monthly report mail.

    Args:
        driver_name: Full driver name; the greeting uses the first name
        period_label: Reporting period, e.g. "Juni 2025"
        metrics: The driver's KPIs
        goals: KPI key -> goal met, see TrendAnalyzer.evaluate_goals
        bands: KPI key -> target band, for the target text
        org_name: Organisation shown in the header
        sender_name: Signature

    Returns:
        Complete HTML document
    """
    items = []
    for kpi in RANKING_KPIS:
        definition = get_kpi(kpi)
        met = goals.get(kpi, False)
        color = "#1F7D3A" if met else "#B45309"
        background = "#DFF5E7" if met else "#FEF3C7"
        items.append(
            f'<div style="background:{background};border-left:4px solid {color};'
            f'padding:10px;margin:8px 0;">'
            f"<strong>{escape(definition.short_label)}</strong>: "
            f"{escape(definition.format_value(metrics.get(kpi)))} "
            f'<span style="color:#6B7280;">(Mål: {escape(describe_band(kpi, bands.get(kpi)).lower())})</span>'
            f"</div>"
        )

    return (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="utf-8"></head>'
        '<body style="font-family:Arial,sans-serif;color:#1F2933;">'
        f'<h1 style="color:#0268AB;">{escape(org_name)} Chaufførrapport</h1>'
        f"<p>Kære {escape(first_name(driver_name))},</p>"
        f"<p>Hermed din månedlige kørselsrapport for <strong>{escape(period_label)}</strong>.</p>"
        "<h3>Din performance på de 4 målsætninger:</h3>"
        + "".join(items)
        + "<p>Din komplette rapport er vedhæftet, hvor du kan finde flere detaljer om din kørsel.</p>"
        f"<p>Med venlig hilsen<br><strong>{escape(sender_name)}</strong></p>"
        "</body></html>"
    )
