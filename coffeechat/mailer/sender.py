"""
SMTP delivery of invitation emails.
"""

import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Callable, List, Sequence, Tuple

from ..config import Recipient, SmtpConfig
from ..domain.exceptions import EmailDeliveryError, TemplateError
from .template import EmailTemplate

logger = logging.getLogger(__name__)

SmtpFactory = Callable[..., smtplib.SMTP]


@dataclass
class DeliveryReport:
    """Outcome of sending invitations to several recipients."""
    sent: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.sent)

    @property
    def error_count(self) -> int:
        return len(self.failed)


class EmailSender:
    """
    Sends rendered invitations through an SMTP server.
    """

    def __init__(self, smtp_config: SmtpConfig, smtp_factory: SmtpFactory = smtplib.SMTP, timeout: int = 30):
        """
        Args:
            smtp_config: Server and login settings
            smtp_factory: Callable creating the SMTP connection from (host, port, timeout=...)
            timeout: Connection timeout in seconds
        """
        self.smtp_config = smtp_config
        self._smtp_factory = smtp_factory
        self.timeout = timeout

    def build_message(
        self,
        recipient: Recipient,
        sender_name: str,
        availabilities: Sequence[str],
        template: EmailTemplate,
    ) -> MIMEText:
        """Render the template for one recipient into a MIME message."""
        subject, body = template.render(recipient.name, sender_name, availabilities)

        message = MIMEText(body, "plain", "utf-8")
        message["Subject"] = subject
        message["From"] = formataddr((sender_name, self.smtp_config.from_email))
        message["To"] = formataddr((recipient.name, recipient.email))
        return message

    def send_invitation(
        self,
        recipient: Recipient,
        sender_name: str,
        availabilities: Sequence[str],
        template: EmailTemplate,
    ) -> None:
        """
        Send one invitation email.

        Raises:
            TemplateError: If the template cannot be rendered
            EmailDeliveryError: If the SMTP exchange fails
        """
        message = self.build_message(recipient, sender_name, availabilities, template)
        config = self.smtp_config

        try:
            with self._smtp_factory(config.host, config.port, timeout=self.timeout) as smtp:
                if config.use_starttls:
                    smtp.starttls(context=ssl.create_default_context())
                smtp.login(config.user, config.password.get_secret_value())
                smtp.sendmail(config.from_email, [recipient.email], message.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(recipient.email, str(exc)) from exc

        logger.info("Email sent successfully to %s", recipient.email)

    def send_invitations(
        self,
        recipients: Sequence[Recipient],
        sender_name: str,
        availabilities: Sequence[str],
        template: EmailTemplate,
    ) -> DeliveryReport:
        """
        Send an invitation to every recipient.

        A failure for one recipient is recorded and does not stop the others.
        """
        report = DeliveryReport()

        for recipient in recipients:
            logger.debug("Attempting to send email to: %s", recipient.email)
            try:
                self.send_invitation(recipient, sender_name, availabilities, template)
            except (EmailDeliveryError, TemplateError) as exc:
                logger.error("Error sending email to %s: %s", recipient.email, exc)
                report.failed.append((recipient.email, str(exc)))
                continue
            report.sent.append(recipient.email)

        logger.info(
            "Email sending finished. Success: %d, Errors: %d",
            report.success_count,
            report.error_count,
        )
        return report
