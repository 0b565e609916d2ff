"""Report email composition and SMTP delivery."""

from email.message import EmailMessage
from html import escape

import aiosmtplib
import structlog

from librarian.store.keys import epoch_millis
from librarian.store.records import BatchStatus
from librarian.utils.exceptions import MailDeliveryError

logger = structlog.get_logger(__name__)

REPORT_SUBJECT = "Books Bulk Insertion Report"

SUCCESS_NOTE = (
    '<p style="color: green;"><strong>Success!</strong> '
    "All books were inserted successfully.</p>"
)
FAILURE_NOTE = (
    '<p style="color: red;"><strong>Note:</strong> Some books failed to insert. '
    "Please check the attached PDF report for detailed error information.</p>"
)


def report_attachment_name(user_id: str, millis: int | None = None) -> str:
    return f"books-report-{user_id}-{millis if millis is not None else epoch_millis()}.pdf"


def render_html_body(status: BatchStatus, user_id: str) -> str:
    """HTML summary of the batch, styled by all-success vs. any-failure."""
    outcome = FAILURE_NOTE if status.has_failures else SUCCESS_NOTE
    return f"""
<div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <h2>{REPORT_SUBJECT}</h2>
  <p>Dear User,</p>
  <p>Your bulk book insertion process has been completed. Here's a summary:</p>
  <div style="background-color: #f9f9f9; padding: 15px; border-radius: 5px; margin: 20px 0;">
    <h3>Summary</h3>
    <ul style="list-style-type: none; padding: 0;">
      <li><strong>User ID:</strong> {escape(user_id)}</li>
      <li><strong>Total Books:</strong> {status.total_books}</li>
      <li><strong>Successful:</strong> <span style="color: green;">{status.success_count}</span></li>
      <li><strong>Failed:</strong> <span style="color: red;">{status.failure_count}</span></li>
      <li><strong>Success Rate:</strong> {status.success_rate}</li>
      <li><strong>Process Time:</strong> {escape(status.timestamp or "unknown")}</li>
    </ul>
  </div>
  {outcome}
  <p>Please find the detailed report attached as a PDF file.</p>
  <p>Best regards,<br>Books API Team</p>
  <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
  <p style="font-size: 12px; color: #666;">
    This is an automated message. Please do not reply to this email.
  </p>
</div>
"""


def render_text_body(status: BatchStatus, user_id: str) -> str:
    outcome = (
        "Some books failed to insert. See the attached PDF report for details."
        if status.has_failures
        else "All books were inserted successfully."
    )
    return (
        "Your bulk book insertion process has been completed.\n\n"
        f"User ID: {user_id}\n"
        f"Total Books: {status.total_books}\n"
        f"Successful: {status.success_count}\n"
        f"Failed: {status.failure_count}\n"
        f"Success Rate: {status.success_rate}\n"
        f"Process Time: {status.timestamp or 'unknown'}\n\n"
        f"{outcome}\n"
    )


def build_report_message(
    status: BatchStatus,
    user_id: str,
    recipient: str,
    sender: str,
    pdf: bytes,
    report_id: int | None = None,
) -> EmailMessage:
    """
    Compose the report email with the PDF attached.

    Args:
        status: Status record being reported
        user_id: Owner of the batch
        recipient: Destination address
        sender: From address
        pdf: Rendered report
        report_id: Millisecond id printed in the PDF footer; names the attachment

    Returns:
        Multipart message (text, HTML, PDF attachment)
    """
    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = REPORT_SUBJECT
    message.set_content(render_text_body(status, user_id))
    message.add_alternative(render_html_body(status, user_id), subtype="html")
    message.add_attachment(
        pdf,
        maintype="application",
        subtype="pdf",
        filename=report_attachment_name(user_id, report_id),
    )
    return message


class ReportMailer:
    """SMTP transport for report emails.

    Holds one connection for the life of the worker; it is opened on first
    use and reopened if the server dropped it between runs.
    """

    def __init__(
        self,
        hostname: str,
        port: int,
        username: str | None = None,
        password: str | None = None,
        start_tls: bool = True,
        timeout: float = 30.0,
    ):
        self.hostname = hostname
        self.port = port
        self.client = aiosmtplib.SMTP(
            hostname=hostname,
            port=port,
            username=username,
            password=password,
            start_tls=start_tls,
            timeout=timeout,
        )

    async def _ensure_connected(self) -> None:
        if not self.client.is_connected:
            await self.client.connect()

    async def send(self, message: EmailMessage) -> str:
        """
        Deliver a message.

        Returns:
            Server response to the DATA command

        Raises:
            MailDeliveryError: If connecting or sending fails
        """
        try:
            await self._ensure_connected()
            _, response = await self.client.send_message(message)
        except aiosmtplib.SMTPException as e:
            raise MailDeliveryError(f"Failed to send email to {message['To']}: {e}") from e

        logger.info("report_email_sent", recipient=message["To"], response=response)
        return response

    async def verify(self) -> None:
        """Connect and issue NOOP to check the transport configuration."""
        try:
            await self._ensure_connected()
            await self.client.noop()
        except aiosmtplib.SMTPException as e:
            raise MailDeliveryError(
                f"SMTP server {self.hostname}:{self.port} rejected connection: {e}"
            ) from e
        logger.info("email_configuration_verified", host=self.hostname, port=self.port)

    async def close(self) -> None:
        if self.client.is_connected:
            try:
                await self.client.quit()
            except aiosmtplib.SMTPException:
                self.client.close()
        logger.info("mail_transport_closed")
