import logging
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Transactional email via SendGrid.
    Without SENDGRID_API_KEY / MAIL_FROM every send is logged instead (dev mode).
    """

    def __init__(self, api_key: str | None = None, sender_email: str | None = None):
        self.sendgrid_api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.sender_email = sender_email if sender_email is not None else settings.MAIL_FROM

        self.enabled = bool(self.sendgrid_api_key and self.sender_email)
        if not self.enabled:
            logger.warning("📧 Email service not configured. Missing SENDGRID_API_KEY or MAIL_FROM.")
        else:
            logger.info(f"📧 Email service configured and ready. Sender: {self.sender_email}")

    def send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Synchronous send (works with FastAPI BackgroundTasks)."""
        if not self.enabled:
            logger.info(f"📨 [Mock Email] To: {to_email} | Subject: {subject}")
            return True

        try:
            message = Mail(
                from_email=self.sender_email,
                to_emails=to_email,
                subject=subject,
                html_content=html_content,
            )
            sg = SendGridAPIClient(self.sendgrid_api_key)
            response = sg.send(message)
            logger.info(f"✅ Email sent to {to_email}. Status: {response.status_code}")
            return True
        except Exception as e:
            logger.exception("❌ Failed to send email to %s: %s", to_email, e)
            return False

    # ============================================================
    # ✅ Payment confirmation
    # ============================================================
    def send_payment_confirmation(
        self,
        to_email: str,
        member_name: str,
        amount: float,
        currency: str,
        plan_name: str,
        org_name: str,
    ) -> bool:
        subject = f"✅ Payment received - {org_name}"
        html_content = f"""
        <div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <h2>Hello {member_name},</h2>
            <p>Your payment of <strong>{amount:,.2f} {currency}</strong> for
            <strong>{plan_name}</strong> has been recorded by <strong>{org_name}</strong>.</p>
            <p>Thank you for your contribution.</p>
        </div>
        """
        return self.send_email(to_email, subject, html_content)


# ============================================================
# ✅ Global instance for app-wide import
# ============================================================
email_service = EmailService()
