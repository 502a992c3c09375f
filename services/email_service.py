# services/email_service.py
import logging
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Outgoing mail for WorkBoard, sent through SendGrid.
    Without SENDGRID_API_KEY and MAIL_FROM every message is only logged.
    """

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None):
        self.sendgrid_api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.sender_email = sender if sender is not None else settings.MAIL_FROM

        self.enabled = bool(self.sendgrid_api_key and self.sender_email)
        if not self.enabled:
            logger.warning("📧 Email service not configured. Missing SENDGRID_API_KEY or MAIL_FROM.")
        else:
            logger.info("📧 Email service configured and ready. Sender: %s", self.sender_email)

    @staticmethod
    def build_invite_link(token: str) -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/join?token={token}"

    # ============================================================
    # ✅ Workspace invitation (synchronous, run via BackgroundTasks)
    # ============================================================
    def send_workspace_invite(
        self,
        to_email: str,
        invite_link: str,
        role: str,
        workspace_name: str,
        invited_by: str = "A workspace admin",
        expires_in_days: int = 7,
    ) -> bool:
        role_label = role.replace("_", " ").title()

        if not self.enabled:
            logger.info("📨 [Mock Email] To: %s", to_email)
            logger.info("Link: %s", invite_link)
            logger.info("Role: %s | Workspace: %s", role_label, workspace_name)
            return True

        subject = f"You're invited to join {workspace_name} on WorkBoard as {role_label}"
        html_content = f"""
        <div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <h2>Hello!</h2>
            <p><strong>{invited_by}</strong> has invited you to the workspace
            <strong>{workspace_name}</strong> on <b>WorkBoard</b> as
            <strong>{role_label}</strong>.</p>

            <p style="text-align: center; margin: 20px 0;">
                <a href="{invite_link}" style="
                    background-color: #4F46E5;
                    color: white;
                    padding: 12px 28px;
                    text-decoration: none;
                    border-radius: 6px;
                    font-weight: bold;
                    display: inline-block;
                ">Join workspace</a>
            </p>

            <p>If the button doesn't work, paste this link into your browser:</p>
            <p style="word-break: break-all; color: #555;">{invite_link}</p>

            <p><small>This invitation expires in {expires_in_days} days.</small></p>
        </div>
        """

        try:
            message = Mail(
                from_email=self.sender_email,
                to_emails=to_email,
                subject=subject,
                html_content=html_content,
            )
            response = SendGridAPIClient(self.sendgrid_api_key).send(message)
            logger.info("✅ Invite email sent to %s. Status: %s", to_email, response.status_code)
            return True
        except Exception as e:
            # Mail failures never undo the invite itself
            logger.exception("❌ Failed to send invite email to %s: %s", to_email, e)
            return False


email_service = EmailService()
