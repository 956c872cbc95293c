# app/notifications.py

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Callable, Optional

from app.config import FRONTEND_URL, MAIL_FROM, MAIL_PASSWORD, MAIL_PORT, MAIL_SERVER, MAIL_USERNAME

logger = logging.getLogger(__name__)


def _compose(to_email: str, subject: str, text: str, html: Optional[str]) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = MAIL_FROM
    message["To"] = to_email
    # clients render the last part they understand
    message.attach(MIMEText(text, "plain"))
    if html:
        message.attach(MIMEText(html, "html"))
    return message


def send_email(to_email: str, subject: str, body_text: str, body_html: Optional[str] = None) -> bool:
    """Best-effort SMTP delivery; False when mail is unconfigured or the server refuses."""
    if not to_email:
        logger.warning("Email '%s' has no recipient, not sent", subject)
        return False
    if not MAIL_USERNAME or not MAIL_FROM:
        logger.warning("Mail is not configured. Skipping email to %s", to_email)
        return False

    message = _compose(to_email, subject, body_text, body_html)
    try:
        with smtplib.SMTP(MAIL_SERVER, MAIL_PORT, timeout=10) as server:
            server.starttls()
            server.login(MAIL_USERNAME, MAIL_PASSWORD)
            server.send_message(message)
    except (smtplib.SMTPException, OSError):
        logger.exception("Email '%s' to %s failed", subject, to_email)
        return False

    logger.info("Email '%s' sent to %s", subject, to_email)
    return True


BASE_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{{subject}}</title>
  <style>
    body { background-color: #f8fafc; margin: 0; padding: 0; font-family: 'Inter', -apple-system, sans-serif; color: #334155; line-height: 1.6; }
    .email-wrapper { max-width: 600px; margin: 0 auto; padding: 24px; }
    .email-container { background-color: #ffffff; border-radius: 12px; overflow: hidden; box-shadow: 0 4px 12px rgba(0, 0, 0, 0.05); }
    .header { background-color: #4361ee; color: #ffffff; padding: 24px; text-align: center; font-size: 22px; font-weight: 600; }
    .content { padding: 24px; }
    .info-box { background-color: #f1f5f9; border-radius: 8px; padding: 16px; margin: 16px 0; }
    .button { display: inline-block; background-color: #4361ee; color: #ffffff !important; text-decoration: none; padding: 12px 24px; border-radius: 8px; font-weight: 600; }
    .footer { font-size: 12px; color: #94a3b8; text-align: center; padding: 16px; }
  </style>
</head>
<body>
  <div class="email-wrapper">
    <div class="email-container">
      <div class="header">{{header_title}}</div>
      <div class="content">
        <p>Hello {{username}},</p>
        <p>{{message}}</p>
        {{additional_content}}
        <p style="text-align: center;"><a class="button" href="{{action_url}}">{{action_text}}</a></p>
      </div>
      <div class="footer">This email was sent to {{email}}.</div>
    </div>
  </div>
</body>
</html>
"""


def render_email(subject: str, header_title: str, username: str, message: str,
                 action_url: str, action_text: str, to_email: str, additional_content: str = "") -> str:
    return BASE_HTML_TEMPLATE.replace("{{subject}}", subject)\
        .replace("{{header_title}}", header_title)\
        .replace("{{username}}", username)\
        .replace("{{message}}", message)\
        .replace("{{additional_content}}", additional_content)\
        .replace("{{action_url}}", action_url)\
        .replace("{{action_text}}", action_text)\
        .replace("{{email}}", to_email)


def send_welcome_email(to_email: str, display_name: str) -> bool:
    """
    Sends a welcome email to a newly registered user.
    """
    subject = "Welcome to your Daily Planner!"

    body_text = (
        f"Hello {display_name},\n\n"
        "Thank you for signing up! Your first planner is one click away:\n"
        f"{FRONTEND_URL}\n\n"
        "Happy Planning!"
    )
    welcome_content = """
    <div class="info-box">
      <ul>
        <li>Create a planner and add schedule, to-do and habit sections</li>
        <li>Share planners with friends or colleagues</li>
        <li>Ask the assistant for meal plans, schedules and goals</li>
      </ul>
    </div>
    """
    body_html = render_email(
        subject, "Welcome!", display_name,
        "Thank you for signing up. We're excited to have you on board.",
        FRONTEND_URL, "Open your planner", to_email, welcome_content,
    )

    success = send_email(to_email=to_email, subject=subject, body_text=body_text, body_html=body_html)
    if success:
        logger.info("Welcome email sent to %s", to_email)
    return success


def send_share_invitation_email(to_email: str, display_name: str, inviter_name: str,
                                planner_title: str, permission: str) -> bool:
    """
    Tells a user that a planner has been shared with them.

    :param permission: 'view' or 'edit', shown in the email body.
    """
    subject = f"{inviter_name} shared a planner with you"
    invitations_url = f"{FRONTEND_URL}/invitations"

    body_text = (
        f"Hello {display_name},\n\n"
        f"{inviter_name} invited you to the planner \"{planner_title}\" with {permission} access.\n\n"
        f"Accept or decline the invitation here:\n{invitations_url}\n"
    )
    invite_content = f"""
    <div class="info-box">
      <h4 style="margin: 0 0 8px;">{planner_title}</h4>
      <p style="margin: 0;">Invited by <strong>{inviter_name}</strong> with <strong>{permission}</strong> access</p>
    </div>
    """
    body_html = render_email(
        subject, "Planner Invitation", display_name,
        f"<strong>{inviter_name}</strong> has shared a planner with you.",
        invitations_url, "View Invitation", to_email, invite_content,
    )

    success = send_email(to_email=to_email, subject=subject, body_text=body_text, body_html=body_html)
    if success:
        logger.info("Share invitation email sent to %s", to_email)
    else:
        logger.error("Failed to send share invitation email to %s", to_email)
    return success


def send_password_changed_email(to_email: str, display_name: str) -> bool:
    subject = "Your password was changed"
    body_text = (
        f"Hello {display_name},\n\n"
        "The password of your account was just changed and every other session was signed out.\n"
        "If this wasn't you, reset your password immediately."
    )
    body_html = render_email(
        subject, "Password Changed", display_name,
        "The password of your account was just changed and every other session was signed out. "
        "If this wasn't you, reset your password immediately.",
        FRONTEND_URL, "Open your account", to_email,
    )
    return send_email(to_email=to_email, subject=subject, body_text=body_text, body_html=body_html)


def notify_quietly(description: str, send: Callable[..., Any], *args, **kwargs) -> Optional[Any]:
    """
    Runs a best-effort notification. A failure is logged and swallowed so that
    it never undoes or fails the operation that triggered it.
    """
    try:
        return send(*args, **kwargs)
    except Exception as e:
        logger.exception("Notification '%s' failed: %s", description, str(e))
        return None
