import smtplib
from email.message import EmailMessage

from app.core.config import get_settings, get_smtp_ctx

settings = get_settings()


class EmailNotConfigured(RuntimeError):
    pass


def _render_invitation(to_email: str, link: str, ttl_hours: int) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = "You're invited to create an account"
    msg["From"] = settings.mail_from
    msg["To"] = to_email
    msg.set_content(
        "Hi,\n\n"
        "You have been invited to create your own account. "
        f"Register here: {link}\n\n"
        f"This link expires in {ttl_hours} hours.\n\n"
        "If you did not expect this email, you can safely ignore it.\n"
    )
    msg.add_alternative(
        f"""<p>Hi,</p>
            <p>You have been invited to create your own account.</p>
            <p>Follow this link to register: <a href=\"{link}\">{link}</a></p>
            <p>This link expires in {ttl_hours} hours.</p>
            <p>If you did not expect this email, you can safely ignore it.</p>""",
        subtype="html",
    )
    return msg


def send_invitation_email(to_email: str, link: str, ttl_hours: int) -> None:
    if not settings.smtp_host or not settings.mail_from:
        raise EmailNotConfigured("SMTP_HOST and MAIL_FROM must be set")

    msg = _render_invitation(to_email, link, ttl_hours)
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=20) as smtp:
        smtp.ehlo()
        if settings.smtp_starttls:
            smtp.starttls(context=get_smtp_ctx())
            smtp.ehlo()
        if settings.smtp_username:
            smtp.login(settings.smtp_username, settings.smtp_password or "")
        smtp.send_message(msg)
