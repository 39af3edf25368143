"""Best-effort outbound email. Nothing in here may raise into a request."""

import logging
import smtplib
from email.message import EmailMessage

from config import get_settings
from schemas import TaskRecord, UserRecord

logger = logging.getLogger(__name__)

SIGNATURE = "\n\nBest regards,\nTaskFlow Team"


def send_email(to: str, subject: str, body: str) -> bool:
    settings = get_settings()
    if not settings.smtp_host:
        logger.info("[Email disabled] To: %s | Subject: %s", to, subject)
        return False

    msg = EmailMessage()
    msg["From"] = settings.email_from
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
            smtp.starttls()
            if settings.smtp_user:
                smtp.login(settings.smtp_user, settings.smtp_password)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email to %s (%s)", to, subject)
        return False
    logger.info("Sent email to %s | Subject: %s", to, subject)
    return True


def notify_user_status(user: UserRecord) -> bool:
    body = f"Hi {user.name},\n\nYour account has been {user.status}.{SIGNATURE}"
    return send_email(user.email, f"Account {user.status}", body)


def notify_task_assigned(assignee: UserRecord, task: TaskRecord) -> bool:
    kind = "subtask" if task.parent_task_id else "task"
    body = (
        f"Hi {assignee.name},\n\n"
        f'You have been assigned a new {kind}: "{task.title}"\n\n'
        f"Description: {task.description}\n"
        f"Due Date: {task.due_date.isoformat()}"
        f"{SIGNATURE}"
    )
    return send_email(assignee.email, f"New {kind.capitalize()} Assigned", body)
