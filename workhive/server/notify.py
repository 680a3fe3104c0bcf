"""Outbound notifications (invitations, assignments, new workspaces, reset codes).

Notifications are fire-and-forget: routers schedule :func:`deliver` as a
FastAPI background task after the change has been committed.  A failed send
is logged and never reaches the request that triggered it.

When ``smtp_host`` is not configured the :class:`LogNotifier` is used, which
only writes the message to the log.
"""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from functools import partial
from typing import TYPE_CHECKING, Protocol

from anyio import to_thread
from loguru import logger

if TYPE_CHECKING:
    from workhive.server.db.tables import User, Workspace
    from workhive.server.settings import HiveSettings


@dataclass(frozen=True)
class Notification:
    recipient: str
    subject: str
    body: str


class Notifier(Protocol):
    async def send(self, notification: Notification) -> None: ...


class LogNotifier:
    async def send(self, notification: Notification) -> None:
        logger.info("Notification to {}: {}", notification.recipient, notification.subject)


class SmtpNotifier:
    """Send notifications as plain-text email through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        *,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _message(self, notification: Notification) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = notification.recipient
        message["Subject"] = notification.subject
        message.set_content(notification.body)
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

    async def send(self, notification: Notification) -> None:
        await to_thread.run_sync(partial(self._send_sync, self._message(notification)))
        logger.debug("Email sent to {}: {}", notification.recipient, notification.subject)


def build_notifier(settings: HiveSettings) -> Notifier:
    if not settings.smtp_host:
        return LogNotifier()
    return SmtpNotifier(
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_sender,
        username=settings.smtp_username,
        password=settings.smtp_password.get_secret_value() if settings.smtp_password else None,
        use_tls=settings.smtp_use_tls,
    )


async def deliver(notifier: Notifier, notification: Notification) -> None:
    """Send *notification*, logging instead of raising on failure."""
    try:
        await notifier.send(notification)
    except Exception:
        logger.exception("Failed to send notification to {}: {}", notification.recipient, notification.subject)


# -- Messages -------------------------------------------------------------------


def _display_name(user: User) -> str:
    return f"{user.first_name} {user.last_name}".strip() or user.email


def workspace_created(owner: User, workspace: Workspace) -> Notification:
    return Notification(
        recipient=owner.email,
        subject=f"Your workspace {workspace.name} is ready",
        body=(
            f"Hi {_display_name(owner)},\n\n"
            f"The workspace '{workspace.name}' ({workspace.slug}) has been created and you are its owner.\n"
        ),
    )


def workspace_invitation(user: User, workspace: Workspace, role: str, inviter: User) -> Notification:
    return Notification(
        recipient=user.email,
        subject=f"You have been added to {workspace.name}",
        body=(
            f"Hi {_display_name(user)},\n\n"
            f"{_display_name(inviter)} added you to the workspace '{workspace.name}' as {role}.\n"
        ),
    )


def task_assigned(user: User, ticket_id: str, title: str, assigner: User) -> Notification:
    return Notification(
        recipient=user.email,
        subject=f"[{ticket_id}] {title}",
        body=f"Hi {_display_name(user)},\n\n{_display_name(assigner)} assigned {ticket_id} '{title}' to you.\n",
    )


def password_reset_code(user: User, code: str, ttl_minutes: int) -> Notification:
    return Notification(
        recipient=user.email,
        subject="Your password reset code",
        body=(
            f"Hi {_display_name(user)},\n\n"
            f"Your password reset code is {code}. It expires in {ttl_minutes} minutes.\n"
            "If you did not ask to reset your password, you can ignore this email.\n"
        ),
    )
