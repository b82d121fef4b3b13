"""Complainant email notifications.

The engine treats notification delivery as fire-and-forget: callers
bound every dispatch with a timeout and log, never raise, on failure.

:class:`EmailNotifier` sends multipart (plain text + HTML) mail over SMTP
in a worker thread.  When no SMTP host is configured it logs the message
instead, which is the development default.
Bodies are rendered from the jinja2 templates under ``templates/emails``;
HTML templates are autoescaped.
"""

from __future__ import annotations

import asyncio
import smtplib
from collections.abc import Awaitable, Callable
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import jinja2
import structlog
from pydantic import BaseModel

from src.models.complaint import Complaint
from src.services.ledger import status_label

logger = structlog.get_logger(__name__)

templates_path = Path(__file__).parent / "templates" / "emails"
template_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(searchpath=templates_path),
    autoescape=jinja2.select_autoescape(enabled_extensions=("html",), default_for_string=True),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


class ComplaintNotification(BaseModel):
    """Payload for complainant-facing emails."""

    tracking_id: str
    status: str
    department: str
    category: str
    complainant_name: str
    complainant_email: str
    description: str
    note: str | None = None

    @classmethod
    def for_complaint(cls, complaint: Complaint, note: str | None = None) -> ComplaintNotification:
        return cls(
            tracking_id=complaint.tracking_id,
            status=complaint.status,
            department=complaint.department,
            category=complaint.category,
            complainant_name=complaint.name,
            complainant_email=complaint.email,
            description=complaint.description,
            note=note,
        )


@runtime_checkable
class Notifier(Protocol):
    async def send_complaint_confirmation(self, notification: ComplaintNotification) -> None: ...

    async def send_status_update(self, notification: ComplaintNotification) -> None: ...


async def dispatch_best_effort(
    send: Callable[[], Awaitable[None]],
    *,
    timeout: float,
    tracking_id: str,
    kind: str,
) -> bool:
    """Run one notification send with a deadline.  Never raises.

    Returns *True* when the send completed.
    """
    try:
        await asyncio.wait_for(send(), timeout)
    except TimeoutError:
        logger.warning("notifications.dispatch.timeout", tracking_id=tracking_id, kind=kind, timeout=timeout)
        return False
    except Exception:
        logger.warning("notifications.dispatch.failed", tracking_id=tracking_id, kind=kind, exc_info=True)
        return False
    return True


class NullNotifier:
    """Notifier that drops everything.  Used when notifications are disabled."""

    async def send_complaint_confirmation(self, notification: ComplaintNotification) -> None:
        return None

    async def send_status_update(self, notification: ComplaintNotification) -> None:
        return None


# ---------------------------------------------------------------------------
# Email rendering
# ---------------------------------------------------------------------------


def _summary(description: str, limit: int = 280) -> str:
    text = " ".join(description.split())
    return text if len(text) <= limit else text[: limit - 3].rstrip() + "..."


def _context(n: ComplaintNotification, portal_url: str) -> dict[str, Any]:
    return {
        "name": n.complainant_name,
        "tracking_id": n.tracking_id,
        "status": status_label(n.status),
        "department": n.department,
        "category": n.category,
        "summary": _summary(n.description),
        "note": n.note,
        "track_url": f"{portal_url.rstrip('/')}/track/{n.tracking_id}",
    }


def _render(name: str, context: dict[str, Any]) -> tuple[str, str]:
    text = template_env.get_template(f"{name}.txt").render(**context)
    body = template_env.get_template(f"{name}.html").render(**context)
    return text, body


def render_confirmation(n: ComplaintNotification, portal_url: str) -> tuple[str, str, str]:
    """Return ``(subject, text_body, html_body)`` for a filing confirmation."""
    text, body = _render("confirmation", _context(n, portal_url))
    return f"Complaint Filed Successfully - {n.tracking_id}", text, body


def render_status_update(n: ComplaintNotification, portal_url: str) -> tuple[str, str, str]:
    text, body = _render("status_update", _context(n, portal_url))
    return f"Complaint Status Updated - {n.tracking_id}", text, body


# ---------------------------------------------------------------------------
# SMTP notifier
# ---------------------------------------------------------------------------


class EmailNotifier:
    """SMTP-backed :class:`Notifier`.

    Parameters
    ----------
    host, port, user, password:
        SMTP connection details.  An empty *host* switches to log-only
        mode.
    sender:
        ``From`` header.
    portal_url:
        Base URL used to build tracking links.
    use_tls:
        Issue ``STARTTLS`` after connecting.
    timeout:
        Socket timeout for the SMTP session, in seconds.
    """

    __slots__ = ("_host", "_password", "_port", "_portal_url", "_sender", "_timeout", "_use_tls", "_user")

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        sender: str,
        portal_url: str,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._sender = sender
        self._portal_url = portal_url
        self._use_tls = use_tls
        self._timeout = timeout

    async def send_complaint_confirmation(self, notification: ComplaintNotification) -> None:
        subject, text, body = render_confirmation(notification, self._portal_url)
        await self._send(notification.complainant_email, subject, text, body)

    async def send_status_update(self, notification: ComplaintNotification) -> None:
        subject, text, body = render_status_update(notification, self._portal_url)
        await self._send(notification.complainant_email, subject, text, body)

    async def _send(self, to: str, subject: str, text: str, body: str) -> None:
        if not self._host:
            logger.info("notifications.email.dev_mode", to=to, subject=subject)
            return

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._sender
        message["To"] = to
        message.set_content(text)
        message.add_alternative(body, subtype="html")

        await asyncio.to_thread(self._deliver, message)
        logger.info("notifications.email.sent", to=to, subject=subject)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(message)
