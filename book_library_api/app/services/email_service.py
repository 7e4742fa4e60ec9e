"""
Outbound email notifications.

Messages are posted as JSON to an HTTP email provider configured via
``EMAIL_API_URL``/``EMAIL_API_KEY``.  The blocking ``requests`` call
runs in a worker thread so it never stalls the event loop.

Notifications are side effects of other operations (a user registers,
a book is added) and must never affect their outcome.  ``dispatch``
therefore runs a send as a detached task: the caller does not await
it, and any failure is written to the log instead of propagating.
"""

import asyncio
import functools
import html
import logging
from typing import Any, Coroutine, Dict, Set

import requests

from book_library_api.app.core.config import settings


logger = logging.getLogger(__name__)


def _layout(accent: str, heading: str, body: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="background-color: {accent}; color: white; padding: 20px; text-align: center;">
        <h1>Book Library Manager</h1>
      </div>
      <div style="padding: 30px; background-color: #f8fafc;">
        <h2 style="color: #1f2937;">{heading}</h2>
        {body}
      </div>
      <div style="background-color: #e5e7eb; padding: 20px; text-align: center; color: #6b7280;">
        <p>Happy reading!</p>
        <p><small>This email was sent from Book Library Manager</small></p>
      </div>
    </div>
    """


class EmailService:
    """Service sending notification emails through the HTTP provider."""

    # Strong references to in-flight notifications; the event loop only
    # keeps weak ones, so an unreferenced task could vanish mid-send.
    _pending: Set[asyncio.Task] = set()

    @classmethod
    async def send_email(cls, to: str, subject: str, html_body: str) -> None:
        """Deliver a single HTML email.

        Does nothing (apart from logging) when no provider URL is
        configured.  Raises ``requests.RequestException`` when the
        provider cannot be reached or rejects the message.
        """
        if not settings.email_api_url:
            logger.info("Email provider not configured; skipping '%s' to %s", subject, to)
            return
        payload: Dict[str, Any] = {
            "from": {"email": settings.email_from},
            "personalizations": [{"to": [{"email": to}], "subject": subject}],
            "content": [{"type": "text/html", "value": html_body}],
        }
        headers = {"Content-Type": "application/json"}
        if settings.email_api_key:
            headers["Authorization"] = f"Bearer {settings.email_api_key}"
        response = await asyncio.to_thread(
            requests.post,
            settings.email_api_url,
            json=payload,
            headers=headers,
            timeout=settings.email_timeout,
        )
        response.raise_for_status()
        logger.info("Email '%s' sent to %s", subject, to)

    @classmethod
    async def send_welcome_email(cls, to: str, name: str) -> None:
        body = f"""
        <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">
          Thank you for joining Book Library Manager, {html.escape(name)}!
          You can now start organizing your personal book collection:
          add books, track your reading progress, search and filter your
          library and view reading statistics.
        </p>
        """
        await cls.send_email(
            to,
            "Welcome to Book Library Manager!",
            _layout("#4f46e5", f"Welcome, {html.escape(name)}!", body),
        )

    @classmethod
    async def send_book_added_email(cls, to: str, name: str, book_title: str) -> None:
        body = f"""
        <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">
          Hello {html.escape(name)}, you've successfully added a new book to your library:
        </p>
        <div style="background-color: white; border: 2px solid #e5e7eb; border-radius: 8px; padding: 20px; margin: 20px 0;">
          <h3 style="color: #1f2937; margin-top: 0;">{html.escape(book_title)}</h3>
        </div>
        <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">
          Don't forget to update your reading status as you progress through your books!
        </p>
        """
        await cls.send_email(
            to,
            f"New Book Added: {book_title}",
            _layout("#059669", "New Book Added!", body),
        )

    @classmethod
    def dispatch(cls, coro: Coroutine[Any, Any, None], description: str) -> asyncio.Task:
        """Run ``coro`` in the background without joining the caller.

        Must be called from inside a running event loop.  Failures are
        logged under ``description`` and never re-raised.

        Parameters
        ----------
        coro : Coroutine
            The send to run, e.g. ``send_welcome_email(...)``.
        description : str
            Short label used in the log lines.

        Returns
        -------
        asyncio.Task
            Only inspected by tests; request handlers ignore it.
        """
        task = asyncio.create_task(coro)
        cls._pending.add(task)
        task.add_done_callback(functools.partial(cls._on_done, description))
        return task

    @classmethod
    def _on_done(cls, description: str, task: asyncio.Task) -> None:
        cls._pending.discard(task)
        if task.cancelled():
            logger.warning("Notification cancelled: %s", description)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failed to send %s: %s", description, exc, exc_info=exc)
