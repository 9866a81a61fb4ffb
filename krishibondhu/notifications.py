"""
Notification Module

The notification authority is the boundary to whatever actually shows
alerts to the farmer (a push endpoint, a desktop notifier, or just the log
during development). It answers permission requests and delivers
fire-and-forget notifications. The due-reminder poller scans the reminder
store on start and on a fixed interval and notifies every reminder due
today.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional, Tuple
import requests

from .clock import Clock, SystemClock
from .config import get_config
from .events import EventDispatcher, DomainEvent
from .logging_config import get_logger, log_action
from .reminders import Reminder, ReminderStore


logger = get_logger("krishibondhu.notifications")


class NotificationAuthority(ABC):
    """Abstract permission-gated notification channel"""

    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask the user/OS for permission. Returns True if granted."""
        pass

    @abstractmethod
    async def notify(self, title: str, body: str) -> None:
        """Deliver a notification; no delivery confirmation"""
        pass


class LogNotificationAuthority(NotificationAuthority):
    """Development authority that writes notifications to the log"""

    def __init__(self, grant: bool = True):
        self.grant = grant
        self.sent: List[Tuple[str, str]] = []

    async def request_permission(self) -> bool:
        logger.debug(f"Notification permission {'granted' if self.grant else 'denied'}")
        return self.grant

    async def notify(self, title: str, body: str) -> None:
        if not self.grant:
            logger.debug(f"Notification suppressed without permission: {title}")
            return
        self.sent.append((title, body))
        log_action(logger, "info", f"NOTIFY {title} | {body[:100]}", action="notification.send")


class WebhookNotificationAuthority(NotificationAuthority):
    """Push notifications by POSTing JSON to a webhook endpoint"""

    def __init__(self, url: str, timeout: float = 5.0, icon: Optional[str] = None):
        self.url = url
        self.timeout = timeout
        self.icon = icon

    async def request_permission(self) -> bool:
        # Permission is implied by having a configured endpoint
        return bool(self.url)

    async def notify(self, title: str, body: str) -> None:
        if not self.url:
            return
        payload = {
            "title": title,
            "body": body,
            "icon": self.icon,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            response = await asyncio.to_thread(
                requests.post,
                self.url,
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"}
            )
            if response.status_code >= 400:
                logger.warning(f"Webhook notification rejected with HTTP {response.status_code}")
        except requests.RequestException as e:
            logger.error(f"Webhook notification failed: {e}")


def create_notification_authority() -> NotificationAuthority:
    """Build the configured authority"""
    config = get_config()
    if config.notification_webhook_url:
        return WebhookNotificationAuthority(
            config.notification_webhook_url,
            timeout=config.notification_timeout,
            icon=config.notification_icon
        )
    return LogNotificationAuthority(grant=config.notifications_auto_grant)


class DueReminderPoller:
    """
    Periodic due-today check.

    Reminders are not marked completed after notifying, so each poll on the
    due day notifies them again.
    """

    def __init__(
        self,
        reminders: ReminderStore,
        authority: NotificationAuthority,
        clock: Optional[Clock] = None,
        interval: Optional[float] = None,
        events: Optional[EventDispatcher] = None
    ):
        self.reminders = reminders
        self.authority = authority
        self.clock = clock or SystemClock()
        self.interval = get_config().reminder_poll_interval_seconds if interval is None else interval
        self.events = events
        self._stop: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    async def check_once(self) -> List[Reminder]:
        """Notify every reminder due today; returns them"""
        due = self.reminders.due_today(self.clock.now())
        for reminder in due:
            await self.authority.notify(reminder.title, reminder.body)
            if self.events is not None:
                self.events.emit(DomainEvent.REMINDER_DUE, "reminder", reminder.id, reminder.to_dict())
        if due:
            log_action(logger, "info", f"{len(due)} reminder(s) due today", action="reminder.due",
                       extra={"ids": [r.id for r in due]})
        return due

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        """Check immediately, then every interval until stop is set"""
        self._stop = stop or asyncio.Event()
        while not self._stop.is_set():
            try:
                await self.check_once()
            except Exception as e:
                # One bad poll must not end the loop
                logger.error(f"Due reminder check failed: {e}")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def start(self) -> asyncio.Task:
        """Schedule run() on the running event loop"""
        if self._task is None or self._task.done():
            self._stop = asyncio.Event()
            self._task = asyncio.create_task(self.run(self._stop))
        return self._task

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
