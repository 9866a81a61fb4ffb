"""
Service container and shared API dependencies
"""

from typing import Optional
from fastapi import HTTPException, status

from ..config import get_config
from ..errors import (
    KrishiError, ValidationError, NotFoundError, PreconditionError,
    InvalidTransitionError, MissingDueDateError, PermissionDeniedError
)
from ..events import EventDispatcher
from ..lifecycle import LoanLifecycleManager
from ..notifications import DueReminderPoller, NotificationAuthority, create_notification_authority
from ..storage import KeyValueStore, create_store


class KrishiSystem:
    """Loan tracker with all components initialized"""

    def __init__(
        self,
        use_sqlite: Optional[bool] = None,
        store: Optional[KeyValueStore] = None,
        notifier: Optional[NotificationAuthority] = None,
        processing_delay: Optional[float] = None
    ):
        config = get_config()
        if store is None:
            if use_sqlite is None:
                use_sqlite = config.use_sqlite
            store = create_store(use_sqlite, config.database_path)

        self.store = store
        self.events = EventDispatcher()
        self.notifier = notifier or create_notification_authority()
        self.manager = LoanLifecycleManager.build(
            self.store,
            self.notifier,
            events=self.events,
            processing_delay=processing_delay
        )
        self.poller = DueReminderPoller(
            self.manager.reminders,
            self.notifier,
            clock=self.manager.loans.clock,
            events=self.events
        )

    def close(self) -> None:
        self.store.close()


_system: Optional[KrishiSystem] = None


def get_system() -> KrishiSystem:
    """FastAPI dependency returning the process-wide system"""
    global _system
    if _system is None:
        _system = KrishiSystem()
    return _system


ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    MissingDueDateError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PreconditionError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
}


def http_error(exc: KrishiError) -> HTTPException:
    """Translate a domain error into an HTTP error response"""
    code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=exc.to_dict())
