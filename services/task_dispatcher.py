# Side-effect dispatch for the Collabmart Platform
# Notifications, metrics recompute and emails run as Celery tasks after the
# primary transaction commits. Dispatch failures are logged and dropped.

import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


# Task names registered in tasks/side_effects.py
SEND_NOTIFICATION = "tasks.side_effects.send_notification"
RECOMPUTE_CAMPAIGN_METRICS = "tasks.side_effects.recompute_campaign_metrics"
SEND_ORDER_STATUS_EMAIL = "tasks.side_effects.send_order_status_email"


class TaskDispatcher:
    """Sends named tasks to the Celery broker."""

    def __init__(self, celery_app=None):
        self._celery_app = celery_app

    @property
    def celery_app(self):
        if self._celery_app is None:
            from tasks.celery_app import celery_app
            self._celery_app = celery_app
        return self._celery_app

    def dispatch(self, task_name: str, **kwargs: Any) -> None:
        try:
            self.celery_app.send_task(task_name, kwargs=kwargs)
            logger.debug(f"Dispatched {task_name} {kwargs}")
        except Exception as e:
            # Broker outages must not fail a request whose write already committed
            logger.error(f"Failed to dispatch {task_name} {kwargs}: {e}")


class PendingTasks:
    """Collects tasks during a unit of work and releases them after commit.

    Usage:
        pending = PendingTasks(dispatcher)
        pending.add(SEND_NOTIFICATION, ...)
        db.commit()
        pending.flush()
    """

    def __init__(self, dispatcher: TaskDispatcher):
        self.dispatcher = dispatcher
        self._tasks: List[Tuple[str, Dict[str, Any]]] = []

    def add(self, task_name: str, **kwargs: Any) -> None:
        self._tasks.append((task_name, kwargs))

    def notify(
        self,
        recipient_id: str,
        recipient_type: str,
        type: str,
        title: str,
        body: str,
        related_id: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> None:
        self.add(
            SEND_NOTIFICATION,
            recipient_id=recipient_id,
            recipient_type=recipient_type,
            type=type,
            title=title,
            body=body,
            related_id=related_id,
            data=data or {},
        )

    def discard(self) -> None:
        self._tasks = []

    def flush(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task_name, kwargs in tasks:
            self.dispatcher.dispatch(task_name, **kwargs)


_dispatcher: Optional[TaskDispatcher] = None


def get_task_dispatcher() -> TaskDispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = TaskDispatcher()
    return _dispatcher
