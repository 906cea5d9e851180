# Services Module for the Collabmart Platform
# Business logic: collaboration lifecycle, content workflow, checkout, orders

from services.errors import (
    MarketplaceError,
    NotFound,
    AccessDenied,
    ValidationError,
    StateConflict,
    DuplicateCollaboration,
    InsufficientStock,
    UpstreamFailure,
)
from services.notification_service import NotificationService, NotificationType
from services.task_dispatcher import TaskDispatcher, PendingTasks, get_task_dispatcher

__all__ = [
    # Errors
    'MarketplaceError',
    'NotFound',
    'AccessDenied',
    'ValidationError',
    'StateConflict',
    'DuplicateCollaboration',
    'InsufficientStock',
    'UpstreamFailure',

    # Side effects
    'NotificationService',
    'NotificationType',
    'TaskDispatcher',
    'PendingTasks',
    'get_task_dispatcher',
]
