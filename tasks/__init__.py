# Background tasks for the Collabmart Platform
# Best-effort side effects (notifications, metrics, emails) run here, retried by Celery.
