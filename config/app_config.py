import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

# Checkout
SHIPPING_RATE = Decimal(os.getenv("SHIPPING_RATE", "0.05"))
DEFAULT_DELIVERY_DAYS = int(os.getenv("DEFAULT_DELIVERY_DAYS", 5))

# Optimistic concurrency
PROGRESS_CAS_ATTEMPTS = int(os.getenv("PROGRESS_CAS_ATTEMPTS", 5))
UPSERT_ATTEMPTS = int(os.getenv("UPSERT_ATTEMPTS", 3))

# Side effects (Celery)
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"
SIDE_EFFECT_MAX_RETRIES = int(os.getenv("SIDE_EFFECT_MAX_RETRIES", 5))
SIDE_EFFECT_RETRY_BACKOFF = int(os.getenv("SIDE_EFFECT_RETRY_BACKOFF", 30))  # seconds

# Email
EMAIL_API_URL = os.getenv("EMAIL_API_URL", "")
EMAIL_API_KEY = os.getenv("EMAIL_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "orders@collabmart.local")

# HTTP
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
