# Collabmart Routers Module
# Exports all modular API routers

from routers.campaigns import router as campaigns_router
from routers.collaborations import router as collaborations_router
from routers.campaign_content import router as campaign_content_router
from routers.checkout import router as checkout_router
from routers.orders import router as orders_router
from routers.notifications import router as notifications_router

__all__ = [
    'campaigns_router',
    'collaborations_router',
    'campaign_content_router',
    'checkout_router',
    'orders_router',
    'notifications_router',
]
