from cardarena.api.battles import router as battles_router
from cardarena.api.cards import router as cards_router
from cardarena.api.health import router as health_router
from cardarena.api.notifications import router as notifications_router

__all__ = [
    "battles_router",
    "cards_router",
    "health_router",
    "notifications_router",
]
