from .bills import router as bills_router
from .payments import router as payments_router
from .credits import router as credits_router

__all__ = ["bills_router", "payments_router", "credits_router"]
