from .auth import router as auth_router
from .invites import router as invites_router
from .links import router as links_router

__all__ = ["auth_router", "invites_router", "links_router"]
