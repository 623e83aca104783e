from .auth import router as auth_router
from .qr import router as qr_router
from .player import router as player_router
from .sites import router as sites_router
from .leaderboard import router as leaderboard_router
from .claims import router as claims_router
from .admin import router as admin_router

__all__ = [
    "auth_router", "qr_router", "player_router", "sites_router",
    "leaderboard_router", "claims_router", "admin_router",
]
