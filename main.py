import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from config import settings  # noqa: E402
from database import init_db  # noqa: E402
from routes import (  # noqa: E402
    auth_router, qr_router, player_router, sites_router,
    leaderboard_router, claims_router, admin_router,
)

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Prize policy: %s", settings.PRIZE_POLICY)
    yield


app = FastAPI(title="QR Hunt Service", lifespan=lifespan)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(qr_router, prefix="/qr", tags=["qr"])
app.include_router(player_router, prefix="/player", tags=["player"])
app.include_router(sites_router, prefix="/sites", tags=["sites"])
app.include_router(leaderboard_router, prefix="/leaderboard", tags=["leaderboard"])
app.include_router(claims_router, tags=["claims"])
app.include_router(admin_router, prefix="/admin", tags=["admin"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
