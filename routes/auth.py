import logging
import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from auth import authenticate_user, create_access_token, get_password_hash
from config import settings
from game.repository import GameRepository, get_repository
from models import Player
from schemas import PlayerCreate, Player as PlayerSchema, Token

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=PlayerSchema, status_code=status.HTTP_201_CREATED)
async def register(
    player: PlayerCreate,
    repo: GameRepository = Depends(get_repository)
):
    # Check if username already exists
    if await repo.get_player_by_username(player.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already registered"
        )

    new_player = Player(
        id=uuid.uuid4(),
        username=player.username,
        display_name=player.display_name or player.username,
        password_hash=get_password_hash(player.password),
        cumulative_points=0,
        scan_count=0,
        first_scan_at=None,
        last_update_at=None,
        elapsed_seconds=None,
        elapsed_display=None,
    )
    await repo.add_player(new_player)
    await repo.commit()
    logger.info("Registered player %s", new_player.id)
    return new_player


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    repo: GameRepository = Depends(get_repository)
):
    player = await authenticate_user(repo, form_data.username, form_data.password)
    if not player:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        data={"sub": str(player.id)},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return Token(access_token=access_token, token_type="bearer")
