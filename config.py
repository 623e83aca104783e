from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

PRIZE_POLICY_PER_SITE = "per_site"
PRIZE_POLICY_COMPLETION = "completion"


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://localhost:5432/qrhunt"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    JWT_SECRET_KEY: str = "your-secret-key"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    SALT_ROUNDS: int = 12
    # Usernames granted the admin API. Empty means nobody.
    ADMIN_USERNAMES: List[str] = []

    # Fernet key used to sign site QR tokens. Generated per process when unset.
    SITE_TOKEN_SECRET_KEY: Optional[str] = None

    # Play area (Kathmandu valley by default)
    PLAY_AREA_LATITUDE: float = 27.7172
    PLAY_AREA_LONGITUDE: float = 85.324
    PLAY_AREA_RADIUS_M: float = 15000
    SITE_PROXIMITY_RADIUS_M: Optional[float] = None
    LOCATION_MAX_AGE_SECONDS: int = 120

    PRIZE_POLICY: str = PRIZE_POLICY_PER_SITE
    COMPLETION_THRESHOLD: Optional[int] = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
