from decimal import Decimal
from pathlib import Path
from typing import List

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.platform.constant.path import LOCAL_STORE_DIR


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Booking Widget Core'
    VERSION: str = '0.1.0'
    DEBUG: bool = False

    # Tenant defaults
    DEFAULT_ORGANIZATION_ID: str = '00000000-0000-0000-0000-000000000001'
    DEFAULT_TIMEZONE: str = 'America/New_York'
    DEFAULT_PHONE_COUNTRY_CODE: str = '1'

    # Checkout
    CHECKOUT_FEE_RATE: Decimal = Decimal('0.06')

    # Local entity cache
    STORAGE_BACKEND: str = 'file'  # memory | file | kvrocks
    LOCAL_STORE_DIR: Path = LOCAL_STORE_DIR
    LEGACY_ACTIVITY_PREFIXES: List[str] = ['bookingtms_games_']

    @field_validator('LEGACY_ACTIVITY_PREFIXES', mode='before')
    @classmethod
    def assemble_legacy_prefixes(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and not v.startswith('['):
            return [i.strip() for i in v.split(',') if i.strip()]
        elif isinstance(v, list):
            return v
        return []

    # Cross-process change propagation
    SYNC_CHANNEL: str = 'bookingtms:storage-changes'
    SYNC_POLL_INTERVAL: float = 1.0  # seconds, polling observer only

    # Remote booking API
    REMOTE_API_BASE_URL: str = 'http://localhost:54321/functions/v1'
    REMOTE_API_KEY: SecretStr = SecretStr('test_anon_key_change_in_production')
    REMOTE_API_TIMEOUT: float = 10.0  # seconds

    # Live session feed
    LIVE_FEED_BUFFER_SIZE: int = 10

    # Kvrocks Configuration (Redis protocol + Kvrocks storage)
    KVROCKS_HOST: str = 'localhost'
    KVROCKS_PORT: int = 6666
    KVROCKS_DB: int = 0
    KVROCKS_PASSWORD: str = ''
    KVROCKS_KEY_PREFIX: str = ''
    REDIS_DECODE_RESPONSES: bool = True
    KVROCKS_POOL_MAX_CONNECTIONS: int = 20
    KVROCKS_POOL_SOCKET_TIMEOUT: int = 10  # seconds
    KVROCKS_POOL_SOCKET_CONNECT_TIMEOUT: int = 10  # seconds


settings = Settings()  # type: ignore
