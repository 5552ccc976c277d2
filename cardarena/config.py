from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "CardArena"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/cardarena"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Empty disables Redis; battle events are then only logged
    redis_url: str = ""
    broadcast_topic_prefix: str = "battle"

    # Sweeper retries per battle on transient store errors
    resolve_max_attempts: int = 3
    sweep_batch_size: int = 50


settings = Settings()


# =============================================================================
# CARD ATTRIBUTE LIMITS
# =============================================================================

# Attribute values accepted when a card is registered
MIN_ATTRIBUTE_VALUE = 0
MAX_ATTRIBUTE_VALUE = 100
