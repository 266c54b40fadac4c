from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Search Demo"
    LOG_LEVEL: str = "INFO"

    # Redis / connection
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: float | None = 10.0

    # Index
    INDEX_NAME: str = "idx"
    KEY_PREFIX: str = "item:"
    DROP_EXISTING_INDEX: bool = False

    # Synthetic data
    NUM_RECORDS: int = Field(10, ge=1)
    TAG_PALETTE: tuple[str, ...] = (
        "red",
        "orange",
        "yellow",
        "green",
        "blue",
        "indigo",
        "violet",
    )
    RANDOM_SEED: int | None = None

    # Queries
    SEARCH_TEXT_TERM: str = "text1"
    SEARCH_NUMERIC_RANGE: tuple[int, int] = (1, 3)
    SEARCH_TAG: str = "blue"
    AGGREGATE_OR_TAGS: tuple[str, ...] = ("yellow", "red")
    CURSOR_PAGE_SIZE: int = Field(2, ge=1)

    # Schema alteration
    NEW_FIELD_NAME: str = "newField"
    NEW_FIELD_TERM: str = "new1"


settings = Settings()
