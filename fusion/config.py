from pydantic import Field
from pydantic_settings import BaseSettings


class FusionSettings(BaseSettings):
    # Provider keys
    FAL_KEY: str = Field("", alias="FAL_KEY")
    GEMINI_API_KEY: str = Field("", alias="GEMINI_API_KEY")

    # App
    APP_NAME: str = "Element Fusion API"
    VERSION: str = "0.1.0"
    ENV: str = "development"  # "development" | "production"
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Text generation (Gemini)
    TEXT_MODEL: str = "gemini-2.5-flash"
    TEXT_TEMPERATURE: float = 0.9

    # Icon generation (fal FLUX)
    IMAGE_ENDPOINT: str = "fal-ai/flux/schnell"
    IMAGE_SIZE: str = "square"
    IMAGE_INFERENCE_STEPS: int = 4

    # Object storage
    STORAGE_PREFIX: str = "elements"

    # Upper bound for every external call, seconds
    EXTERNAL_TIMEOUT_SEC: float = 60.0

    # SQLite file for the element store; empty keeps elements in memory
    DATABASE_PATH: str = "data/fusion.db"

    # Serialize fusions of the same pair inside this process
    PAIR_LOCKS: bool = False

    # Reset confirmation
    DEV_RESET_TOKEN: str = "yes"
    PROD_RESET_TOKEN: str = "ERASE_ALL_MY_DATA_REALLY"

    # Seed roots
    SEED_ICON_BASE_URL: str = "https://fusiongame.s3.eu-north-1.amazonaws.com/elements"

    class Config:
        env_file = ".env"
        env_prefix = "FUSION_"
        extra = "ignore"
        populate_by_name = True

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def reset_token(self) -> str:
        return self.PROD_RESET_TOKEN if self.is_production else self.DEV_RESET_TOKEN


_settings: FusionSettings | None = None


def get_settings() -> FusionSettings:
    global _settings
    if not _settings:
        _settings = FusionSettings()
    return _settings
