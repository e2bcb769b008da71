import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "production").lower()

    # Google Places
    google_maps_api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    places_timeout_seconds: float = float(os.getenv("PLACES_TIMEOUT_SECONDS", "10"))
    places_failure_threshold: int = int(os.getenv("PLACES_FAILURE_THRESHOLD", "5"))
    places_reset_timeout_seconds: float = float(
        os.getenv("PLACES_RESET_TIMEOUT_SECONDS", "60")
    )
    places_half_open_requests: int = int(os.getenv("PLACES_HALF_OPEN_REQUESTS", "3"))
    # Upper bound for one augmentation step; must stay below the caller's request timeout
    augmentation_timeout_seconds: float = float(
        os.getenv("AUGMENTATION_TIMEOUT_SECONDS", "20")
    )

    # LLM itinerary polish; empty disables it
    aisuite_model: str = os.getenv("AISUITE_MODEL", "")
    polish_timeout_seconds: float = float(os.getenv("POLISH_TIMEOUT_SECONDS", "30"))

    # MongoDB
    mongodb_uri: str = os.getenv("MONGODB_URI", "")
    database_name: str = os.getenv("DATABASE_NAME", "tripplanner")

    # Planning
    day_start_time: str = os.getenv("DAY_START_TIME", "09:00")
    places_per_day: int = int(os.getenv("PLACES_PER_DAY", "4"))
    max_places_per_day: int = int(os.getenv("MAX_PLACES_PER_DAY", "4"))
    pool_size_multiplier: float = float(os.getenv("POOL_SIZE_MULTIPLIER", "2.0"))
    balance_clusters: bool = os.getenv("BALANCE_CLUSTERS", "true").lower() in (
        "1",
        "true",
        "yes",
    )

    @property
    def is_strict(self) -> bool:
        """Invariant violations raise instead of being skipped."""
        return self.environment in ("development", "test")


def get_settings() -> Settings:
    return Settings()
