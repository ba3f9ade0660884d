import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    planner_model: str = os.getenv("PLANNER_MODEL", "google-genai:gemini-2.0-flash")
    google_api_key: str = os.getenv("GOOGLE_API_KEY", "")
    google_maps_api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")

    # Persistence
    storage_backend: str = os.getenv("STORAGE_BACKEND", "memory").lower()
    mongodb_uri: str = os.getenv("MONGODB_URI", "")
    database_name: str = os.getenv("DATABASE_NAME", "tripplanner_db")

    autosave_interval_seconds: float = float(os.getenv("AUTOSAVE_INTERVAL_SECONDS", "30"))
    photo_max_width: int = int(os.getenv("PHOTO_MAX_WIDTH", "400"))
    nearby_radius_meters: int = int(os.getenv("NEARBY_RADIUS_METERS", "100"))


def get_settings() -> Settings:
    return Settings()
