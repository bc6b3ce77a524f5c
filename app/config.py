from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
import os

class Settings(BaseSettings):
    # Google Custom Search
    google_api_key: str = ""
    search_engine_id: str = ""
    search_api_url: str = "https://www.googleapis.com/customsearch/v1"

    # Test Mode
    test_mode: bool = False

    # External call budgets (seconds)
    search_timeout_seconds: float = 15.0
    persistence_timeout_seconds: float = 10.0

    # Database - Railway provides DATABASE_URL, fallback to SQLite for local
    database_url: Optional[str] = None

    # App Settings
    app_name: str = "RoadmapGenerator"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # CORS - comma-separated origins (Vite dev server by default)
    allowed_origins: str = "http://localhost:5173"

    # API Settings
    backend_host: str = "0.0.0.0"
    backend_port: int = int(os.getenv("PORT", "8000"))

    class Config:
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # DATABASE_URL is picked up from the environment by BaseSettings.
        # Railway uses postgres:// or postgresql://, but SQLAlchemy async needs postgresql+asyncpg://
        railway_db = self.database_url
        if railway_db:
            if railway_db.startswith("postgres://"):
                self.database_url = railway_db.replace("postgres://", "postgresql+asyncpg://", 1)
            elif railway_db.startswith("postgresql://"):
                self.database_url = railway_db.replace("postgresql://", "postgresql+asyncpg://", 1)
        else:
            # Fallback to local SQLite
            self.database_url = "sqlite+aiosqlite:///./roadmaps.db"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
