from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # API Configuration
    APP_NAME: str = "LinkGuard"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    # Scan history
    DATABASE_URL: str = "sqlite:///./linkguard.db"
    SAVE_SCANS: bool = True

    # Local blacklist (JSON file with a "bad_domains" list)
    BLACKLIST_PATH: str = "./data/intel_db.json"

    # Signal sources
    PHISHARK_API_URL: str = "https://phishark.net/api/check-url"
    PHISHARK_TIMEOUT: float = 10.0

    URLERT_API_URL: str = "https://api.urlert.com/v1/scans"
    URLERT_API_KEY: Optional[str] = None
    URLERT_TIMEOUT: float = 5.0
    URLERT_POLL_INTERVAL: float = 2.0
    URLERT_MAX_POLLS: int = 10

    WHOIS_API_URL: str = "https://api.whoisfreaks.com/v1.0/whois"
    WHOIS_API_KEY: Optional[str] = None
    WHOIS_TIMEOUT: float = 5.0

    # Analysis Settings (seconds)
    DEFAULT_ANALYSIS_TIMEOUT: float = 30.0
    MAX_ANALYSIS_TIMEOUT: float = 120.0
    BATCH_MAX_URLS: int = 10

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
