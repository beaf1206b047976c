from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "PayVerify"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Supabase (verification records)
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    VERIFICATION_TABLE: str = "verifications"

    # OCR
    TESSERACT_CMD: str = "/usr/bin/tesseract"

    # Direct document requests
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Browser-mediated acquisition
    BROWSER_HEADLESS: bool = True
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )
    BROWSER_PROXY: Optional[str] = None
    NAVIGATION_TIMEOUT_SECONDS: float = 30.0
    NAVIGATION_RETRIES: int = 3
    NAVIGATION_RETRY_DELAY_SECONDS: float = 1.0
    DOCUMENT_WAIT_TIMEOUT_SECONDS: float = 20.0

    # Uploads
    MAX_UPLOAD_MB: float = 5.0
    ALLOWED_UPLOAD_TYPES: List[str] = ["application/pdf", "image/png", "image/jpeg", "image/jpg"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
