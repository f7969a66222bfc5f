"""
Application settings and configuration
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class HttpSettings(BaseSettings):
    """Settings needed to build the HTTP app; readable without credentials"""

    # API Settings
    app_name: str = "Artistic Photo Stylizer"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    # Security Settings
    allowed_origins: list = ["*"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

class Settings(HttpSettings):
    # Remote capability credentials (required)
    openai_api_key: str
    openai_base_url: Optional[str] = None

    # Remote capability settings
    description_model: str = "gpt-4o-mini"
    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"
    remote_timeout_seconds: float = 120.0
    remote_max_retries: int = 1
    download_timeout_seconds: float = 60.0

    # Storage Settings
    upload_dir: str = "./uploads"
    generated_dir: str = "./generated"
    generated_url_prefix: str = "/generated"
    static_dir: str = "./static"

    # Processing Settings
    default_style: str = "watercolor"
    max_file_size: int = 50 * 1024 * 1024  # 50MB
    supported_formats: list = ["JPEG", "PNG"]

    # Notification channel
    notification_send_timeout_seconds: float = 5.0

    # Task store
    task_ttl_seconds: int = 3600  # 0 disables expiry
    purge_interval_seconds: int = 300

@lru_cache()
def get_settings():
    return Settings()
