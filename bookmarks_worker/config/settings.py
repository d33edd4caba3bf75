from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_engine: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "bookmarks"
    db_username: str = "bookmarks"
    db_password: str = "secret"
    db_path: Path = Path("bookmarks.db")
    migrate_on_startup: bool = True

    max_job_attempts: int = 3
    job_batch_size: int = 3

    screenshots_root: Path = Path("screenshots")
    screenshots_url_prefix: str = "screenshots"
    screenshot_max_width: int = 300

    pagespeed_api_key: str = ""
    pagespeed_strategy: str = "desktop"
    pagespeed_timeout_seconds: int = 60

    http_user_agent: str = "Mozilla/5.0 (compatible; BookmarksApp/1.0)"
    http_connect_timeout_seconds: float = 5.0
    http_timeout_seconds: float = 30.0
    http_max_redirects: int = 3

    page_max_bytes: int = 5 * 1024 * 1024
    image_max_bytes: int = 10 * 1024 * 1024
    image_max_memory_bytes: int = 50 * 1024 * 1024
    og_search_chars: int = 512_000
    content_image_candidates: int = 10
    content_image_attempts: int = 5

    favicon_service_url: str = "https://www.google.com/s2/favicons"
    favicon_size: int = 256

    link_check_timeout_seconds: float = 10.0
    archive_timeout_seconds: float = 30.0

    recent_checks_limit: int = 20
