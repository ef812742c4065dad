from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        extra="ignore"  # Ignore extra fields in .env
    )

    database_url: str = "sqlite:///./student_files.db"

    secret_key: str = "dev-secret-key-change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    environment: str = "development"
    debug: bool = True

    host: str = "0.0.0.0"
    port: int = 8010

    frontend_url: Optional[List[str]] = None

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    storage_bucket: str = "student-files"

    # "supabase" or "local"
    blob_backend: str = "supabase"
    local_blob_dir: str = "uploads"

    trash_retention_days: int = 30
    retention_sweep_enabled: bool = True
    retention_sweep_interval_minutes: int = 60

    max_tree_depth: int = 1000
    cascade_max_retries: int = 3
    max_name_length: int = 255

    empty_trash_confirmation: str = "EMPTY TRASH"

settings = Settings()
