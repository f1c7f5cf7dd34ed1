from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/db.sqlite3"
    api_key: str = ""  # empty = no deployment key check (local dev)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_base_url: str = ""
    data_dir: str = "./data"
    public_base_url: str = "http://localhost:8000"
    max_image_size_bytes: int = 10 * 1024 * 1024  # 10MB
    classifier_timeout_seconds: float = 60.0
    classifier_max_attempts: int = 3
    classifier_backoff_seconds: float = 2.0
    zone_lookup_failure_policy: str = "fail"  # "fail" | "ignore"
    # Fail interrupted `analyzing` reports at startup; enable on exactly one process per database
    recover_on_startup: bool = True
    cors_origins: list[str] = ["http://localhost:8000", "http://localhost:5173"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
