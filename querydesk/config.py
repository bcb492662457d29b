from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Remote query service
    api_base_url: str = "http://localhost:3049"
    request_timeout_seconds: float = 30.0

    # Job progress polling
    poll_interval_seconds: float = 2.0
    poll_min_interval_seconds: float = 1.5  # measured between call attempts
    job_hard_timeout_seconds: float = 120.0

    # Artifacts
    artifact_file_name: str = "exam.pdf"
    download_dir: str = "downloads"

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"
    transport_log_interval_seconds: float = 3.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
