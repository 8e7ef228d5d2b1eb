from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # infrastructure (set in .env)
    page_url: str = "https://localhost"
    backend_url: str = "http://localhost:3000"
    control_api_url: str = "http://localhost:3000/api/zoom"
    cors_origins: list[str] = ["http://localhost:3000"]

    # tunable parameters
    app_name: str = "Arlo"
    control_timeout_s: float = 10.0
    history_timeout_s: float = 5.0
    reconnect_delay_ms: int = 5000
    start_guard_ttl_ms: int = 3000
    verification_window_ms: int = 2000
    auto_start_delay_ms: int = 1500
    roster_window_ms: int = 60000
    ambiguous_error_code: str = "10308"
    suggestion_limit: int = 3
    notification_limit: int = 50
    history_segment_limit: int = 500
    topic_retry_delay_ms: int = 3000
    topic_max_attempts: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
