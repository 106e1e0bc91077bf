from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Exporter
    metrics_port: int = 9000
    metrics_prefix: str = "nephthys"

    # Upstream bot
    nephthys_base_url: str = "http://nephthys:3000"
    nephthys_health_path: str = "/health"
    nephthys_stats_path: str = "/api/stats"
    http_timeout_seconds: float = 5.0

    # Poll loop
    poll_interval_seconds: float = 60.0
    poll_error_backoff_seconds: float = 30.0
    poll_error_backoff_multiplier: float = 1.0  # 1.0 keeps the backoff fixed
    poll_error_backoff_max_seconds: float = 300.0
    poll_error_backoff_jitter: float = 0.0
    prune_stale_user_series: bool = True

    # Slack (display name lookups are skipped without a token)
    slack_bot_token: str | None = None
    slack_api_base_url: str = "https://slack.com/api"

    # Logging
    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "key",
        "authorization",
        "cookie",
        "session",
    ]

    otel_service_name: str = "support_watcher"
    app_environment: str = "production"

    @property
    def health_url(self) -> str:
        return self.nephthys_base_url.rstrip("/") + self.nephthys_health_path

    @property
    def stats_url(self) -> str:
        return self.nephthys_base_url.rstrip("/") + self.nephthys_stats_path


settings = Settings()
