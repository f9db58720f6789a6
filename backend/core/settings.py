"""
Engine Configuration
Read from the environment (prefix MONITORING_) or a .env file.
"""

from datetime import timedelta
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MonitoringSettings(BaseSettings):
    """Monitoring engine settings"""

    model_config = SettingsConfigDict(
        env_prefix="MONITORING_",
        env_file=".env",
        extra="ignore",
    )

    # Metric store
    hot_window_seconds: float = Field(default=300, gt=0)  # 5 minutes in memory
    max_samples_per_metric: int = Field(default=10000, gt=0)
    retention_seconds: float = Field(default=7 * 24 * 3600, gt=0)  # 7 days

    # Alerts
    history_size: int = Field(default=1000, gt=0)
    evaluate_on_record: bool = False
    auto_resolve: bool = False
    subscriber_queue_size: int = Field(default=100, gt=0)

    # Background tasks
    evaluation_interval_seconds: float = Field(default=30, gt=0)
    cleanup_interval_seconds: float = Field(default=300, gt=0)
    scheduler_enabled: bool = True

    # Worker pools (0 = run inline)
    notification_workers: int = Field(default=0, ge=0)
    persistence_workers: int = Field(default=2, ge=0)

    # Side channels
    redis_url: Optional[str] = None
    webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = 5.0

    log_level: str = "INFO"

    @property
    def hot_window(self) -> timedelta:
        return timedelta(seconds=self.hot_window_seconds)

    @property
    def retention(self) -> timedelta:
        return timedelta(seconds=self.retention_seconds)
