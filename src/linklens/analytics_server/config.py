"""Server configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from linklens.analytics.config import ScoringConfig


class Settings(BaseSettings):
    """Server settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database connection
    database_url: str = "postgresql://localhost/linklens"

    # Server
    port: int = 8010
    debug: bool = False
    log_level: str = "INFO"

    # Scoring
    high_engagement_seconds: float = 120.0
    trend_window_days: int = 7

    def scoring_config(self) -> ScoringConfig:
        """Engine configuration with the overrides from the environment."""
        return ScoringConfig(
            high_engagement_seconds=self.high_engagement_seconds,
            trend_window_days=self.trend_window_days,
        )


settings = Settings()
