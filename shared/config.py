"""Shared configuration."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Base settings for all services."""

    # Service info
    service_name: str = "store-service"
    service_port: int = 8000

    # Database
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "store"
    database_dsn: Optional[str] = None  # Full URL override, e.g. sqlite+aiosqlite
    sql_echo: bool = False

    # RabbitMQ
    rabbitmq_user: str = "guest"
    rabbitmq_password: str = "guest"
    rabbitmq_host: str = "localhost"
    rabbitmq_port: int = 5672
    publish_events: bool = True

    # Notifications
    admin_alert_email: str = "inventario@vapes.gt"

    # Logging
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        """Get async database connection URL."""
        if self.database_dsn:
            return self.database_dsn
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def rabbitmq_url(self) -> str:
        """Get RabbitMQ connection URL."""
        return (
            f"amqp://{self.rabbitmq_user}:{self.rabbitmq_password}"
            f"@{self.rabbitmq_host}:{self.rabbitmq_port}/"
        )

    class Config:
        env_file = ".env"
        case_sensitive = False
