from pydantic_settings import BaseSettings

from gateways.config import GatewaySettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/storefront"
    log_level: str = "INFO"

    # Deployment
    environment: str = "development"
    api_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"
    default_country: str = "ZA"

    # Payment gateways (provider credentials live in gateways.config)
    gateway_http_timeout: float = 10.0

    # Auth
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    # Kafka (empty disables publishing; notifications are logged instead)
    kafka_bootstrap_servers: str = ""
    payment_completed_topic: str = "payment.completed"

    # Observability (empty disables tracing)
    otlp_endpoint: str = "http://jaeger:4318/v1/traces"

    model_config = {"env_file": ".env", "extra": "ignore"}

    def gateway_settings(self) -> GatewaySettings:
        return GatewaySettings(
            environment=self.environment,
            api_url=self.api_url,
            frontend_url=self.frontend_url,
            http_timeout=self.gateway_http_timeout,
        )


settings = Settings()
