"""
Per-provider settings. Each adapter reads its own namespaced environment
block at construction time; missing credentials are tolerated here and
reported by the adapter when it is actually used.
"""

from pydantic_settings import BaseSettings


class GatewaySettings(BaseSettings):
    environment: str = "development"
    api_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"
    http_timeout: float = 10.0

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


class KoraPaySettings(BaseSettings):
    base_url: str = "https://api.korahq.com"
    secret_key: str | None = None
    webhook_secret: str | None = None

    model_config = {"env_prefix": "KORA_PAY_", "env_file": ".env", "extra": "ignore"}


class PayGateSettings(BaseSettings):
    base_url: str = "https://secure.paygate.co.za/payweb3"
    paygate_id: str | None = None
    secret_key: str | None = None

    model_config = {"env_prefix": "PAYGATE_", "env_file": ".env", "extra": "ignore"}


class PayFastSettings(BaseSettings):
    base_url: str = "https://www.payfast.co.za"
    sandbox_url: str = "https://sandbox.payfast.co.za"
    merchant_id: str | None = None
    merchant_key: str | None = None
    passphrase: str | None = None
    validate_itn: bool = True

    model_config = {"env_prefix": "PAYFAST_", "env_file": ".env", "extra": "ignore"}


class MTNSettings(BaseSettings):
    base_url: str = "https://sandbox.momodeveloper.mtn.com"
    subscription_key: str | None = None
    api_key: str | None = None
    api_secret: str | None = None
    webhook_secret: str | None = None
    target_environment: str = "sandbox"

    model_config = {"env_prefix": "MTN_MOMO_", "env_file": ".env", "extra": "ignore"}


class OrangeSettings(BaseSettings):
    base_url: str = "https://api.orange.com"
    client_id: str | None = None
    client_secret: str | None = None
    merchant_key: str | None = None
    target_environment: str = "dev"

    model_config = {"env_prefix": "ORANGE_MONEY_", "env_file": ".env", "extra": "ignore"}
