from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str
    supabase_service_key: str  # Use service key for backend operations

    # Stripe
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None

    # Crypto payments (Thirdweb Engine + Polygon)
    thirdweb_secret_key: str | None = None
    thirdweb_engine_url: str = "https://api.thirdweb.com/v1/engine"
    polygon_rpc_url: str = "https://polygon-rpc.com/"
    platform_wallet_address: str = "0xc32c7deA22f43A44971A73230a1cF8b93DDcA5C9"

    # Email (Resend)
    resend_api_key: str | None = None
    email_from: str = "Million Dollar eBooks <noreply@dollarebooks.app>"

    # AI book review
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Site / CORS settings
    site_url: str = "https://dollarebooks.app"
    frontend_url: str = "http://localhost:3000"

    # App settings
    debug: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
