"""Application configuration."""
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")
    app_env: str = "development"
    debug: bool = True
    public_base_url: str = "http://localhost:8000"

    database_url: str | None = None
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "storefront"
    postgres_user: str = "storefront"
    postgres_password: str = "changeme"

    redis_host: str = "localhost"
    redis_port: int = 6379
    rq_outbox_queue_name: str = "outbox"
    outbox_enqueue_enabled: bool = True

    # Bootstrap account; rotate with scripts/provision_admin.py after first login.
    admin_default_username: str = "admin"
    admin_default_password: str = "Moinulislam#@"
    admin_default_email: str = "admin@blockwar.com"
    admin_bootstrap_on_startup: bool = True
    admin_hash_self_heal_enabled: bool = True

    admin_session_ttl_hours: int = 24
    admin_session_cookie_name: str = "admin_session"
    bcrypt_rounds: int = 12

    payment_notify_webhook_url: str = ""
    payment_notify_timeout_seconds: int = 15


@lru_cache
def get_settings() -> Settings:
    return Settings()
