from pydantic_settings import BaseSettings
from dotenv import load_dotenv


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "DDS Validation Portal"
    debug: bool = False
    database_url: str = "sqlite:///./ddsportal.db"
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    allowed_hosts: str = ""
    public_url: str = "http://localhost:8000"
    log_file: str = "logs/application.log"

    # Supplier authentication
    otp_expire_minutes: int = 10
    supplier_session_expire_days: int = 30
    admin_token_expire_minutes: int = 60 * 24
    identifier_max_attempts: int = 100

    # Customer share tokens
    access_token_max_uses: int = 10
    access_token_expire_hours: int = 24

    # Outbound email (disabled unless host, user, password and sender are set)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""

    # Rate limiting, keyed by client address
    rate_limit_window_seconds: int = 60 * 60
    rate_limit_max_requests: int = 100
    strict_rate_limit_window_seconds: int = 60 * 60
    strict_rate_limit_max_requests: int = 5

    # Admins see connection history from the opposite side of the organisation
    admin_history_flip_direction: bool = True

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")
