"""
Configuration management for the Meat Delivery API.

Loads settings from .env via pydantic-settings.

Security notes:
    - validate_production_settings() enforces strict CORS and a JWT secret
      in production, and refuses to start with an OTP bypass code enabled.
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/meat_delivery.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    app_name: str = "Sejas Fresh"

    # ── Auth (JWT) ──────────────────────────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "meat-delivery-api"
    jwt_access_ttl_minutes: int = 7 * 24 * 60  # 7 days, matches mobile session length
    bcrypt_rounds: int = 12

    # ── OTP ─────────────────────────────────────────────────────────
    otp_ttl_minutes: int = 5
    # Accepted in place of a real OTP outside production (QA / app review)
    otp_bypass_code: Optional[str] = "123456"

    # ── Twilio SMS ──────────────────────────────────────────────────
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    # ── Web Push (VAPID) ────────────────────────────────────────────
    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_subject: str = "mailto:admin@sejas.com"

    # ── Expo Push ───────────────────────────────────────────────────
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_access_token: str = ""

    # ── Pricing ─────────────────────────────────────────────────────
    delivery_fee: float = 0.0   # free delivery
    tax_rate: float = 0.0       # fraction of subtotal, e.g. 0.05

    # ── Uploads ─────────────────────────────────────────────────────
    public_base_url: str = "http://localhost:8000"
    uploads_dir: str = "uploads"
    max_upload_bytes: int = 5 * 1024 * 1024

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174,http://localhost:8081"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number)

    @property
    def web_push_configured(self) -> bool:
        return bool(self.vapid_public_key and self.vapid_private_key)

    @property
    def otp_bypass_enabled(self) -> bool:
        """The bypass code is never honoured in production."""
        return bool(self.otp_bypass_code) and not self.is_production

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.is_production:
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to sign access tokens for all clients."
                )
            if self.otp_bypass_code:
                raise ValueError(
                    "OTP_BYPASS_CODE must be empty in production. "
                    "A bypass code lets anyone log in as any phone number."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if self.otp_bypass_code:
                warnings.append(f"OTP bypass code enabled ({self.otp_bypass_code})")
            if not self.sms_configured:
                warnings.append("Twilio not configured (OTPs are logged, not sent)")
            if not self.web_push_configured:
                warnings.append("VAPID keys not configured (web push disabled)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
