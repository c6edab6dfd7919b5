from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PLACEHOLDER_SECRET = "change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    env: Literal["local", "prod", "test"] = Field(default="local", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8080, alias="API_PORT")

    db_url: str = Field(
        default="sqlite+aiosqlite:///./data/downloads.db",
        alias="DATABASE_URL",
    )

    public_base_url: str = Field(default="http://localhost:8080", alias="PUBLIC_BASE_URL")
    download_prefix: str = Field(default="download", alias="DOWNLOAD_PATH_PREFIX")

    aliyun_access_key_id: str = Field(default=PLACEHOLDER_SECRET, alias="ALIYUN_ACCESS_KEY_ID")
    aliyun_access_key_secret: str = Field(default=PLACEHOLDER_SECRET, alias="ALIYUN_ACCESS_KEY_SECRET")
    aliyun_default_endpoint: str | None = Field(default=None, alias="ALIYUN_DEFAULT_ENDPOINT")
    aliyun_default_bucket: str | None = Field(default=None, alias="ALIYUN_DEFAULT_BUCKET")
    oss_request_timeout: float = Field(default=10.0, alias="OSS_REQUEST_TIMEOUT")
    oss_signature_version: Literal["v1", "v4"] = Field(default="v1", alias="OSS_SIGNATURE_VERSION")

    default_expiry_secs: int = Field(default=3600, alias="DEFAULT_EXPIRY_SECS")
    cleanup_interval_secs: int = Field(default=600, alias="CLEANUP_INTERVAL_SECS")

    jwt_secret_key: str = Field(default="secret-key-change-me", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_exp_minutes: int = Field(default=60, alias="JWT_EXP_MINUTES")

    admin_username: str = Field(default="admin", alias="ADMIN_USERNAME")
    admin_password_hash: str | None = Field(default=None, alias="ADMIN_PASSWORD_HASH")

    oauth_client_id: str | None = Field(default=None, alias="OAUTH_CLIENT_ID")
    oauth_client_secret: str | None = Field(default=None, alias="OAUTH_CLIENT_SECRET")
    oauth_token_url: str = Field(
        default="https://sso.honahec.cc/oauth/token/",
        alias="OAUTH_TOKEN_URL",
    )
    oauth_userinfo_url: str = Field(
        default="https://sso.honahec.cc/oauth/userinfo/",
        alias="OAUTH_USERINFO_URL",
    )
    oauth_redirect_uri: str | None = Field(default=None, alias="OAUTH_REDIRECT_URI")
    oauth_admin_claim: str = Field(default="admin_user", alias="OAUTH_ADMIN_CLAIM")

    cors_allowed_origins: str = Field(default="*", alias="CORS_ALLOWED_ORIGINS")

    @field_validator("public_base_url", mode="after")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        trimmed = v.strip().rstrip("/")
        return trimmed or "http://localhost:8080"

    @field_validator("download_prefix", mode="after")
    @classmethod
    def trim_prefix_slashes(cls, v: str) -> str:
        return v.strip().strip("/")

    @field_validator(
        "aliyun_default_endpoint",
        "aliyun_default_bucket",
        "admin_password_hash",
        "oauth_client_id",
        "oauth_client_secret",
        "oauth_redirect_uri",
        mode="before",
    )
    @classmethod
    def blank_as_none(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def require_oss_credentials_in_prod(self) -> "Settings":
        if self.env != "prod":
            return self
        missing = [
            name
            for name, value in (
                ("ALIYUN_ACCESS_KEY_ID", self.aliyun_access_key_id),
                ("ALIYUN_ACCESS_KEY_SECRET", self.aliyun_access_key_secret),
            )
            if not value.strip() or value == PLACEHOLDER_SECRET
        ]
        if missing:
            raise ValueError(f"{', '.join(missing)} must be set when ENV=prod")
        return self

    @property
    def cors_origins(self) -> list[str]:
        if self.cors_allowed_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]

    def download_url_for(self, ticket_id: str) -> str:
        return f"{self.public_base_url}/{self.download_prefix}/{ticket_id}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
