"""WHOOP MCP configuration from environment variables and .env."""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WHOOP_SCOPES = [
    "read:sleep",
    "read:cycles",
    "read:profile",
]


class WhoopAppConfig(BaseSettings):
    """WHOOP application and server configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    whoop_client_id: str = ""
    whoop_client_secret: str = ""
    whoop_redirect_path: str = "/oauth/whoop/callback"
    whoop_scopes: str | None = None
    public_base_url: str | None = None

    token_store_path: str = "./data/whoop-tokens.json"
    whoop_token_table: str | None = None
    whoop_token_key_prefix: str = "token:"
    aws_region: str | None = None

    mcp_api_key: str | None = None
    whoop_log_oauth_responses: bool = False
    whoop_oauth_state_ttl_seconds: int = 600

    whoop_mcp_host: str = "127.0.0.1"
    whoop_mcp_port: int = 8000
    whoop_mcp_path: str = "/sse"
    whoop_mcp_max_body_bytes: int = 1024 * 1024
    log_level: str = "INFO"

    @model_validator(mode="after")
    def validate_credentials(self) -> WhoopAppConfig:
        """Validate that required credentials are configured."""
        if not self.whoop_client_id or self.whoop_client_id == "your_client_id_here":
            raise ValueError("WHOOP_CLIENT_ID is not configured. Please set it in your .env file.")
        if not self.whoop_client_secret or self.whoop_client_secret == "your_client_secret_here":
            raise ValueError(
                "WHOOP_CLIENT_SECRET is not configured. Please set it in your .env file."
            )
        if not self.whoop_redirect_path.startswith("/"):
            self.whoop_redirect_path = f"/{self.whoop_redirect_path}"
        if not self.whoop_mcp_path.startswith("/"):
            self.whoop_mcp_path = f"/{self.whoop_mcp_path}"
        return self

    @property
    def base_url(self) -> str:
        """Public base URL used for OAuth callbacks."""
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        host = self.whoop_mcp_host
        host_for_url = "localhost" if host in {"0.0.0.0", "127.0.0.1"} else host
        return f"http://{host_for_url}:{self.whoop_mcp_port}"

    @property
    def redirect_uri(self) -> str:
        return f"{self.base_url}{self.whoop_redirect_path}"

    @property
    def default_scopes(self) -> list[str]:
        """Scopes requested when the caller does not name any."""
        if self.whoop_scopes:
            scopes = [scope.strip() for scope in self.whoop_scopes.split(",") if scope.strip()]
            return scopes or list(DEFAULT_WHOOP_SCOPES)
        return list(DEFAULT_WHOOP_SCOPES)
