"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables (or .env) with sensible defaults.
"""
from typing import List, Optional

from pydantic import ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings

from sso_proxy.core.signing.digest import DEFAULT_PATH_PREFIX
from sso_proxy.core.signing.envelope import SigningCredentials
from sso_proxy.core.signing.keys import load_private_key_file


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================
    # Identity Server
    # ============================================================
    sso_base_url: str = Field("http://localhost:4000", description="Public SSO base URL (authorization pages)")
    sso_backend_base_url: str = Field(
        "http://localhost:4001/api",
        description="Identity server API base URL, including the gateway prefix",
    )
    sso_gateway_path_prefix: str = Field(
        DEFAULT_PATH_PREFIX,
        description="Path prefix the gateway strips before signature verification",
    )
    sso_http_timeout: float = Field(30.0, description="Upstream request timeout in seconds")

    # ============================================================
    # OAuth2 / OIDC (Authorization Code + PKCE)
    # ============================================================
    client_id: str = Field("", description="OAuth client id")
    client_secret: SecretStr = Field(SecretStr(""), description="OAuth client secret (confidential clients)")
    oauth_scopes: str = Field("openid profile email offline_access", description="Space-separated scopes")
    oauth_redirect_uri: str = Field(
        "http://localhost:3000/oauth/callback",
        description="Redirect URI registered with the identity server",
    )

    # ============================================================
    # Manual Login (signed requests)
    # ============================================================
    api_key: SecretStr = Field(SecretStr(""), description="API key sent in the APIKey header")
    app_identifier: str = Field("", description="Application identifier (X-App-Identifier / Tenant)")
    key_id: str = Field("", description="Key id registered with the identity server")
    private_key_pem: SecretStr = Field(SecretStr(""), description="PKCS8 PEM private key")
    private_key_path: Optional[str] = Field(None, description="Path to PKCS8 PEM file (alternative to PRIVATE_KEY_PEM)")
    default_username_source: str = Field("npk", description="Default x-username-source header for login")

    # ============================================================
    # API Configuration
    # ============================================================
    allowed_origins: str = Field(
        "http://localhost:3000",
        description="Comma-separated CORS allowed origins",
    )
    api_port: int = Field(8000, description="API server port")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def backend_url(self) -> str:
        """Identity server API base URL without trailing slash."""
        return self.sso_backend_base_url.rstrip("/")

    @property
    def manual_login_configured(self) -> bool:
        """True if a key id and a private key source are set."""
        return bool(self.key_id and (self.private_key_pem.get_secret_value() or self.private_key_path))

    def signing_credentials(self) -> SigningCredentials:
        """
        Build signing credentials from settings.

        PRIVATE_KEY_PEM takes precedence over PRIVATE_KEY_PATH.

        Raises:
            ConfigurationError: If key id or private key is not configured
            KeyImportError: If PRIVATE_KEY_PATH cannot be read
        """
        pem = self.private_key_pem.get_secret_value()
        if not pem and self.private_key_path:
            pem = load_private_key_file(self.private_key_path)

        credentials = SigningCredentials(private_key_pem=pem, key_id=self.key_id)
        credentials.validate()
        return credentials


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
