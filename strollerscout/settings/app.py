"""Application settings powered by Pydantic BaseSettings."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from strollerscout.cache.credentials import ClientCredentials


class AppSettings(BaseSettings):
    """Centralized environment configuration.

    Upstream credentials are optional: a missing pair disables the
    integration that needs it instead of failing startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    amadeus_api_key: str | None = Field(default=None, validation_alias="AMADEUS_API_KEY")
    amadeus_api_secret: SecretStr | None = Field(
        default=None, validation_alias="AMADEUS_API_SECRET"
    )
    amadeus_base_url: str = Field(
        default="https://test.api.amadeus.com", validation_alias="AMADEUS_BASE_URL"
    )
    user_agent: str = Field(
        default="StrollerScout/1.0", validation_alias="STROLLERSCOUT_USER_AGENT"
    )
    openweathermap_api_key: SecretStr | None = Field(
        default=None, validation_alias="OPENWEATHERMAP_API_KEY"
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="LOG_JSON")

    def amadeus_credentials(self) -> ClientCredentials | None:
        """Return the Amadeus client credentials, or None if either is unset."""
        if not self.amadeus_api_key or self.amadeus_api_secret is None:
            return None
        if not self.amadeus_api_secret.get_secret_value():
            return None
        return ClientCredentials(
            client_id=self.amadeus_api_key,
            client_secret=self.amadeus_api_secret,
        )

    def openweathermap_key(self) -> str | None:
        """Return the OpenWeatherMap API key, or None if unset or blank."""
        if self.openweathermap_api_key is None:
            return None
        return self.openweathermap_api_key.get_secret_value() or None


def get_settings() -> AppSettings:
    """Get a settings instance (reads the environment on every call)."""
    return AppSettings()
