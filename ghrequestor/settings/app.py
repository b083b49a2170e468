"""Application settings powered by Pydantic BaseSettings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ghrequestor.fetch.constants import DEFAULT_USER_AGENT, HEADER_AUTHORIZATION


class AppSettings(BaseSettings):
    """Environment configuration for the command-line client."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    github_token: str | None = Field(default=None, validation_alias="GITHUB_TOKEN")
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT, validation_alias="GHREQUESTOR_USER_AGENT"
    )
    log_level: str = Field(default="INFO", validation_alias="GHREQUESTOR_LOG_LEVEL")

    def auth_headers(self) -> dict[str, str]:
        """Return the Authorization header for the configured token, if any."""
        if not self.github_token:
            return {}
        return {HEADER_AUTHORIZATION: f"token {self.github_token}"}


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
