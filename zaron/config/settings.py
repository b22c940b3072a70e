"""
Main settings object.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    backend_api_url: str = "https://zeron-backend-z5o1.onrender.com"
    request_timeout: float = 20.0

    # Where `zaron register` keeps the session token for scripted use.
    session_directory: Path = Path.home() / ".config/zaron"
    session_file_name: str = "session.json"

    # Path prefix when served behind a proxy.
    management_path: str = ""

    # Development setup: serve against the in-memory backend instead.
    use_mock_backend: bool = False
    mock_token: str = "dev-super-admin-token"

    model_config = SettingsConfigDict(env_prefix="ZARON_", env_file=".env")

    @property
    def backend_base_url(self) -> str:
        return self.backend_api_url.rstrip("/")

    @property
    def session_file(self) -> Path:
        return self.session_directory / self.session_file_name
