"""Application configuration (Pydantic v2). Load from tree_rater.yml with optional env override."""

import os
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, field_validator


DEFAULT_DATABASE_URL = "postgresql+psycopg2://localhost/tree_rater"
DEFAULT_CONFIG_ENV_VAR = "TREE_RATER_CONFIG"
DEFAULT_CONFIG_FILENAME = "tree_rater.yml"
DEV_FRONTEND_ORIGIN = "http://localhost:5173"

# Environment variable -> Settings field. Applied on top of YAML for the default config.
ENV_OVERRIDES: dict[str, str] = {
    "DATABASE_URL": "database_url",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_MODEL": "openai_model",
    "TREE_RATER_CRITIC": "critic",
    "ENVIRONMENT": "app_env",
    "APP_ENV": "app_env",
    "FRONTEND_URL": "frontend_url",
    "PORT": "port",
    "TREE_RATER_DATA_DIR": "data_dir",
    "PUBLIC_BASE_URL": "public_base_url",
    "LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    """
    Service config loaded from YAML.

    When loading the default config, environment variables listed in ENV_OVERRIDES
    take precedence over the YAML values (but not when an explicit config_path is provided).
    """

    model_config = {"extra": "ignore"}

    database_url: str = DEFAULT_DATABASE_URL
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    critic: str = "openai"
    app_env: Literal["development", "production"] = "development"
    frontend_url: str | None = None
    port: int = 3001
    data_dir: str = "data"
    public_base_url: str = "http://localhost:3001"
    max_upload_bytes: int = 5 * 1024 * 1024
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: float = 15 * 60
    # Key the rate limiter on X-Forwarded-For (only behind a proxy that sets it).
    trust_forwarded_for: bool = False
    log_level: str = "INFO"

    @field_validator("app_env", mode="before")
    @classmethod
    def normalize_app_env(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            return "development"
        return str(v).strip().lower()

    @field_validator("public_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def cors_origins(self) -> list[str]:
        """Allowed cross-origin sources: the configured frontend in production, the dev server otherwise."""
        if self.is_production:
            return [self.frontend_url] if self.frontend_url else []
        return [DEV_FRONTEND_ORIGIN]

    @property
    def max_upload_mb(self) -> float:
        mb = self.max_upload_bytes / (1024 * 1024)
        return int(mb) if mb == int(mb) else round(mb, 1)


_config: Settings | None = None


class ConfigLoader:
    """
    Helper responsible for loading Settings from YAML and environment.

    - load_from_yaml(path, apply_env_override): read a YAML file and optionally apply env overrides.
    - load_default(): resolve the default config path from TREE_RATER_CONFIG / tree_rater.yml and
      apply environment overrides when present.
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = env if env is not None else os.environ

    def _env_overrides(self) -> dict[str, str]:
        data: dict[str, str] = {}
        for env_name, field in ENV_OVERRIDES.items():
            value = self._env.get(env_name)
            if value:
                data[field] = value
        return data

    def load_from_yaml(self, path: Path, apply_env_override: bool) -> Settings:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f)
        if not data:
            data = {}
        if apply_env_override:
            data.update(self._env_overrides())
        return Settings.model_validate(data)

    def load_default(self) -> Settings:
        """
        Load the default Settings, using TREE_RATER_CONFIG or tree_rater.yml.

        Credentials and deployment flags normally come from the environment; the YAML
        file only carries values that differ from the defaults.
        """
        path_str = self._env.get(DEFAULT_CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILENAME
        path = Path(path_str)
        if path.exists():
            return self.load_from_yaml(path, apply_env_override=True)
        return Settings.model_validate(self._env_overrides())


_loader = ConfigLoader()


def get_config(config_path: str | Path | None = None) -> Settings:
    """
    Return singleton config.

    - If config_path is given, load from it (without env overrides) and update the cache.
    - Otherwise, return the cached config if available, or load via ConfigLoader.load_default().
    """
    global _config
    if config_path is not None:
        _config = _loader.load_from_yaml(Path(config_path), apply_env_override=False)
        return _config
    if _config is not None:
        return _config
    _config = _loader.load_default()
    return _config


def reset_config() -> None:
    """Clear cached config (for tests)."""
    global _config
    _config = None
