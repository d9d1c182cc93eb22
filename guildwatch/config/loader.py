import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from guildwatch.config.schema import GuildwatchConfig
from guildwatch.logging_config import get_logger
from guildwatch.utils import deep_merge, expand_env_vars

logger = get_logger(__name__)

# Project root (relative to this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_CONFIG: dict[str, object] = {
    "observer": {
        "token": "${OBSERVER_TOKEN:-}",
        "label": "Observer",
        "port": "${OBSERVER_PORT:-3000}",
        "scope_file": "${GUILDWATCH_DATA_DIR:-data}/watched_communities_observer.json",
    },
    "notifier": {
        "token": "${NOTIFIER_TOKEN:-}",
        "label": "Notifier",
        "port": "${NOTIFIER_PORT:-3007}",
        "scope_file": "${GUILDWATCH_DATA_DIR:-data}/watched_communities_notifier.json",
        "recipient_id": "${RECIPIENT_USER_ID:-}",
    },
    "relay": {
        "url": "${RELAY_URL:-http://localhost:3007}",
    },
    "deployment": {
        "environment": "${RAILWAY_ENVIRONMENT:-local}",
    },
}


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Optional[Path]) -> None:
    """Recursively warn about unknown keys in a model and its nested models."""
    if model.model_extra:
        logger.warning("Unknown keys in %s at %s: %s", path, config_path, list(model.model_extra.keys()))
    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)


def resolve_public_url() -> Optional[str]:
    """Public URL advertised by the hosting platform, if any."""
    domain = os.getenv("RAILWAY_PUBLIC_DOMAIN") or os.getenv("PUBLIC_DOMAIN")
    if domain:
        return f"https://{domain}"
    return os.getenv("RAILWAY_STATIC_URL") or None


def load_env(env_path: Optional[Path] = None) -> None:
    """Load .env (``GUILDWATCH_ENV_PATH`` overrides the project-root default)."""
    if env_path is None:
        env_override = os.getenv("GUILDWATCH_ENV_PATH")
        env_path = Path(env_override).expanduser() if env_override else PROJECT_ROOT / ".env"
    if not env_path.is_absolute():
        env_path = (PROJECT_ROOT / env_path).resolve()
    load_dotenv(env_path)


def load_config(path: Optional[Path] = None) -> GuildwatchConfig:
    """Load and validate configuration.

    Built-in defaults (driven by environment variables) are deep-merged with
    the YAML file at ``path``, ``GUILDWATCH_CONFIG_PATH`` or ``config.yml`` in
    the project root. A missing file is fine: defaults plus environment
    variables form a complete configuration.

    Raises:
        pydantic.ValidationError: If the merged configuration is invalid.
    """
    load_env()

    if path is None:
        config_override = os.getenv("GUILDWATCH_CONFIG_PATH")
        path = Path(config_override).expanduser() if config_override else PROJECT_ROOT / "config.yml"

    user_config: object = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        logger.info("Loaded config file %s", path)
    else:
        logger.info("No config file at %s; using defaults and environment", path)

    merged = expand_env_vars(deep_merge(DEFAULT_CONFIG, user_config))  # type: ignore[arg-type]
    model = GuildwatchConfig.model_validate(merged)
    _warn_unknown_keys(model, "root", path)

    if model.deployment.public_url is None:
        model.deployment.public_url = resolve_public_url()
    return model
