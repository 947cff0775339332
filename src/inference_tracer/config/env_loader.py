"""Environment variable file loader with priority-based loading."""

from enum import Enum
from pathlib import Path

import structlog
from dotenv import load_dotenv

log = structlog.get_logger(__name__)


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


def get_environment() -> Environment:
    """Detect current environment from APP_ENV environment variable.

    Returns:
        Environment enum value.

    Environment variable mapping:
    - "production" or "prod" → Environment.PRODUCTION
    - "staging" or "stage" → Environment.STAGING
    - "test" → Environment.TEST
    - Default → Environment.DEVELOPMENT

    Note: This function uses os.getenv() directly because environment
    detection must happen before settings are loaded.
    """
    import os  # noqa: PLC0415

    app_env = os.getenv("APP_ENV", "").lower()

    if app_env in ("production", "prod"):
        return Environment.PRODUCTION
    elif app_env in ("staging", "stage"):
        return Environment.STAGING
    elif app_env == "test":
        return Environment.TEST
    else:
        return Environment.DEVELOPMENT


def load_env_files(project_root: Path | None = None) -> list[str]:
    """Load .env files in priority order.

    Priority order (highest to lowest):
    1. `.env.{environment}.local`
    2. `.env.{environment}`
    3. `.env.local`
    4. `.env`

    Explicitly exported environment variables always win over file values.

    Args:
        project_root: Directory holding the .env files. Defaults to the
            current working directory, where the service is started from.

    Returns:
        Names of the files that were loaded, lowest priority first.
    """
    if project_root is None:
        project_root = Path.cwd()

    env_name = get_environment().value

    # Later files must not override earlier *exported* values, so load the
    # highest-priority file first with override=False.
    env_files = [
        project_root / f".env.{env_name}.local",
        project_root / f".env.{env_name}",
        project_root / ".env.local",
        project_root / ".env",
    ]

    loaded_files = []
    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)
            loaded_files.append(env_file.name)

    loaded_files.reverse()
    if loaded_files:
        log.info(
            "env_files_loaded",
            environment=env_name,
            files=loaded_files,
            project_root=str(project_root),
        )
    else:
        log.debug("no_env_files_found", environment=env_name, project_root=str(project_root))
    return loaded_files
