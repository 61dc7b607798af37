"""Loading of rulesim.yaml and of YAML/JSON rule files.

Config values may reference environment variables as ${VAR} (fixture
request headers carrying tokens, for instance). A missing config file is
only an error when one was asked for explicitly.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from rulesim.config.schema import Config
from rulesim.paths import get_default_config_path


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


class ConfigNotFoundError(ConfigError):
    """Raised when no config file can be found."""


class ConfigValidationError(ConfigError):
    """Raised when a config file does not match the Config schema.

    ``validation_errors`` holds the raw pydantic error dicts.
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        validation_errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.validation_errors = validation_errors or []
        super().__init__(message, path)


class EnvironmentVariableError(ConfigError):
    """Raised when a referenced environment variable is not set."""

    def __init__(self, var_name: str, path: Path | None = None) -> None:
        self.var_name = var_name
        message = (
            f"Environment variable '{var_name}' is not set. "
            f"Set it or update your config to use a different value."
        )
        super().__init__(message, path)


ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


def expand_env_vars(value: Any, *, strict: bool = True) -> Any:
    """Expand environment variable references in a value.

    Supports the ${VAR_NAME} syntax inside strings, recursing into
    dicts and lists.

    Args:
        value: The value to expand. Can be a string, list, or dict.
        strict: If True, raise an error for undefined env vars.
                If False, leave the ${VAR} reference unchanged.

    Returns:
        The value with environment variables expanded.

    Raises:
        EnvironmentVariableError: If strict=True and an env var is not set.

    Examples:
        >>> os.environ["FIXTURE_TOKEN"] = "secret"
        >>> expand_env_vars({"Authorization": "Bearer ${FIXTURE_TOKEN}"})
        {'Authorization': 'Bearer secret'}
    """
    if isinstance(value, str):
        return _expand_string(value, strict=strict)
    if isinstance(value, dict):
        return {k: expand_env_vars(v, strict=strict) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item, strict=strict) for item in value]
    return value


def _expand_string(s: str, *, strict: bool) -> str:
    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            if strict:
                raise EnvironmentVariableError(var_name)
            return match.group(0)
        return value

    return ENV_VAR_PATTERN.sub(replace_match, s)


def _search_candidates() -> list[Path]:
    candidates: list[Path] = []
    env_path = os.environ.get("RULESIM_CONFIG")
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())
    candidates.append(Path.cwd() / "rulesim.yaml")
    candidates.append(get_default_config_path())
    return candidates


def discover_config_path(explicit_path: str | Path | None = None) -> Path:
    """Return the rulesim config file to use.

    An explicit ``--config`` path must exist. Otherwise the first existing
    file among ``$RULESIM_CONFIG``, ``./rulesim.yaml`` and the XDG config
    path wins.

    Raises:
        ConfigNotFoundError: If the explicit path is missing or nothing is found
    """
    if explicit_path:
        path = Path(explicit_path).expanduser().resolve()
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise ConfigNotFoundError(msg, path)
        return path

    candidates = _search_candidates()
    for candidate in candidates:
        if candidate.exists():
            return candidate

    locations = "\n  - ".join(str(p) for p in candidates)
    msg = f"No config file found. Searched locations:\n  - {locations}"
    raise ConfigNotFoundError(msg)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML (or JSON) file holding a mapping.

    Args:
        path: Path to the file

    Returns:
        Parsed content as a dictionary

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read file: {e}"
        raise ConfigError(msg, path) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML syntax: {e}"
        raise ConfigError(msg, path) from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        msg = "File must contain a YAML mapping (dictionary), not a list or scalar"
        raise ConfigError(msg, path)

    return data


def format_validation_errors(error: ValidationError) -> list[str]:
    """Render pydantic validation errors as ``  - loc: msg`` lines."""
    lines: list[str] = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"])
        lines.append(f"  - {loc}: {err['msg']}")
    return lines


def load_config(
    path: str | Path | None = None,
    *,
    expand_env: bool = True,
    required: bool = True,
) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        path: Optional explicit path to config file. If None, uses discovery.
        expand_env: Whether to expand ${VAR} environment variable references.
        required: If False and no config file is discovered, return the
            default Config instead of raising. An explicit path that does
            not exist is always an error.

    Returns:
        Validated Config object

    Raises:
        ConfigNotFoundError: If no config file is found
        ConfigError: If the file cannot be read or parsed
        EnvironmentVariableError: If a required env var is not set
        ConfigValidationError: If the config fails schema validation
    """
    try:
        config_path = discover_config_path(path)
    except ConfigNotFoundError:
        if required or path:
            raise
        return Config()

    raw_config = load_yaml(config_path)

    if expand_env:
        try:
            raw_config = expand_env_vars(raw_config, strict=True)
        except EnvironmentVariableError as e:
            e.path = config_path
            raise

    try:
        config = Config.model_validate(raw_config)
    except ValidationError as e:
        error_msgs = format_validation_errors(e)
        message = (
            f"Config validation failed ({len(error_msgs)} error(s)):\n"
            + "\n".join(error_msgs)
        )
        validation_error_dicts = [dict(err) for err in e.errors()]
        raise ConfigValidationError(
            message, path=config_path, validation_errors=validation_error_dicts
        ) from e

    return config
