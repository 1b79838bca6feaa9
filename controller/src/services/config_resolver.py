"""
Run configuration resolver and config file loader.
"""

import logging
import os
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from controller.src.errors import InvalidConfiguration
from controller.src.models.run import RunConfiguration

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    name: field.default for name, field in RunConfiguration.model_fields.items()
}

CONFIG_FILE_NAMES = (".tfci.yml", ".tfci.yaml")

# Unquoted numbers are rejected for these: YAML reads 1.10 as the float 1.1
STRING_OPTIONS = {
    name for name, field in RunConfiguration.model_fields.items() if field.annotation is str
}

def _is_set(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    return True

def resolve_configuration(
    partial: Optional[Mapping[str, Any]] = None,
    defaults: Mapping[str, Any] = DEFAULTS,
) -> RunConfiguration:
    """
    Merge caller-supplied options over the declared defaults.
    Empty strings and None count as "not supplied".
    """
    partial = dict(partial or {})

    unknown = sorted(set(partial) - set(defaults))
    if unknown:
        raise InvalidConfiguration(f"Unknown option(s): {', '.join(unknown)}")

    resolved = {
        name: partial[name] if _is_set(partial.get(name)) else default
        for name, default in defaults.items()
    }

    if not _is_set(resolved.get("validate_directory")):
        resolved["validate_directory"] = resolved.get("working_directory")

    try:
        return RunConfiguration(**resolved)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidConfiguration(f"Invalid configuration: {problems}")

def parse_config_file(yaml_content: str) -> Dict[str, Any]:
    """Parse and validate the shape of a config file from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise InvalidConfiguration(f"Invalid YAML: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise InvalidConfiguration("Config file must be a mapping of option names to values")

    validated = {}
    for key, value in config.items():
        # Accept the dashed spelling used by workflow inputs
        name = str(key).replace("-", "_")
        if name not in DEFAULTS:
            raise InvalidConfiguration(f"Unknown option '{key}' in config file")
        if isinstance(value, (dict, list)):
            raise InvalidConfiguration(f"Option '{key}' must be a scalar value")
        if name in STRING_OPTIONS and value is not None and not isinstance(value, str):
            raise InvalidConfiguration(
                f"Option '{key}' must be a string, quote the value in the config file"
            )
        validated[name] = value

    return validated

def load_config_file(repo_path: str, config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read .tfci.yml from repository.
    Returns the validated options, or an empty dict if no file exists.
    """
    if config_path:
        candidates = [config_path]
    else:
        candidates = [os.path.join(repo_path, name) for name in CONFIG_FILE_NAMES]

    for candidate in candidates:
        if os.path.exists(candidate):
            logger.info(f"Loading config file {candidate}")
            try:
                with open(candidate, "r", encoding="utf-8") as f:
                    content = f.read()
            except (OSError, UnicodeDecodeError) as e:
                raise InvalidConfiguration(f"Cannot read config file {candidate}: {e}")
            return parse_config_file(content)

    if config_path:
        raise InvalidConfiguration(f"Config file not found: {config_path}")

    return {}
