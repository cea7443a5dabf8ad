# inout/config_parser.py
import yaml
from typing import Any, Dict, Optional
from cerberus import Validator

from core.config import DEFAULT_CONFIG, EngineConfig
from core.exceptions import ConfigError
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Schema of the optional ``engine`` section of a YAML configuration file.
ENGINE_SCHEMA: Dict[str, Any] = {
    'engine': {
        'type': 'dict',
        'required': False,
        'schema': {
            'pivot_tol': {
                'type': 'float',
                'coerce': float,
                'min': 0.0,
                'required': False,
            },
            'check_finite': {
                'type': 'boolean',
                'required': False,
            },
            'log_level': {
                'type': 'string',
                'coerce': str.upper,
                'allowed': ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                'required': False,
            },
        },
    },
}


def validate_schema(data: Dict[str, Any], schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate configuration data against a Cerberus schema.

    Returns:
        The validated (and coerced) document.

    Raises:
        ConfigError: If validation fails.
    """
    validator = Validator(schema)
    if not validator.validate(data):
        errors = validator.errors
        logger.error("Configuration schema validation errors: %s", errors)
        raise ConfigError("Configuration schema validation failed: " + str(errors))
    return validator.document


def config_from_dict(data: Optional[Dict[str, Any]], base: EngineConfig = DEFAULT_CONFIG) -> EngineConfig:
    """Build an EngineConfig from an already parsed mapping."""
    data = validate_schema(data or {}, ENGINE_SCHEMA)
    return base.with_overrides(**data.get('engine', {}))


def load_config(yaml_file: str, base: EngineConfig = DEFAULT_CONFIG) -> EngineConfig:
    """
    Read an engine configuration from a YAML file. Keys missing from the
    file keep the values of ``base``.

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML or fails validation.
    """
    try:
        with open(yaml_file, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file '{yaml_file}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in '{yaml_file}': {exc}") from exc
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"Configuration file '{yaml_file}' must contain a mapping")
    config = config_from_dict(data, base)
    logger.debug("Loaded engine configuration %s from %s", config, yaml_file)
    return config
