"""
Engine configuration.

Configuration is a plain versioned dict at rest (the host owns storage) and
an EngineConfig dataclass in memory.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

logger = logging.getLogger(__name__)

CURRENT_CONFIG_VERSION = 1


@dataclass(frozen=True)
class EngineConfig:
    """
    Tunable limits for the automation engine.

    Attributes:
        log_capacity: Maximum execution log entries kept (oldest evicted)
        max_condition_depth: Deepest condition group nesting evaluated
        max_action_depth: Deepest conditional action nesting executed
        expression_max_length: Longest accepted condition expression text
        expression_max_depth: Deepest parenthesis nesting in expressions
    """

    log_capacity: int = 1000
    max_condition_depth: int = 16
    max_action_depth: int = 8
    expression_max_length: int = 256
    expression_max_depth: int = 8

    def __post_init__(self) -> None:
        for name in (
            "log_capacity",
            "max_condition_depth",
            "max_action_depth",
            "expression_max_length",
            "expression_max_depth",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage."""
        return {
            "version": CURRENT_CONFIG_VERSION,
            "log_capacity": self.log_capacity,
            "max_condition_depth": self.max_condition_depth,
            "max_action_depth": self.max_action_depth,
            "expression": {
                "max_length": self.expression_max_length,
                "max_depth": self.expression_max_depth,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Deserialize from dict, migrating older versions first."""
        data = migrate_config(data)
        defaults = cls()
        expression = data.get("expression", {})
        return cls(
            log_capacity=data.get("log_capacity", defaults.log_capacity),
            max_condition_depth=data.get("max_condition_depth", defaults.max_condition_depth),
            max_action_depth=data.get("max_action_depth", defaults.max_action_depth),
            expression_max_length=expression.get("max_length", defaults.expression_max_length),
            expression_max_depth=expression.get("max_depth", defaults.expression_max_depth),
        )


def default_config() -> Dict[str, Any]:
    """Get default engine configuration."""
    return EngineConfig().to_dict()


def migrate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate configuration to current version.

    Version 0 (unversioned) stored the expression limits flat as
    "expression_max_length" / "expression_max_depth".

    Args:
        config: Configuration dict (potentially older version)

    Returns:
        Migrated configuration dict
    """
    version = config.get("version", 0)
    if version > CURRENT_CONFIG_VERSION:
        raise ValueError(f"Unsupported config version: {version}")

    if version == CURRENT_CONFIG_VERSION:
        return config

    migrated = dict(config)
    expression = dict(migrated.get("expression", {}))
    if "expression_max_length" in migrated:
        expression["max_length"] = migrated.pop("expression_max_length")
    if "expression_max_depth" in migrated:
        expression["max_depth"] = migrated.pop("expression_max_depth")
    migrated["expression"] = expression
    migrated["version"] = CURRENT_CONFIG_VERSION
    logger.info(f"Migrated engine config from version {version} to {CURRENT_CONFIG_VERSION}")
    return migrated


def config_schema() -> Dict[str, Any]:
    """
    Get configuration schema for the engine.

    Returns a JSON-schema-like structure for UI rendering.
    """
    return {
        "type": "object",
        "properties": {
            "version": {
                "type": "integer",
                "title": "Config Version",
                "readOnly": True,
            },
            "log_capacity": {
                "type": "integer",
                "title": "Execution Log Size",
                "description": "Number of automation runs kept for diagnostics",
                "minimum": 1,
                "default": 1000,
            },
            "max_condition_depth": {
                "type": "integer",
                "title": "Max Condition Nesting",
                "minimum": 1,
                "default": 16,
            },
            "max_action_depth": {
                "type": "integer",
                "title": "Max Conditional Action Nesting",
                "minimum": 1,
                "default": 8,
            },
            "expression": {
                "type": "object",
                "title": "Condition Expressions",
                "properties": {
                    "max_length": {"type": "integer", "minimum": 1, "default": 256},
                    "max_depth": {"type": "integer", "minimum": 1, "default": 8},
                },
            },
        },
        "required": ["version"],
    }
