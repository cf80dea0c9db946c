"""Configuration classes for DOCX cleaning.

This module provides configuration objects for the container, rewriting and
performance layers, enabling fine-tuned control over cleaning behavior.
"""

import json
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Dict, List, Optional

# 256 MiB uncompressed per entry
DEFAULT_MAX_ENTRY_SIZE_BYTES = 256 * 1024 * 1024
DEFAULT_MAX_COMPRESSION_RATIO = 500.0

_COMPONENTS = ("container", "rewrite", "performance", "global_")


class TimestampPolicy(Enum):
    """What to do with the timestamps of rewritten entries."""

    PRESERVE = auto()     # Keep the source entry's date_time
    REGENERATE = auto()   # Stamp rewritten entries with the current local time


@dataclass(frozen=True)
class ContainerConfig:
    """Configuration for reading and writing the zip container."""

    timestamp_policy: TimestampPolicy = TimestampPolicy.PRESERVE
    require_content_types: bool = True
    max_entry_size_bytes: Optional[int] = DEFAULT_MAX_ENTRY_SIZE_BYTES
    max_compression_ratio: Optional[float] = DEFAULT_MAX_COMPRESSION_RATIO

    def __post_init__(self) -> None:
        """Validate container configuration."""
        if self.max_entry_size_bytes is not None and self.max_entry_size_bytes <= 0:
            raise ValueError("max_entry_size_bytes must be > 0 or None")
        if self.max_compression_ratio is not None and self.max_compression_ratio < 1.0:
            raise ValueError("max_compression_ratio must be >= 1.0 or None")


@dataclass(frozen=True)
class RewriteConfig:
    """Configuration for the run text rewriter."""

    skip_unchanged_parts: bool = True
    fail_on_unsupported: bool = False
    huge_tree: bool = False


@dataclass(frozen=True)
class PerformanceConfig:
    """Configuration for performance optimization."""

    enable_parallel_processing: bool = False
    max_worker_threads: int = 4

    def __post_init__(self) -> None:
        """Validate performance configuration."""
        if self.max_worker_threads <= 0:
            raise ValueError("max_worker_threads must be > 0")


@dataclass(frozen=True)
class GlobalConfig:
    """Global settings that apply across all components."""

    logging_level: str = "WARNING"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    enable_correlation_tracking: bool = True

    def __post_init__(self) -> None:
        """Validate global configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.logging_level not in valid_levels:
            raise ValueError(f"logging_level must be one of {valid_levels}")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class CleanerConfig:
    """Complete configuration for a cleaning run.

    Immutable once built, so a single instance can be shared by worker
    threads without locking.
    """

    container: ContainerConfig = field(default_factory=ContainerConfig)
    rewrite: RewriteConfig = field(default_factory=RewriteConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    global_: GlobalConfig = field(default_factory=GlobalConfig)

    # Metadata
    version: str = "0.1.0"
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the complete configuration."""
        try:
            self.container.__post_init__()
            self.performance.__post_init__()
            self.global_.__post_init__()
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

    def override(self, **kwargs: Any) -> "CleanerConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Configuration fields to override, nested fields use the
                ``component__field`` notation

        Returns:
            New CleanerConfig instance with overrides applied

        Example:
            >>> config = CleanerConfig()
            >>> new_config = config.override(
            ...     performance__enable_parallel_processing=True,
            ...     rewrite__fail_on_unsupported=True,
            ... )
        """
        nested_overrides: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.rsplit("__", 1)
                if component not in _COMPONENTS:
                    raise ConfigValidationError(
                        f"Unknown configuration component: {component}",
                        field_name=key,
                        suggestions=list(_COMPONENTS),
                    )
                nested_overrides.setdefault(component, {})[field_name] = value
            else:
                nested_overrides[key] = value

        new_fields: Dict[str, Any] = {}
        for component in _COMPONENTS:
            current = getattr(self, component)
            if component in nested_overrides:
                try:
                    new_fields[component] = replace(current, **nested_overrides[component])
                except (TypeError, ValueError) as e:
                    raise ConfigValidationError(str(e), field_name=component) from e
            else:
                new_fields[component] = current

        for key, value in nested_overrides.items():
            if key not in _COMPONENTS:
                new_fields[key] = value

        try:
            return replace(self, **new_fields)
        except TypeError as e:
            raise ConfigValidationError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        def _dataclass_to_dict(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return {
                    name: _dataclass_to_dict(getattr(obj, name))
                    for name in obj.__dataclass_fields__
                }
            if isinstance(obj, Enum):
                return obj.name
            return obj

        result = _dataclass_to_dict(self)
        if not isinstance(result, dict):
            raise ConfigValidationError("Configuration serialization failed")
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CleanerConfig":
        """Create configuration from dictionary.

        Unknown keys are rejected so that typos in settings files surface
        instead of being ignored.
        """
        def _dict_to_dataclass(data_dict: Any, target_class: type) -> Any:
            if not isinstance(data_dict, dict):
                raise ConfigValidationError(
                    f"Expected an object for {target_class.__name__}, "
                    f"got {type(data_dict).__name__}"
                )

            known = target_class.__dataclass_fields__
            unknown = sorted(set(data_dict) - set(known))
            if unknown:
                raise ConfigValidationError(
                    f"Unknown {target_class.__name__} fields: {', '.join(unknown)}",
                    field_name=unknown[0],
                    suggestions=sorted(known),
                )

            field_values: Dict[str, Any] = {}
            for field_name, field_info in known.items():
                if field_name not in data_dict:
                    continue
                value = data_dict[field_name]
                field_type = field_info.type

                if hasattr(field_type, "__dataclass_fields__"):
                    field_values[field_name] = _dict_to_dataclass(value, field_type)
                elif isinstance(field_type, type) and issubclass(field_type, Enum):
                    try:
                        field_values[field_name] = (
                            field_type[value] if isinstance(value, str) else value
                        )
                    except KeyError as e:
                        raise ConfigValidationError(
                            f"Invalid value {value!r} for {field_name}",
                            field_name=field_name,
                            suggestions=list(field_type.__members__),
                        ) from e
                else:
                    field_values[field_name] = value

            try:
                return target_class(**field_values)
            except ValueError as e:
                raise ConfigValidationError(str(e)) from e

        result = _dict_to_dataclass(data, cls)
        if not isinstance(result, cls):
            raise ConfigValidationError(f"Failed to deserialize to {cls.__name__}")
        return result

    @classmethod
    def from_json(cls, json_str: str) -> "CleanerConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        return cls.from_dict(data)

    # Preset factory methods
    @classmethod
    def default(cls) -> "CleanerConfig":
        """Sequential run, timestamps preserved, unsupported parts copied."""
        return cls(name="default")

    @classmethod
    def strict(cls) -> "CleanerConfig":
        """Abort instead of copying parts the rewriter cannot traverse."""
        return cls(
            rewrite=RewriteConfig(fail_on_unsupported=True),
            container=ContainerConfig(require_content_types=True),
            name="strict",
            description="Treat unsupported text-bearing parts as fatal errors",
        )

    @classmethod
    def performance_optimized(cls) -> "CleanerConfig":
        """Rewrite text-bearing parts on a worker pool."""
        return cls(
            performance=PerformanceConfig(
                enable_parallel_processing=True,
                max_worker_threads=4,
            ),
            rewrite=RewriteConfig(huge_tree=True),
            name="performance_optimized",
            description="Parallel rewriting of text-bearing parts for large documents",
        )
