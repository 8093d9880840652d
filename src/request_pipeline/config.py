"""Configuration module for the request pipeline.

This module provides the PipelineConfig class consumed by the pipeline
builder and the dispatcher. Options may be given with either hyphenated
keys (``dispatch-mode``) or Python field names (``dispatch_mode``).
Unrecognized options are rejected, never silently ignored.

Example:
    Basic usage with defaults:

        >>> config = PipelineConfig()
        >>> config.dispatch_mode
        'sync'

    Custom configuration:

        >>> config = PipelineConfig.from_dict(
        ...     {"dispatch-mode": "async", "worker-count": 8, "warn-mode": "build-time"}
        ... )
        >>> config.worker_count
        8

    Loading from environment:

        >>> import os
        >>> os.environ['PIPELINE_DISPATCH_MODE'] = 'async'
        >>> os.environ['PIPELINE_WORKER_COUNT'] = '2'
        >>> config = PipelineConfig.from_env()
"""

import os
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from request_pipeline.exceptions import ConfigurationError

DispatchMode = Literal["sync", "async"]
WarnMode = Literal["runtime", "build-time", "silent"]


class PipelineConfig(BaseModel):
    """Configuration for pipeline construction and dispatch.

    Attributes:
        dispatch_mode: "sync" runs the chain in the calling thread and
            returns the result directly. "async" schedules it on a worker
            pool and returns a handle. Default is "sync".
        warn_mode: How deprecation middleware reports. "runtime" warns once
            per feature on first use, "build-time" warns while the pipeline is
            being built, "silent" never warns. Default is "runtime".
        worker_count: Number of worker threads used in async mode. Must be
            at least 1. Default is 4.
        max_pending: Maximum number of async dispatches submitted but not yet
            finished. Further dispatches are rejected. 0 means unbounded.
            Default is 1024.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    dispatch_mode: DispatchMode = Field(
        default="sync",
        alias="dispatch-mode",
        description="Dispatch mode: 'sync' or 'async'",
    )
    warn_mode: WarnMode = Field(
        default="runtime",
        alias="warn-mode",
        description="Deprecation warning mode: 'runtime', 'build-time' or 'silent'",
    )
    worker_count: int = Field(
        default=4,
        alias="worker-count",
        description="Worker threads for async dispatch (>= 1)",
    )
    max_pending: int = Field(
        default=1024,
        alias="max-pending",
        description="Maximum pending async dispatches (0=unbounded)",
    )

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    @field_validator("worker_count")
    @classmethod
    def validate_worker_count(cls, v: int) -> int:
        """Validate the worker count is positive.

        Raises:
            ValueError: If the count is below 1.

        Example:
            >>> PipelineConfig(worker_count=2).worker_count
            2
        """
        if v < 1:
            raise ValueError(f"worker_count must be a positive integer, got {v}")
        return v

    @field_validator("max_pending")
    @classmethod
    def validate_max_pending(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_pending must be >= 0, got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "PIPELINE_") -> "PipelineConfig":
        """Create configuration from environment variables.

        Variable names are the upper-cased field names with the prefix, e.g.
        ``PIPELINE_DISPATCH_MODE``. Missing variables use the defaults.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            PipelineConfig populated from the environment.

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "dispatch_mode": str,
            "warn_mode": str,
            "worker_count": int,
            "max_pending": int,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)

            if env_value is not None:
                if field_type is int:
                    try:
                        config_dict[field_name] = int(env_value)
                    except ValueError as e:
                        raise ConfigurationError(
                            f"{env_var} must be an integer, got {env_value!r}",
                            option=field_name,
                        ) from e
                else:
                    config_dict[field_name] = env_value

        return cls.from_dict(config_dict)

    @classmethod
    def from_dict(cls, config_dict: Mapping[str, Any]) -> "PipelineConfig":
        """Create configuration from a mapping of options.

        Keys may be hyphenated or use field names.

        Args:
            config_dict: Mapping with configuration values.

        Returns:
            PipelineConfig populated from the mapping.

        Raises:
            ConfigurationError: If a key is unrecognized or a value is invalid.

        Example:
            >>> PipelineConfig.from_dict({"warn-mode": "silent"}).warn_mode
            'silent'
        """
        try:
            return cls.model_validate(dict(config_dict))
        except ValidationError as e:
            first = e.errors()[0]
            option = ".".join(str(part) for part in first["loc"]) or None
            if first["type"] == "extra_forbidden":
                message = f"Unrecognized configuration option: {option}"
            else:
                message = f"Invalid configuration option {option}: {first['msg']}"
            raise ConfigurationError(message, option=option) from e
