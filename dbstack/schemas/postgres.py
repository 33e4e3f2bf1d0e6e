"""Pydantic schemas for Postgres component arguments.

Every field is optional and may be given either as a concrete value or as a
``DeferredValue``. Concrete values are validated when the component is
constructed; deferred ones are validated once they resolve.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dbstack.errors import ValidationError
from dbstack.services.deferred import DeferredValue

DEFAULT_MIN_CAPACITY = 0.5
DEFAULT_MAX_CAPACITY = 4.0
MAX_CAPACITY_LIMIT = 128.0

TransformHookInput = Union[Callable[..., Any], Dict[str, Any]]


def _check_capacity(value: float, field_name: str) -> float:
    if value < 0 or value > MAX_CAPACITY_LIMIT:
        raise ValueError(f"{field_name} must be between 0 and {MAX_CAPACITY_LIMIT:g} ACUs, got {value:g}")
    if (value * 2) != int(value * 2):
        raise ValueError(f"{field_name} must be a multiple of 0.5 ACUs, got {value:g}")
    return value


class ScalingArgs(BaseModel):
    """Serverless capacity bounds in ACUs.

    Attributes:
        min: Minimum capacity; 0 lets the cluster auto-pause
        max: Maximum capacity
    """

    min: Optional[Union[float, DeferredValue]] = Field(None, description="Minimum ACUs (default 0.5)")
    max: Optional[Union[float, DeferredValue]] = Field(None, description="Maximum ACUs (default 4)")

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid", frozen=True)

    @field_validator("min", "max")
    @classmethod
    def _validate_capacity(cls, value, info):
        if value is None or isinstance(value, DeferredValue):
            return value
        return _check_capacity(value, info.field_name)

    @model_validator(mode="after")
    def _validate_bounds(self):
        if isinstance(self.min, DeferredValue) or isinstance(self.max, DeferredValue):
            return self
        low = DEFAULT_MIN_CAPACITY if self.min is None else self.min
        high = DEFAULT_MAX_CAPACITY if self.max is None else self.max
        if high < DEFAULT_MIN_CAPACITY:
            raise ValueError(f"max must be at least {DEFAULT_MIN_CAPACITY:g} ACUs, got {high:g}")
        if low > high:
            raise ValueError(f"min ({low:g}) must not exceed max ({high:g})")
        return self


class PostgresTransforms(BaseModel):
    """Transform hooks for the resources the Postgres component creates."""

    cluster: Optional[TransformHookInput] = Field(None, description="Transform the cluster")
    instance: Optional[TransformHookInput] = Field(None, description="Transform the cluster instance")

    model_config = ConfigDict(extra="forbid", frozen=True)

    def as_mapping(self) -> Dict[str, Optional[TransformHookInput]]:
        return {"cluster": self.cluster, "instance": self.instance}


class PostgresArgs(BaseModel):
    """Arguments accepted by the Postgres component."""

    version: Optional[Union[str, DeferredValue]] = Field(None, description="Engine version")
    database_name: Optional[Union[str, DeferredValue]] = Field(
        None, description="Database created inside the cluster (default: app name)"
    )
    scaling: Optional[Union[ScalingArgs, DeferredValue]] = Field(None, description="Serverless scaling bounds")
    transform: Optional[PostgresTransforms] = Field(None, description="Resource transform hooks")

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid", frozen=True)

    @field_validator("version", "database_name")
    @classmethod
    def _validate_non_empty(cls, value, info):
        if isinstance(value, str) and not value.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return value


def _translate(error: pydantic.ValidationError, what: str) -> ValidationError:
    errors = [
        {"loc": ".".join(str(part) for part in item["loc"]), "msg": item["msg"]}
        for item in error.errors()
    ]
    summary = "; ".join(f"{item['loc'] or what}: {item['msg']}" for item in errors)
    return ValidationError(f"Invalid {what}: {summary}", details={"errors": errors})


def parse_postgres_args(args: Union[None, PostgresArgs, Mapping[str, Any]]) -> PostgresArgs:
    """
    Validate raw component arguments.

    Raises:
        ValidationError: If any concrete argument is malformed.
    """
    if isinstance(args, PostgresArgs):
        return args
    if args is not None and not isinstance(args, Mapping):
        raise ValidationError(f"Postgres arguments must be a mapping, got {type(args).__name__}")
    try:
        return PostgresArgs.model_validate(dict(args or {}))
    except pydantic.ValidationError as e:
        raise _translate(e, "Postgres arguments") from e


def parse_scaling(scaling: Union[None, ScalingArgs, Mapping[str, Any]]) -> ScalingArgs:
    """
    Validate scaling bounds that arrived through a deferred value.

    Raises:
        ValidationError: If the bounds are malformed.
    """
    if isinstance(scaling, ScalingArgs):
        return scaling
    if scaling is not None and not isinstance(scaling, Mapping):
        raise ValidationError(f"scaling must be a mapping, got {type(scaling).__name__}")
    try:
        return ScalingArgs.model_validate(dict(scaling or {}))
    except pydantic.ValidationError as e:
        raise _translate(e, "scaling") from e
