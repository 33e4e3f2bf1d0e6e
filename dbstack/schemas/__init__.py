"""dbstack input schemas.

Pydantic models used to validate component arguments.
"""

from dbstack.schemas.postgres import (
    PostgresArgs,
    PostgresTransforms,
    ScalingArgs,
    parse_postgres_args,
    parse_scaling,
)

__all__ = [
    "PostgresArgs",
    "PostgresTransforms",
    "ScalingArgs",
    "parse_postgres_args",
    "parse_scaling",
]
