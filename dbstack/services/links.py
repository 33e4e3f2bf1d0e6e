"""
Link and access-policy descriptors.

Components that other code can "link" to expose two things:

- a ``LinkDescriptor``: a typed bundle of deferred values (identifiers,
  secret references, names) to inject into a consumer's runtime;
- a list of ``PolicyStatement``: the least-privilege permissions a consumer
  needs to use the component.

Both hold the component's own deferred outputs by reference and never
resolve anything eagerly.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

from dbstack.errors import ResolutionError, ValidationError
from dbstack.services.deferred import DeferredValue, all_, merge_record, output

logger = logging.getLogger(__name__)

POLICY_VERSION = "2012-10-17"
ENVIRONMENT_PREFIX = "DBSTACK_RESOURCE_"


@dataclass(frozen=True)
class LinkDescriptor:
    """
    Typed value bundle exported by a linkable component.

    Attributes:
        type_shape: Field name -> type name, describing ``value``
        value: Field name -> deferred value
    """
    type_shape: Mapping[str, str]
    value: Mapping[str, DeferredValue]

    @classmethod
    def build(cls, type_shape: Mapping[str, str], value: Mapping[str, Any]) -> "LinkDescriptor":
        if set(type_shape) != set(value):
            raise ValueError(
                f"Link type shape {sorted(type_shape)} does not match values {sorted(value)}"
            )
        return cls(
            MappingProxyType(dict(type_shape)),
            MappingProxyType({key: output(item) for key, item in value.items()}),
        )

    def type_annotation(self) -> str:
        """Render the shape, e.g. ``{ cluster_arn: str; secret_arn: str }``."""
        fields = "; ".join(f"{key}: {kind}" for key, kind in self.type_shape.items())
        return f"{{ {fields} }}"

    def resolve(self) -> DeferredValue[Dict[str, Any]]:
        """All link values as one deferred dict."""
        return merge_record(self.value)


@dataclass(frozen=True)
class PolicyStatement:
    """
    Least-privilege permission grant.

    Attributes:
        actions: IAM-style action names
        resources: Deferred resource identifiers the actions are scoped to
    """
    actions: FrozenSet[str]
    resources: Tuple[DeferredValue, ...]

    @classmethod
    def build(cls, actions: Iterable[str], resources: Sequence[Any]) -> "PolicyStatement":
        return cls(frozenset(actions), tuple(output(resource) for resource in resources))

    def render(self) -> DeferredValue[Dict[str, Any]]:
        """
        Render as an IAM ``Allow`` statement once all resources resolve.

        A resource resolving to a wildcard fails the rendered value with
        ``ValidationError``.
        """
        actions = sorted(self.actions)

        def to_statement(resources: List[Any]) -> Dict[str, Any]:
            for resource in resources:
                if not isinstance(resource, str) or not resource or "*" in resource:
                    raise ValidationError(
                        f"Policy resource for {actions} must be a specific identifier, got {resource!r}",
                        details={"actions": actions},
                    )
            return {"Effect": "Allow", "Action": actions, "Resource": list(resources)}

        return all_(self.resources).map(to_statement)


def policy_document(statements: Iterable[PolicyStatement]) -> DeferredValue[Dict[str, Any]]:
    """Combine statements into one deferred IAM policy document."""
    rendered = [statement.render() for statement in statements]
    return all_(rendered).map(lambda items: {"Version": POLICY_VERSION, "Statement": items})


class Linkable(ABC):
    """A component whose outputs can be injected into a consumer."""

    @abstractmethod
    def get_link(self) -> LinkDescriptor:
        pass


class AWSLinkable(ABC):
    """A component that needs IAM permissions granted to its consumers."""

    @abstractmethod
    def get_access_policy(self) -> List[PolicyStatement]:
        pass


def environment_key(name: str) -> str:
    """``MyDatabase`` -> ``DBSTACK_RESOURCE_MYDATABASE``."""
    return ENVIRONMENT_PREFIX + re.sub(r"[^A-Za-z0-9]", "_", name).upper()


def link_environment(links: Mapping[str, Linkable]) -> DeferredValue[Dict[str, str]]:
    """
    Build the environment variables a consumer needs for ``links``.

    Each linked component becomes one variable holding its resolved link
    values as JSON.
    """
    encoded = {
        environment_key(name): linkable.get_link().resolve().map(
            lambda values: json.dumps(values, sort_keys=True)
        )
        for name, linkable in links.items()
    }
    return merge_record(encoded)


def single_secret_arn(secrets: Any) -> str:
    """
    Return the ARN of the one managed credential secret.

    Only single-secret rotation is supported; zero or several secrets mean
    the backend reported something this library cannot use.

    Raises:
        ResolutionError: Unless exactly one secret with an ARN is present.
    """
    secrets = list(secrets or [])
    if len(secrets) != 1:
        logger.error(f"Expected exactly one managed credential secret, backend reported {len(secrets)}")
        raise ResolutionError(
            f"Expected exactly one managed credential secret, got {len(secrets)}",
            details={"secret_count": len(secrets)},
        )
    secret = secrets[0]
    arn = secret.get("secret_arn") if isinstance(secret, Mapping) else None
    if not arn:
        raise ResolutionError("Managed credential secret has no ARN")
    return arn
