"""Resource definitions and the handles components hold on to.

A ``ResourceDefinition`` is the immutable description of one unit the
provisioning backend must create. A ``ResourceHandle`` wraps a definition and
exposes the backend-assigned outputs as deferred values, so later resources
can consume them before they exist.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from dbstack.services.deferred import DeferredValue, pending


def _collect_deferred(value: Any, found: list) -> None:
    if isinstance(value, DeferredValue):
        if not any(existing is value for existing in found):
            found.append(value)
    elif isinstance(value, Mapping):
        for item in value.values():
            _collect_deferred(item, found)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _collect_deferred(item, found)


@dataclass(frozen=True)
class ResourceDefinition:
    """
    Immutable description of one resource.

    Attributes:
        type_token: Backend resource type, e.g. ``aws:rds/cluster:Cluster``
        name: Logical resource name, unique within its component
        fields: Read-only argument bag; values may be deferred
        depends_on: Deferred values referenced anywhere in ``fields``
    """
    type_token: str
    name: str
    fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    depends_on: Tuple[DeferredValue, ...] = ()

    @classmethod
    def build(cls, type_token: str, name: str, fields: Mapping[str, Any]) -> "ResourceDefinition":
        found: list = []
        _collect_deferred(fields, found)
        return cls(type_token, name, MappingProxyType(dict(fields)), tuple(found))


class ResourceHandle:
    """
    A submitted (or about to be submitted) resource.

    Every name in ``OUTPUTS`` is available as a pending ``DeferredValue`` from
    construction on; the backend settles them once the resource exists.
    """

    TYPE_TOKEN = "dbstack:resource"
    OUTPUTS: Tuple[str, ...] = ("id", "arn")

    def __init__(self, name: str, args: Mapping[str, Any]):
        self.definition = ResourceDefinition.build(self.TYPE_TOKEN, name, args)
        self.urn: Optional[str] = None
        self._outputs: Dict[str, DeferredValue] = {key: pending() for key in self.OUTPUTS}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, urn={self.urn!r})"

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def type_token(self) -> str:
        return self.definition.type_token

    def output(self, key: str) -> DeferredValue:
        """Return the deferred output ``key``; the same object on every call."""
        try:
            return self._outputs[key]
        except KeyError:
            raise KeyError(f"{type(self).__name__} has no output '{key}'") from None

    @property
    def outputs(self) -> Mapping[str, DeferredValue]:
        return MappingProxyType(self._outputs)

    @property
    def id(self) -> DeferredValue:
        return self._outputs["id"]

    @property
    def arn(self) -> DeferredValue:
        return self._outputs["arn"]

    def _settle(self, reported: Mapping[str, Any], inputs: Mapping[str, Any]) -> None:
        """Resolve every output, falling back to the same-named input."""
        for key, deferred in self._outputs.items():
            deferred._resolve(reported[key] if key in reported else inputs.get(key))

    def _poison(self, error: BaseException) -> None:
        for deferred in self._outputs.values():
            deferred._fail(error)


class Cluster(ResourceHandle):
    """Managed database cluster."""

    TYPE_TOKEN = "aws:rds/cluster:Cluster"
    OUTPUTS = (
        "id",
        "arn",
        "engine_version",
        "database_name",
        "endpoint",
        "reader_endpoint",
        "port",
        "master_user_secrets",
    )

    @property
    def engine_version(self) -> DeferredValue:
        return self._outputs["engine_version"]

    @property
    def database_name(self) -> DeferredValue:
        return self._outputs["database_name"]

    @property
    def endpoint(self) -> DeferredValue:
        return self._outputs["endpoint"]

    @property
    def master_user_secrets(self) -> DeferredValue:
        """List of ``{"secret_arn", "secret_status", "kms_key_id"}`` records."""
        return self._outputs["master_user_secrets"]


class ClusterInstance(ResourceHandle):
    """Compute instance attached to a ``Cluster``."""

    TYPE_TOKEN = "aws:rds/clusterInstance:ClusterInstance"
    OUTPUTS = ("id", "arn", "endpoint", "engine_version")

    @property
    def endpoint(self) -> DeferredValue:
        return self._outputs["endpoint"]

    @property
    def engine_version(self) -> DeferredValue:
        """Engine version the instance runs, inherited from its cluster."""
        return self._outputs["engine_version"]
