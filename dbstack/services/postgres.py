"""
Postgres component.

Adds an Aurora Serverless v2 Postgres cluster with a single serverless
instance to an app.

Example:
    >>> app = App("myapp")
    >>> database = Postgres("MyDatabase", {"scaling": {"min": 2, "max": 128}}, app=app)
    >>> link = database.get_link()

Each ACU is roughly 2 GB of memory with matching compute; the cluster scales
between ``scaling.min`` and ``scaling.max``. A ``min`` of 0 lets the cluster
pause when idle.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from dbstack.models.enums import EngineMode, EngineType, PostgresTransform
from dbstack.models.resources import Cluster, ClusterInstance, ResourceHandle
from dbstack.schemas.postgres import (
    DEFAULT_MAX_CAPACITY,
    DEFAULT_MIN_CAPACITY,
    PostgresArgs,
    parse_postgres_args,
    parse_scaling,
)
from dbstack.services.component import App, Component
from dbstack.services.deferred import DeferredValue, merge_record, output, with_default
from dbstack.services.links import (
    AWSLinkable,
    LinkDescriptor,
    Linkable,
    PolicyStatement,
    single_secret_arn,
)
from dbstack.services.transforms import TransformRegistry

logger = logging.getLogger(__name__)

SERVERLESS_INSTANCE_CLASS = "db.serverless"

LINK_TYPE_SHAPE = {
    "cluster_arn": "str",
    "secret_arn": "str",
    "database_name": "str",
}


class Postgres(Component, Linkable, AWSLinkable):
    """Serverless Postgres database cluster."""

    TYPE_TOKEN = "dbstack:aws:Postgres"

    def __init__(
        self,
        name: str,
        args: Union[None, PostgresArgs, Mapping[str, Any]] = None,
        app: Optional[App] = None,
        parent: Optional[Component] = None,
    ):
        """
        Define the cluster and its instance.

        Args:
            name: Component name, unique within the parent scope
            args: ``version``, ``database_name``, ``scaling`` and ``transform``
            app: Enclosing app; inherited from ``parent`` when omitted
            parent: Optional parent component

        Raises:
            ValidationError: If a concrete argument is malformed
            TransformError: If a transform hook fails
        """
        app = app or (parent.app if parent else None)
        if app is None:
            raise ValueError("Postgres needs an app or a parent component")
        super().__init__(self.TYPE_TOKEN, name, app, parent)

        parsed = parse_postgres_args(args)
        transforms = TransformRegistry.from_mapping(
            parsed.transform.as_mapping() if parsed.transform else None
        )

        self._scaling = self._normalize_scaling(parsed)
        self._version = with_default(parsed.version, app.config.POSTGRES_DEFAULT_VERSION)
        self._database_name = with_default(parsed.database_name, app.name)

        self._cluster = self._create_cluster(transforms)
        self._instance = self._create_instance(transforms)
        self._commit()

        # Shared by the link and the access policy
        self._cluster_arn = self._cluster.arn
        self._secret_arn = self._cluster.master_user_secrets.map(single_secret_arn)

    @staticmethod
    def _normalize_scaling(parsed: PostgresArgs) -> DeferredValue[Dict[str, float]]:
        def normalize(raw: Any) -> DeferredValue[Dict[str, float]]:
            scaling = parse_scaling(raw)
            bounds = merge_record({
                "min_capacity": with_default(scaling.min, DEFAULT_MIN_CAPACITY),
                "max_capacity": with_default(scaling.max, DEFAULT_MAX_CAPACITY),
            })
            return bounds.map(_validated_bounds)

        # A deferred scaling record is validated when it resolves
        return output(parsed.scaling).map(normalize)

    def _create_cluster(self, transforms: TransformRegistry) -> Cluster:
        name = f"{self.name}Cluster"
        args = transforms.apply(
            PostgresTransform.CLUSTER,
            {
                "engine": EngineType.AURORA_POSTGRESQL.value,
                "engine_mode": EngineMode.PROVISIONED.value,
                "engine_version": self._version,
                "database_name": self._database_name,
                "master_username": self.app.config.POSTGRES_MASTER_USERNAME,
                "manage_master_user_password": True,
                "serverlessv2_scaling_configuration": self._scaling,
                "skip_final_snapshot": True,
                "enable_http_endpoint": True,
            },
            name,
        )
        return self._add_resource(Cluster(name, args))

    def _create_instance(self, transforms: TransformRegistry) -> ClusterInstance:
        name = f"{self.name}Instance"
        args = transforms.apply(
            PostgresTransform.INSTANCE,
            {
                "cluster_identifier": self._cluster.id,
                "instance_class": SERVERLESS_INSTANCE_CLASS,
                "engine": EngineType.AURORA_POSTGRESQL.value,
                "engine_version": self._cluster.engine_version,
            },
            name,
        )
        return self._add_resource(ClusterInstance(name, args))

    @property
    def nodes(self) -> Mapping[str, ResourceHandle]:
        """The underlying resources, for advanced composition."""
        return MappingProxyType({"cluster": self._cluster, "instance": self._instance})

    @property
    def cluster_arn(self) -> DeferredValue[str]:
        return self._cluster_arn

    @property
    def secret_arn(self) -> DeferredValue[str]:
        return self._secret_arn

    @property
    def database_name(self) -> DeferredValue[str]:
        return self._database_name

    @property
    def scaling(self) -> DeferredValue[Dict[str, float]]:
        return self._scaling

    @property
    def version(self) -> DeferredValue[str]:
        return self._version

    def get_link(self) -> LinkDescriptor:
        return LinkDescriptor.build(
            LINK_TYPE_SHAPE,
            {
                "cluster_arn": self._cluster_arn,
                "secret_arn": self._secret_arn,
                "database_name": self._database_name,
            },
        )

    def get_access_policy(self) -> List[PolicyStatement]:
        return [
            PolicyStatement.build(["secretsmanager:GetSecretValue"], [self._secret_arn]),
            PolicyStatement.build(["rds-data:ExecuteStatement"], [self._cluster_arn]),
        ]


def _validated_bounds(bounds: Dict[str, float]) -> Dict[str, float]:
    parse_scaling({"min": bounds["min_capacity"], "max": bounds["max_capacity"]})
    return bounds
