"""
In-memory provisioner.

Simulates the RDS resources dbstack models without touching a cloud: it
fabricates identifiers, ARNs and managed secrets, enforces the same ordering
rules the real service does (an instance needs an existing cluster, a cluster
cannot be deleted while instances remain) and keeps a journal of operations.
Used for local previews and tests.
"""

import logging
from itertools import count
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from dbstack.errors import ProvisionerException
from dbstack.models.resources import Cluster, ClusterInstance

from .base import BaseProvisioner, ProvisionerConfig, physical_name

logger = logging.getLogger(__name__)

POSTGRES_PORT = 5432


class MemoryProvisioner(BaseProvisioner):
    """Provisioner that keeps every resource in a dict."""

    def __init__(
        self,
        config: Optional[ProvisionerConfig] = None,
        fail_on: Optional[Iterable[str]] = None,
        secret_count: int = 1,
    ):
        """
        Initialize the in-memory provisioner.

        Args:
            config: Provisioner configuration; defaults to a memory config
            fail_on: Logical resource names whose creation should fail
            secret_count: Number of managed secrets reported per cluster
        """
        super().__init__(config or ProvisionerConfig(provider_type="memory"))
        self.region = self.config.region or "us-east-1"
        self.account_id = self.config.credentials.get("account_id", "000000000000")
        self.fail_on = set(fail_on or ())
        self.secret_count = secret_count
        self.operations: List[Tuple[str, str]] = []
        self.clusters: Dict[str, Dict[str, Any]] = {}
        self.instances: Dict[str, Dict[str, Any]] = {}
        self._sequence = count(1)

    def _next_name(self, name: str) -> str:
        return physical_name(name, f"{next(self._sequence):04d}")

    async def create_resource(
        self,
        type_token: str,
        name: str,
        inputs: Mapping[str, Any]
    ) -> Dict[str, Any]:
        if name in self.fail_on:
            raise ProvisionerException("Simulated creation failure", provider=self.provider, resource_id=name)

        if type_token == Cluster.TYPE_TOKEN:
            reported = self._create_cluster(name, inputs)
        elif type_token == ClusterInstance.TYPE_TOKEN:
            reported = self._create_instance(name, inputs)
        else:
            raise ProvisionerException(f"Unsupported resource type: {type_token}", provider=self.provider)

        self.operations.append(("create", name))
        return reported

    def _create_cluster(self, name: str, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        cluster_id = inputs.get("cluster_identifier") or self._next_name(name)
        if cluster_id in self.clusters:
            raise ProvisionerException("DBClusterAlreadyExistsFault", provider=self.provider, resource_id=cluster_id)

        arn = f"arn:aws:rds:{self.region}:{self.account_id}:cluster:{cluster_id}"
        secrets = []
        if inputs.get("manage_master_user_password"):
            secrets = [
                {
                    "secret_arn": (
                        f"arn:aws:secretsmanager:{self.region}:{self.account_id}"
                        f":secret:rds!cluster-{cluster_id}-{index}"
                    ),
                    "secret_status": "active",
                    "kms_key_id": None,
                }
                for index in range(self.secret_count)
            ]

        record = {
            "id": cluster_id,
            "arn": arn,
            "engine_version": inputs.get("engine_version"),
            "database_name": inputs.get("database_name"),
            "endpoint": f"{cluster_id}.cluster-memory.{self.region}.rds.amazonaws.com",
            "reader_endpoint": f"{cluster_id}.cluster-ro-memory.{self.region}.rds.amazonaws.com",
            "port": POSTGRES_PORT,
            "master_user_secrets": secrets,
        }
        self.clusters[cluster_id] = {"name": name, "record": record, "inputs": dict(inputs)}
        logger.debug(f"Memory cluster {cluster_id} created")
        return dict(record)

    def _create_instance(self, name: str, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        cluster_id = inputs.get("cluster_identifier")
        if cluster_id not in self.clusters:
            raise ProvisionerException(
                f"DBClusterNotFoundFault: {cluster_id}", provider=self.provider, resource_id=name
            )

        instance_id = self._next_name(name)
        record = {
            "id": instance_id,
            "arn": f"arn:aws:rds:{self.region}:{self.account_id}:db:{instance_id}",
            "endpoint": f"{instance_id}.memory.{self.region}.rds.amazonaws.com",
            "engine_version": self.clusters[cluster_id]["record"]["engine_version"],
        }
        self.instances[instance_id] = {"name": name, "record": record, "cluster_id": cluster_id}
        logger.debug(f"Memory instance {instance_id} created in {cluster_id}")
        return dict(record)

    async def delete_resource(
        self,
        type_token: str,
        resource_id: str,
        inputs: Mapping[str, Any]
    ) -> bool:
        if type_token == ClusterInstance.TYPE_TOKEN:
            entry = self.instances.pop(resource_id, None)
        elif type_token == Cluster.TYPE_TOKEN:
            attached = [
                instance_id for instance_id, instance in self.instances.items()
                if instance["cluster_id"] == resource_id
            ]
            if attached:
                raise ProvisionerException(
                    f"InvalidDBClusterStateFault: cluster still has instances {attached}",
                    provider=self.provider,
                    resource_id=resource_id,
                )
            entry = self.clusters.pop(resource_id, None)
        else:
            raise ProvisionerException(f"Unsupported resource type: {type_token}", provider=self.provider)

        if entry is None:
            raise ProvisionerException("Resource not found", provider=self.provider, resource_id=resource_id)
        self.operations.append(("delete", entry["name"]))
        return True
