"""dbstack Enumeration Types"""

from enum import Enum


class EngineType(Enum):
    """Supported managed cluster engines"""
    AURORA_POSTGRESQL = "aurora-postgresql"
    AURORA_MYSQL = "aurora-mysql"


class EngineMode(Enum):
    """Cluster capacity modes"""
    PROVISIONED = "provisioned"  # also used by serverless v2
    SERVERLESS = "serverless"


class ProviderType(Enum):
    """Provisioning backends"""
    MEMORY = "memory"
    AWS = "aws"


class ResourceStatus(Enum):
    """Resource provisioning and operational status"""
    PENDING = "pending"
    PROVISIONING = "provisioning"
    AVAILABLE = "available"
    DELETING = "deleting"
    DELETED = "deleted"
    FAILED = "failed"


class PostgresTransform(Enum):
    """Extension points exposed by the Postgres component"""
    CLUSTER = "cluster"
    INSTANCE = "instance"
