"""
AWS provisioner for dbstack.

Creates and deletes Aurora clusters and cluster instances with the boto3 RDS
client. boto3 is synchronous, so every call runs in the default thread pool.
"""

import logging
import secrets
from typing import Any, Dict, List, Mapping, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from dbstack.errors import ProvisionerException
from dbstack.models.resources import Cluster, ClusterInstance
from dbstack.utils.async_utils import run_in_executor

from .base import BaseProvisioner, ProvisionerConfig, physical_name

logger = logging.getLogger(__name__)


class AWSProvisioner(BaseProvisioner):
    """AWS provisioner using boto3 for RDS Aurora clusters."""

    def __init__(self, config: ProvisionerConfig, session: Optional[boto3.Session] = None):
        """
        Initialize AWS provisioner.

        Args:
            config: Provisioner configuration; ``credentials`` may contain
                aws_access_key_id / aws_secret_access_key, otherwise the
                default credential chain is used
            session: Pre-built boto3 session (takes precedence over credentials)
        """
        super().__init__(config)
        self.region = config.region or 'us-east-1'

        if session is None:
            session = boto3.Session(
                aws_access_key_id=config.credentials.get('aws_access_key_id'),
                aws_secret_access_key=config.credentials.get('aws_secret_access_key'),
                region_name=self.region
            )
        self.session = session

        # Initialize service clients (lazy loaded)
        self._rds_client = None

    @property
    def rds_client(self):
        """Lazy-load RDS client."""
        if self._rds_client is None:
            self._rds_client = self.session.client('rds', region_name=self.region)
        return self._rds_client

    async def create_resource(
        self,
        type_token: str,
        name: str,
        inputs: Mapping[str, Any]
    ) -> Dict[str, Any]:
        if type_token == Cluster.TYPE_TOKEN:
            return await run_in_executor(self._create_cluster, name, inputs)
        elif type_token == ClusterInstance.TYPE_TOKEN:
            return await run_in_executor(self._create_instance, name, inputs)
        raise ProvisionerException(f"Unsupported resource type: {type_token}", provider='aws')

    async def delete_resource(
        self,
        type_token: str,
        resource_id: str,
        inputs: Mapping[str, Any]
    ) -> bool:
        if type_token == Cluster.TYPE_TOKEN:
            return await run_in_executor(self._delete_cluster, resource_id, inputs)
        elif type_token == ClusterInstance.TYPE_TOKEN:
            return await run_in_executor(self._delete_instance, resource_id)
        raise ProvisionerException(f"Unsupported resource type: {type_token}", provider='aws')

    def _create_cluster(self, name: str, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        """Create an Aurora DB cluster."""
        identifier = inputs.get('cluster_identifier') or physical_name(name, secrets.token_hex(4))

        params = {
            'DBClusterIdentifier': identifier,
            'Engine': inputs['engine'],
            'EngineMode': inputs.get('engine_mode', 'provisioned'),
            'MasterUsername': inputs.get('master_username', 'postgres'),
            'ManageMasterUserPassword': bool(inputs.get('manage_master_user_password', True)),
            'EnableHttpEndpoint': bool(inputs.get('enable_http_endpoint', False)),
            'Tags': self._format_tags({'dbstack:name': name}),
        }
        if inputs.get('engine_version'):
            params['EngineVersion'] = inputs['engine_version']
        if inputs.get('database_name'):
            params['DatabaseName'] = inputs['database_name']

        scaling = inputs.get('serverlessv2_scaling_configuration')
        if scaling:
            params['ServerlessV2ScalingConfiguration'] = {
                'MinCapacity': float(scaling['min_capacity']),
                'MaxCapacity': float(scaling['max_capacity']),
            }

        try:
            response = self.rds_client.create_db_cluster(**params)
            cluster = response['DBCluster']
            if self.config.wait_for_available:
                self.rds_client.get_waiter('db_cluster_available').wait(
                    DBClusterIdentifier=identifier
                )
        except (BotoCoreError, ClientError, WaiterError) as e:
            logger.error(f"AWS API error creating cluster {identifier}: {e}")
            raise ProvisionerException(
                "AWS cluster creation failed",
                provider='aws',
                resource_id=identifier,
                original_error=e
            )

        logger.info(f"Created DB cluster: {cluster['DBClusterIdentifier']}")
        return {
            'id': cluster['DBClusterIdentifier'],
            'arn': cluster['DBClusterArn'],
            'engine_version': cluster.get('EngineVersion'),
            'database_name': cluster.get('DatabaseName'),
            'endpoint': cluster.get('Endpoint'),
            'reader_endpoint': cluster.get('ReaderEndpoint'),
            'port': cluster.get('Port'),
            'master_user_secrets': self._master_user_secrets(cluster),
        }

    def _create_instance(self, name: str, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        """Create an instance inside an existing Aurora cluster."""
        identifier = physical_name(name, secrets.token_hex(4))

        # Aurora instances inherit the engine version from their cluster
        params = {
            'DBInstanceIdentifier': identifier,
            'DBClusterIdentifier': inputs['cluster_identifier'],
            'DBInstanceClass': inputs['instance_class'],
            'Engine': inputs['engine'],
            'Tags': self._format_tags({'dbstack:name': name}),
        }

        try:
            response = self.rds_client.create_db_instance(**params)
            instance = response['DBInstance']
            if self.config.wait_for_available:
                self.rds_client.get_waiter('db_instance_available').wait(
                    DBInstanceIdentifier=identifier
                )
        except (BotoCoreError, ClientError, WaiterError) as e:
            logger.error(f"AWS API error creating instance {identifier}: {e}")
            raise ProvisionerException(
                "AWS instance creation failed",
                provider='aws',
                resource_id=identifier,
                original_error=e
            )

        logger.info(f"Created DB instance: {instance['DBInstanceIdentifier']}")
        return {
            'id': instance['DBInstanceIdentifier'],
            'arn': instance.get('DBInstanceArn'),
            'endpoint': instance.get('Endpoint', {}).get('Address'),
        }

    def _delete_cluster(self, identifier: str, inputs: Mapping[str, Any]) -> bool:
        """Delete an Aurora cluster, honouring its final-snapshot setting."""
        params = {
            'DBClusterIdentifier': identifier,
            'SkipFinalSnapshot': bool(inputs.get('skip_final_snapshot', False)),
        }
        if not params['SkipFinalSnapshot']:
            params['FinalDBSnapshotIdentifier'] = f"{identifier}-final"

        try:
            self.rds_client.delete_db_cluster(**params)
            if self.config.wait_for_available:
                self.rds_client.get_waiter('db_cluster_deleted').wait(
                    DBClusterIdentifier=identifier
                )
        except ClientError as e:
            if e.response['Error']['Code'] == 'DBClusterNotFoundFault':
                logger.warning(f"DB cluster {identifier} already gone")
                return True
            raise ProvisionerException(
                "AWS cluster deletion failed", provider='aws', resource_id=identifier, original_error=e
            )
        except (BotoCoreError, WaiterError) as e:
            raise ProvisionerException(
                "AWS cluster deletion failed", provider='aws', resource_id=identifier, original_error=e
            )

        logger.info(f"Deleted DB cluster: {identifier}")
        return True

    def _delete_instance(self, identifier: str) -> bool:
        """Delete a cluster instance."""
        try:
            self.rds_client.delete_db_instance(DBInstanceIdentifier=identifier)
            if self.config.wait_for_available:
                self.rds_client.get_waiter('db_instance_deleted').wait(
                    DBInstanceIdentifier=identifier
                )
        except ClientError as e:
            if e.response['Error']['Code'] == 'DBInstanceNotFound':
                logger.warning(f"DB instance {identifier} already gone")
                return True
            raise ProvisionerException(
                "AWS instance deletion failed", provider='aws', resource_id=identifier, original_error=e
            )
        except (BotoCoreError, WaiterError) as e:
            raise ProvisionerException(
                "AWS instance deletion failed", provider='aws', resource_id=identifier, original_error=e
            )

        logger.info(f"Deleted DB instance: {identifier}")
        return True

    @staticmethod
    def _master_user_secrets(cluster: Mapping[str, Any]) -> List[Dict[str, Any]]:
        secret = cluster.get('MasterUserSecret')
        if not secret:
            return []
        return [{
            'secret_arn': secret.get('SecretArn'),
            'secret_status': secret.get('SecretStatus'),
            'kms_key_id': secret.get('KmsKeyId'),
        }]

    def _format_tags(self, tags: Dict[str, str]) -> List[Dict[str, str]]:
        """Convert a tag dict to AWS format, adding the configured defaults."""
        merged = {'ManagedBy': 'dbstack', **self.config.tags, **tags}
        return [{'Key': key, 'Value': value} for key, value in merged.items()]
