"""
Base provisioner for dbstack resources.

A provisioner is the backend that turns submitted ``ResourceHandle``s into
real resources. Components only register handles; ``up()`` then creates them,
with each creation waiting on the deferred values in its own inputs. That wait
is the whole dependency mechanism: a resource that consumes another's outputs
cannot start before those outputs resolve, and if they fail it is never
created at all.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from dbstack.errors import DbstackError, ProvisionerException, ResolutionError
from dbstack.models.enums import ProviderType, ResourceStatus
from dbstack.models.resources import ResourceHandle
from dbstack.services.deferred import output
from dbstack.utils.async_utils import timeout_wrapper

logger = logging.getLogger(__name__)


@dataclass
class ProvisionerConfig:
    """
    Common configuration for all provisioners.

    Attributes:
        provider_type: Type of provider (memory, aws)
        credentials: Provider-specific credential dictionary
        region: Cloud region
        timeout: Timeout in seconds for an input wait or a single create or delete
        max_parallel: Maximum number of concurrent create operations
        wait_for_available: Block each creation until the resource is available
        dry_run: If True, log what would be created without executing
        tags: Default tags to apply to all resources
    """
    provider_type: str
    credentials: Dict[str, Any] = field(default_factory=dict)
    region: Optional[str] = None
    timeout: float = 1800
    max_parallel: int = 5
    wait_for_available: bool = True
    dry_run: bool = False
    tags: Dict[str, str] = field(default_factory=dict)


def physical_name(name: str, suffix: str) -> str:
    """
    Derive a cloud identifier from a logical name.

    Lowercase letters, digits and single hyphens, starting with a letter,
    at most 63 characters.
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    if not slug or not slug[0].isalpha():
        slug = f"r-{slug}".rstrip("-")
    return f"{slug[:62 - len(suffix)].rstrip('-')}-{suffix}"


class BaseProvisioner(ABC):
    """
    Abstract base class for provisioning backends.

    Subclasses implement ``create_resource`` and ``delete_resource``; this
    class owns registration, dependency-ordered creation, status tracking and
    settling of handle outputs.
    """

    def __init__(self, config: ProvisionerConfig):
        """
        Initialize provisioner with configuration.

        Args:
            config: Provisioner configuration
        """
        self.config = config
        self._handles: Dict[str, ResourceHandle] = {}
        self._parents: Dict[str, Optional[str]] = {}
        self._status: Dict[str, ResourceStatus] = {}
        self._resource_ids: Dict[str, str] = {}
        self._inputs: Dict[str, Mapping[str, Any]] = {}

    @property
    def provider(self) -> str:
        return self.config.provider_type

    def register(self, handle: ResourceHandle, parent: Optional[str] = None) -> None:
        """
        Accept a handle for creation on the next ``up()``.

        Args:
            handle: Handle with its ``urn`` already assigned
            parent: urn of the owning component, for lifecycle cascading

        Raises:
            ProvisionerException: If the urn is missing or already registered
        """
        if not handle.urn:
            raise ProvisionerException("Resource has no urn", provider=self.provider, resource_id=handle.name)
        if handle.urn in self._handles:
            raise ProvisionerException(
                "Duplicate resource urn", provider=self.provider, resource_id=handle.urn
            )
        self._handles[handle.urn] = handle
        self._parents[handle.urn] = parent
        self._status[handle.urn] = ResourceStatus.PENDING
        logger.info(f"Registered {handle.type_token} {handle.urn}")

    @property
    def handles(self) -> List[ResourceHandle]:
        """Registered handles in registration order."""
        return list(self._handles.values())

    def children_of(self, parent: str) -> List[ResourceHandle]:
        return [handle for urn, handle in self._handles.items() if self._parents[urn] == parent]

    def status(self, handle: ResourceHandle) -> Optional[ResourceStatus]:
        return self._status.get(handle.urn)

    def resource_id(self, handle: ResourceHandle) -> Optional[str]:
        return self._resource_ids.get(handle.urn)

    async def up(self) -> Dict[str, ResourceStatus]:
        """
        Create every registered handle that has not been created yet.

        Creations run concurrently; each one first waits for its inputs, so
        dependents are created after the resources they reference. Waiting is
        bounded by ``config.timeout``. Failures are recorded on the handle's
        outputs and in the returned statuses and never raised from here.

        In a dry run nothing waits and nothing is created; handles stay
        ``PENDING`` unless one of their inputs has already failed.

        Returns:
            urn -> status for every registered handle
        """
        waiting = [
            handle for urn, handle in self._handles.items()
            if self._status[urn] == ResourceStatus.PENDING
        ]
        semaphore = asyncio.Semaphore(self.config.max_parallel)
        await asyncio.gather(*[self._create(handle, semaphore) for handle in waiting])
        return dict(self._status)

    def _skip(self, handle: ResourceHandle, error: BaseException) -> None:
        urn = handle.urn
        logger.warning(f"Skipping {urn}: an input failed to resolve: {error}")
        self._status[urn] = ResourceStatus.FAILED
        if not isinstance(error, ResolutionError):
            error = ResolutionError(f"Inputs of {urn} could not be resolved: {error}", details={"urn": urn})
        handle._poison(error)

    def _preview(self, handle: ResourceHandle) -> None:
        """
        Report what a dry run would create.

        Inputs produced by other handles never resolve in a dry run, so only
        the deferred values already settled are inspected.
        """
        for value in handle.definition.depends_on:
            if value.failed():
                self._skip(handle, value.error())
                return
        unknown = sum(1 for value in handle.definition.depends_on if not value.is_settled())
        suffix = f" ({unknown} inputs known after creation)" if unknown else ""
        logger.info(f"[dry run] Would create {handle.type_token} {handle.urn}{suffix}")

    async def _create(self, handle: ResourceHandle, semaphore: asyncio.Semaphore) -> None:
        urn = handle.urn
        if self.config.dry_run:
            self._preview(handle)
            return

        try:
            inputs = await timeout_wrapper(output(handle.definition.fields).wait(), self.config.timeout)
        except asyncio.TimeoutError:
            self._skip(handle, ResolutionError(
                f"Timed out after {self.config.timeout}s waiting for the inputs of {urn}",
                details={"urn": urn},
            ))
            return
        except DbstackError as e:
            self._skip(handle, e)
            return

        async with semaphore:
            self._status[urn] = ResourceStatus.PROVISIONING
            logger.info(f"Creating {handle.type_token} {urn}")
            try:
                reported = await timeout_wrapper(
                    self.create_resource(handle.type_token, handle.name, inputs),
                    self.config.timeout,
                )
            except Exception as e:
                logger.error(f"Failed to create {urn}: {e}")
                self._status[urn] = ResourceStatus.FAILED
                handle._poison(ResolutionError(f"Failed to create {urn}: {e}", details={"urn": urn}))
                return

        self._resource_ids[urn] = reported.get("id")
        self._inputs[urn] = inputs
        self._status[urn] = ResourceStatus.AVAILABLE
        logger.info(f"Created {urn} as {reported.get('id')}")
        handle._settle(reported, inputs)

    async def delete(self, handle: ResourceHandle) -> bool:
        """
        Delete one handle's resource if it was created.

        Returns:
            True if a backend deletion happened, False if there was nothing to delete

        Raises:
            ProvisionerException: If the backend deletion fails
        """
        urn = handle.urn
        if self._status.get(urn) != ResourceStatus.AVAILABLE:
            logger.info(f"Nothing to delete for {urn} ({self._status.get(urn)})")
            self._status[urn] = ResourceStatus.DELETED
            return False

        resource_id = self._resource_ids[urn]
        self._status[urn] = ResourceStatus.DELETING
        logger.info(f"Deleting {handle.type_token} {urn} ({resource_id})")
        try:
            await timeout_wrapper(
                self.delete_resource(handle.type_token, resource_id, self._inputs.get(urn, {})),
                self.config.timeout,
            )
        except ProvisionerException:
            self._status[urn] = ResourceStatus.FAILED
            raise
        except Exception as e:
            self._status[urn] = ResourceStatus.FAILED
            raise ProvisionerException(
                "Resource deletion failed",
                provider=self.provider,
                resource_id=resource_id,
                original_error=e,
            ) from e

        self._status[urn] = ResourceStatus.DELETED
        return True

    @abstractmethod
    async def create_resource(
        self,
        type_token: str,
        name: str,
        inputs: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """
        Create one resource from fully resolved inputs.

        Args:
            type_token: Resource type
            name: Logical resource name
            inputs: Resolved resource arguments

        Returns:
            Reported outputs; must contain ``id``. Missing outputs fall back to
            the same-named input.

        Raises:
            ProvisionerException: If resource creation fails
        """
        pass

    @abstractmethod
    async def delete_resource(
        self,
        type_token: str,
        resource_id: str,
        inputs: Mapping[str, Any]
    ) -> bool:
        """
        Delete one resource.

        Args:
            type_token: Resource type
            resource_id: Backend identifier reported at creation
            inputs: The resolved inputs the resource was created with

        Returns:
            True if deletion successful

        Raises:
            ProvisionerException: If resource deletion fails
        """
        pass


def get_provisioner(provider_type: str, config: Optional[Dict[str, Any]] = None) -> BaseProvisioner:
    """
    Factory function to instantiate the appropriate provisioner.

    Args:
        provider_type: Type of provider (memory, aws)
        config: Configuration dictionary for the provisioner

    Returns:
        Instantiated provisioner implementation

    Raises:
        ProvisionerException: If provider_type is unknown

    Examples:
        >>> provisioner = get_provisioner('memory', {'region': 'eu-west-1'})
        >>> statuses = await provisioner.up()
    """
    provider_type = provider_type.lower()

    provisioner_config = ProvisionerConfig(
        provider_type=provider_type,
        **(config or {})
    )

    # Import providers lazily so boto3 is only loaded when needed
    if provider_type == ProviderType.MEMORY.value:
        from .memory import MemoryProvisioner
        return MemoryProvisioner(provisioner_config)
    elif provider_type == ProviderType.AWS.value:
        from .aws import AWSProvisioner
        return AWSProvisioner(provisioner_config)
    else:
        raise ProvisionerException(
            f"Unknown provider type: {provider_type}",
            provider=provider_type
        )
