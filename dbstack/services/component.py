"""
Applications and composite components.

An ``App`` is the enclosing namespace and owns the provisioning backend. A
``Component`` groups the resources it defines under one urn, submits them
together and tears them down in reverse creation order.
"""

import logging
from typing import Any, List, Optional, Tuple, Type

from dbstack.config import Config, get_config
from dbstack.errors import ProvisionerException
from dbstack.models.resources import ResourceHandle
from dbstack.services.provisioning.base import BaseProvisioner, get_provisioner

logger = logging.getLogger(__name__)


class App:
    """
    The application every component lives in.

    Attributes:
        name: Application name, also the default for names components derive
        stage: Deployment stage (dev, prod, ...)
        provisioner: Backend that creates the app's resources
        config: Configuration class the app was built from
    """

    def __init__(
        self,
        name: Optional[str] = None,
        stage: Optional[str] = None,
        provisioner: Optional[BaseProvisioner] = None,
        config: Optional[Type[Config]] = None,
    ):
        self.config = config or get_config()
        self.name = name or self.config.APP_NAME
        self.stage = stage or self.config.APP_STAGE
        self.provisioner = provisioner or get_provisioner(
            self.config.PROVISIONER, self.config.provisioner_settings()
        )
        self.components: List["Component"] = []

    def __repr__(self) -> str:
        return f"App(name={self.name!r}, stage={self.stage!r})"

    @property
    def urn(self) -> str:
        return f"urn:{self.name}:{self.stage}"

    async def up(self):
        """Create everything registered so far."""
        return await self.provisioner.up()

    async def destroy(self) -> None:
        """Destroy all top-level components, newest first."""
        for component in reversed(self.components):
            if component.parent is None:
                await component.destroy()


class Component:
    """
    Base class for composite components.

    Subclasses stage their resources with ``_add_resource`` while building
    them and call ``_commit`` once all of them are defined. If the subclass
    constructor raises before ``_commit``, nothing reaches the provisioner.
    """

    def __init__(
        self,
        type_token: str,
        name: str,
        app: App,
        parent: Optional["Component"] = None,
    ):
        if not name:
            raise ValueError("Component name must not be empty")
        self.type_token = type_token
        self.name = name
        self.app = app
        self.parent = parent
        self._staged: List[ResourceHandle] = []
        self._children: List[Any] = []
        self._committed = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, urn={self.urn!r})"

    @property
    def urn(self) -> str:
        scope = self.parent.urn if self.parent else self.app.urn
        return f"{scope}::{self.type_token}::{self.name}"

    @property
    def children(self) -> Tuple[Any, ...]:
        """Owned resources and sub-components in creation order."""
        return tuple(self._children)

    def _add_resource(self, handle: ResourceHandle) -> ResourceHandle:
        handle.urn = f"{self.urn}::{handle.type_token}::{handle.name}"
        self._staged.append(handle)
        return handle

    def _commit(self) -> None:
        """Submit every staged resource, in the order it was defined."""
        if self._committed:
            raise RuntimeError(f"{self.urn} has already been committed")
        for handle in self._staged:
            self.app.provisioner.register(handle, parent=self.urn)
            self._children.append(handle)
        self._staged = []
        self._committed = True
        if self.parent is not None:
            self.parent._children.append(self)
        self.app.components.append(self)
        logger.info(f"Committed {self.urn} with {len(self._children)} resources")

    async def destroy(self) -> None:
        """
        Delete owned resources in reverse creation order.

        Raises:
            ProvisionerException: If a deletion fails; later (older) resources
                are left in place
        """
        logger.info(f"Destroying {self.urn}")
        for child in reversed(self._children):
            if isinstance(child, Component):
                await child.destroy()
                continue
            try:
                await self.app.provisioner.delete(child)
            except ProvisionerException as e:
                logger.error(f"Teardown of {self.urn} stopped at {child.urn}: {e}")
                raise
