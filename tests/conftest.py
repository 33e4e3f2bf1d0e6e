import pytest

from dbstack.config import TestingConfig
from dbstack.services.component import App
from dbstack.services.provisioning.memory import MemoryProvisioner


@pytest.fixture
def provisioner() -> MemoryProvisioner:
    return MemoryProvisioner()


@pytest.fixture
def app(provisioner) -> App:
    return App("testapp", "test", provisioner=provisioner, config=TestingConfig)
