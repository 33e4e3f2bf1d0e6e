import logging
import os
from unittest.mock import patch

import pytest

from dbstack import config as dbstack_config
from dbstack.errors import ProvisionerException
from dbstack.logging_setup import configure_logging
from dbstack.services.component import App
from dbstack.services.provisioning.memory import MemoryProvisioner


@pytest.mark.parametrize(
    "env,expected",
    [
        ("development", dbstack_config.DevelopmentConfig),
        ("testing", dbstack_config.TestingConfig),
        ("production", dbstack_config.ProductionConfig),
        ("staging", dbstack_config.DevelopmentConfig),
    ],
)
def test_get_config_reads_environment(env, expected):
    with patch.dict(os.environ, {"DBSTACK_ENV": env}):
        assert dbstack_config.get_config() is expected


def test_explicit_name_wins_over_environment():
    with patch.dict(os.environ, {"DBSTACK_ENV": "production"}):
        assert dbstack_config.get_config("testing") is dbstack_config.TestingConfig


def test_provisioner_settings():
    settings = dbstack_config.TestingConfig.provisioner_settings()

    assert set(settings) == {"region", "timeout", "max_parallel", "wait_for_available", "dry_run", "credentials"}
    assert settings["wait_for_available"] is False
    assert "account_id" in settings["credentials"]


def test_app_builds_provisioner_from_config():
    app = App(config=dbstack_config.TestingConfig)

    assert isinstance(app.provisioner, MemoryProvisioner)
    assert app.provisioner.config.wait_for_available is False
    assert app.name == "testapp"
    assert app.urn == "urn:testapp:test"


def test_app_rejects_unknown_provisioner():
    class BrokenConfig(dbstack_config.TestingConfig):
        PROVISIONER = "mainframe"

    with pytest.raises(ProvisionerException, match="Unknown provider type"):
        App(config=BrokenConfig)


def test_configure_logging_quiets_botocore():
    configure_logging(dbstack_config.TestingConfig)

    assert logging.getLogger("botocore").level == logging.WARNING
