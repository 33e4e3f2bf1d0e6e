"""
Provisioning backends for dbstack resources.

This package provides the abstract backend contract and concrete
implementations that create the resources components define.

Supported providers:
- memory (in-process simulation)
- AWS (RDS Aurora)
"""

from .base import (
    BaseProvisioner,
    ProvisionerConfig,
    get_provisioner,
    physical_name,
)

__all__ = [
    'BaseProvisioner',
    'ProvisionerConfig',
    'get_provisioner',
    'physical_name',
]
