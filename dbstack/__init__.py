"""dbstack: declarative database components with deferred outputs."""

from dbstack.errors import (
    DbstackError,
    ProvisionerException,
    ResolutionError,
    TransformError,
    UnresolvedValueError,
    ValidationError,
)
from dbstack.services.component import App, Component
from dbstack.services.deferred import DeferredValue, all_, merge_record, of, output, with_default
from dbstack.services.links import LinkDescriptor, PolicyStatement, link_environment, policy_document
from dbstack.services.postgres import Postgres

__version__ = "0.1.0"

__all__ = [
    "App",
    "Component",
    "DbstackError",
    "DeferredValue",
    "LinkDescriptor",
    "PolicyStatement",
    "Postgres",
    "ProvisionerException",
    "ResolutionError",
    "TransformError",
    "UnresolvedValueError",
    "ValidationError",
    "all_",
    "link_environment",
    "merge_record",
    "of",
    "output",
    "policy_document",
    "with_default",
]
