"""Validation rules: compatibility tables and the validators that read them."""

from zenstate.engine.rules.tables import COMPONENT_FLAVORS, CONNECTOR_AUTH_METHODS, CONNECTOR_RESOURCE_TYPES
from zenstate.engine.rules.validators import check, require_exactly_one, validate

__all__ = [
    "COMPONENT_FLAVORS",
    "CONNECTOR_AUTH_METHODS",
    "CONNECTOR_RESOURCE_TYPES",
    "check",
    "require_exactly_one",
    "validate",
]
