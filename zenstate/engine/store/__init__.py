"""Remote entity store: the interface and its HTTP implementation."""

from zenstate.engine.store.base import EntityStore, Page
from zenstate.engine.store.http import HttpEntityStore

__all__ = ["EntityStore", "HttpEntityStore", "Page"]
