"""Workflow services and the pure rules they apply."""

from .access_service import AccessService, AccessState, Actor, evaluate_access
from .registry import ServiceRegistry

__all__ = [
    "AccessService",
    "AccessState",
    "Actor",
    "ServiceRegistry",
    "evaluate_access",
]
