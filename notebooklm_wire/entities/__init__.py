"""Artifact entities and the positional response resolver."""

from notebooklm_wire.entities.models import DomainEntity, EntityKind, EntityState
from notebooklm_wire.entities.resolver import find_entity, find_row, resolve, resolve_list

__all__ = [
    "DomainEntity",
    "EntityKind",
    "EntityState",
    "find_entity",
    "find_row",
    "resolve",
    "resolve_list",
]
