"""References from one record to another.

A reference is either a bare id or the loaded record itself. Code that needs
the id calls ``reference_id`` instead of checking which shape it received.
"""

from dataclasses import dataclass
from typing import Any, Union

from sqlalchemy import inspect as sa_inspect


@dataclass(frozen=True)
class IdReference:
    id: str


@dataclass(frozen=True)
class ExpandedReference:
    record: Any


Reference = Union[IdReference, ExpandedReference]


def reference_id(ref: Reference | None) -> str | None:
    if ref is None:
        return None
    if isinstance(ref, ExpandedReference):
        return ref.record.id
    return ref.id


def reference_to(instance: Any, relationship_name: str, id_attribute: str) -> Reference | None:
    """Build a reference from a model, expanding it only if already loaded."""
    state = sa_inspect(instance, raiseerr=False)
    if state is not None and relationship_name not in state.unloaded:
        related = getattr(instance, relationship_name)
        if related is not None:
            return ExpandedReference(related)

    raw_id = getattr(instance, id_attribute)
    if raw_id is None:
        return None
    return IdReference(raw_id)


def is_referenced_by(ref: Reference | None, user_id: str) -> bool:
    return reference_id(ref) == user_id


def summarize(ref: Reference | None) -> dict[str, Any] | None:
    """Public ``{id, name, email}`` view of an expanded user reference."""
    if not isinstance(ref, ExpandedReference):
        return None
    record = ref.record
    return {'id': record.id, 'name': record.name, 'email': record.email}
