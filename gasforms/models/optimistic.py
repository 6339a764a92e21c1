"""Pending optimistic updates.

Each variant carries what it needs to apply itself to a list of records and
to invert itself on rollback:

    PendingCreate  apply: append          revert: remove by id
    PendingUpdate  apply: replace by id   revert: put original back
    PendingDelete  apply: remove by id    revert: append original

Records are mappings with an ``"id"`` key, pydantic models or dataclasses
with an ``id`` attribute.
"""

import dataclasses
import time
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel


def record_id(item: Any) -> Any:
    """Id of a record, or None if it has none yet."""
    if isinstance(item, Mapping):
        return item.get("id")
    return getattr(item, "id", None)


def with_id(item: Any, new_id: Any) -> Any:
    """Copy of ``item`` carrying ``new_id``."""
    if isinstance(item, Mapping):
        return {**item, "id": new_id}
    if isinstance(item, BaseModel):
        return item.model_copy(update={"id": new_id})
    if dataclasses.is_dataclass(item):
        return dataclasses.replace(item, id=new_id)
    raise TypeError(f"Cannot assign an id to {type(item).__name__}")


def replace_by_id(items: List[Any], target_id: Any, replacement: Any) -> List[Any]:
    return [replacement if record_id(i) == target_id else i for i in items]


def remove_by_id(items: List[Any], target_id: Any) -> List[Any]:
    return [i for i in items if record_id(i) != target_id]


@dataclass
class PendingCreate:
    id: str
    data: Any
    timestamp: float = field(default_factory=time.time)

    type = "create"

    @property
    def original_data(self) -> None:
        return None

    def apply(self, items: List[Any]) -> List[Any]:
        return [*items, self.data]

    def revert(self, items: List[Any]) -> List[Any]:
        return remove_by_id(items, record_id(self.data))


@dataclass
class PendingUpdate:
    id: str
    data: Any
    timestamp: float = field(default_factory=time.time)
    original_data: Optional[Any] = None

    type = "update"

    def apply(self, items: List[Any]) -> List[Any]:
        return replace_by_id(items, record_id(self.data), self.data)

    def revert(self, items: List[Any]) -> List[Any]:
        if self.original_data is None:
            return items
        return replace_by_id(items, record_id(self.data), self.original_data)


@dataclass
class PendingDelete:
    id: str
    data: Any
    timestamp: float = field(default_factory=time.time)
    original_data: Optional[Any] = None

    type = "delete"

    def apply(self, items: List[Any]) -> List[Any]:
        return remove_by_id(items, record_id(self.data))

    def revert(self, items: List[Any]) -> List[Any]:
        if self.original_data is None:
            return items
        return [*items, self.original_data]


OptimisticUpdate = Union[PendingCreate, PendingUpdate, PendingDelete]
