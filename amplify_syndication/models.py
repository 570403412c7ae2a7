from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Union

EPOCH_TIMESTAMP = "1970-01-01T00:00:00Z"

Key = Union[str, int]
Record = Dict[str, Any]


@dataclass(frozen=True)
class ResourceSpec:
    name: str
    timestamp_field: str = "ModificationTimestamp"
    key_field: str = "ListingKey"

    @property
    def ordering_fields(self) -> tuple[str, str]:
        return (self.timestamp_field, self.key_field)


PROPERTY = ResourceSpec("Property", key_field="ListingKey")
MEDIA = ResourceSpec("Media", key_field="MediaKey")
LOOKUP = ResourceSpec("Lookup", key_field="LookupKey")
FIELD = ResourceSpec("Field", key_field="FieldKey")

RESOURCES: Dict[str, ResourceSpec] = {r.name: r for r in (PROPERTY, MEDIA, LOOKUP, FIELD)}
_RESOURCES_BY_LOWER = {name.lower(): r for name, r in RESOURCES.items()}


def resource_spec(resource: str | ResourceSpec) -> ResourceSpec:
    """Resolve a resource name to its ordering key; unknown names use ``<Name>Key``."""
    if isinstance(resource, ResourceSpec):
        return resource
    spec = _RESOURCES_BY_LOWER.get(resource.lower())
    if spec is None:
        spec = ResourceSpec(resource, key_field=f"{resource}Key")
    return spec


@dataclass(frozen=True)
class Checkpoint:
    """Replication cursor: the ``(timestamp, key)`` of the last emitted record.

    Immutable. The driver hands back a new value after every page and the
    caller decides where (and whether) to persist it.
    """

    last_timestamp: str = EPOCH_TIMESTAMP
    last_key: Key = 0

    def advance(self, record: Mapping[str, Any], resource: str | ResourceSpec) -> "Checkpoint":
        spec = resource_spec(resource)
        return Checkpoint(
            last_timestamp=record[spec.timestamp_field],
            last_key=record[spec.key_field],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"last_timestamp": self.last_timestamp, "last_key": self.last_key}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Checkpoint":
        if not data:
            return cls()
        return cls(
            last_timestamp=data.get("last_timestamp") or EPOCH_TIMESTAMP,
            last_key=data.get("last_key", 0),
        )

    def is_after(self, other: "Checkpoint") -> bool:
        """Strict (timestamp, key) order; mixed key types compare as strings."""
        mine, theirs = self.last_key, other.last_key
        if type(mine) is not type(theirs):
            mine, theirs = str(mine), str(theirs)
        return (self.last_timestamp, mine) > (other.last_timestamp, theirs)


@dataclass(frozen=True)
class PageRequest:
    resource: str
    fields: List[str]
    filter: str
    orderby: str
    top: int

    def query_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        if self.fields:
            options["$select"] = ",".join(self.fields)
        options["$filter"] = self.filter
        options["$orderby"] = self.orderby
        options["$top"] = self.top
        return options


@dataclass
class ReplicationBatch:
    records: List[Record]
    checkpoint: Checkpoint

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class RunStats:
    batches: int = 0
    fetched: int = 0
    errors: int = 0
