from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Iterator, List, Mapping, Optional

from .client import Client
from .exceptions import ProtocolError
from .logging_utils import get_logger
from .models import (
    FIELD,
    LOOKUP,
    MEDIA,
    PROPERTY,
    Checkpoint,
    Record,
    ReplicationBatch,
    ResourceSpec,
    resource_spec,
)
from .query import odata_literal
from .replication import BatchConsumer, Replicator
from .utils import as_iso

logger = get_logger(__name__)


class SyndicationAPI:
    """Resource-level operations on top of :class:`Client`.

    All paginated reads go through one :class:`Replicator`; the per-resource
    methods only pick the resource and its ordering key.
    """

    def __init__(self, client: Optional[Client] = None, sleep_seconds: Optional[float] = None):
        self.client = client if client is not None else Client()
        if sleep_seconds is None:
            sleep_seconds = self.client.settings.sleep_seconds
        self.replicator = Replicator(self.fetch_with_options, sleep_seconds=sleep_seconds)

    # --- plain queries ---

    def fetch_metadata(self) -> Any:
        return self.client.get("$metadata?$format=json")

    def fetch_property_data(self, limit: int = 1) -> Any:
        return self.client.get("Property", {"$top": limit})

    def fetch_with_options(self, resource: str, query_options: Optional[Mapping[str, Any]] = None) -> Any:
        return self.client.get_with_options(resource, query_options or {})

    def fetch_filtered_properties(
        self,
        filter: Optional[str] = None,
        select: Optional[str] = None,
        orderby: Optional[str] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        count: Optional[str] = None,
    ) -> Any:
        options = {
            "$filter": filter,
            "$select": select,
            "$orderby": orderby,
            "$top": top,
            "$skip": skip,
            "$count": count,
        }
        return self.fetch_with_options("Property", {k: v for k, v in options.items() if v is not None})

    def fetch_property_count(self) -> int:
        response = self.fetch_filtered_properties(count="true", top=0)
        count = response.get("@odata.count") if isinstance(response, Mapping) else None
        if count is None:
            raise ProtocolError("Count response has no '@odata.count'")
        return int(count)

    def fetch_property_by_key(self, listing_key: str) -> Any:
        logger.info("Fetching property details for ListingKey: %s", listing_key)
        return self.client.get(f"Property({odata_literal(listing_key)})")

    def fetch_media_by_key(self, media_key: str) -> Any:
        return self.client.get(f"Media({odata_literal(media_key)})")

    def fetch_recent_media(
        self,
        filter: str = "ImageSizeDescription eq 'Large' and ResourceName eq 'Property'",
        modification_date: str | datetime = "2023-07-27T04:00:00Z",
        orderby: str = "ModificationTimestamp,MediaKey",
        batch_size: int = 100,
    ) -> Any:
        if isinstance(modification_date, datetime):
            modification_date = as_iso(modification_date)
        return self.fetch_with_options(
            "Media",
            {
                "$filter": f"{filter} and ModificationTimestamp ge {modification_date}",
                "$orderby": orderby,
                "$top": batch_size,
            },
        )

    def fetch_media_by_resource(self, resource_name: str, resource_key: str, batch_size: int = 100) -> Any:
        return self.fetch_with_options(
            "Media",
            {
                "$filter": (
                    f"ResourceRecordKey eq {odata_literal(resource_key)} "
                    f"and ResourceName eq {odata_literal(resource_name)}"
                ),
                "$orderby": "ModificationTimestamp,MediaKey",
                "$top": batch_size,
            },
        )

    # --- checkpointed replication ---

    def fetch_batch(
        self,
        resource: str | ResourceSpec,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        checkpoint: Optional[Checkpoint] = None,
    ) -> List[Record]:
        return self.replicator.fetch_batch(resource, batch_size, fields, filter, checkpoint)

    def iter_batches(
        self,
        resource: str | ResourceSpec,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        checkpoint: Optional[Checkpoint] = None,
        sleep_seconds: Optional[float] = None,
    ) -> Iterator[ReplicationBatch]:
        return self.replicator.iter_batches(resource, batch_size, fields, filter, checkpoint, sleep_seconds)

    def each_batch(
        self,
        resource: str | ResourceSpec,
        consumer: BatchConsumer,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        checkpoint: Optional[Checkpoint] = None,
        sleep_seconds: Optional[float] = None,
    ) -> Checkpoint:
        return self.replicator.each_batch(resource, consumer, batch_size, fields, filter, checkpoint, sleep_seconds)

    def fetch_all(
        self,
        resource: str | ResourceSpec,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        checkpoint: Optional[Checkpoint] = None,
        sleep_seconds: Optional[float] = None,
    ) -> List[Record]:
        return self.replicator.fetch_all(resource, batch_size, fields, filter, checkpoint, sleep_seconds)

    def perform_initial_download(
        self,
        resource: str | ResourceSpec = PROPERTY,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        checkpoint: Optional[Checkpoint] = None,
        sleep_seconds: Optional[float] = None,
    ) -> List[Record]:
        """Download every record after ``checkpoint``; selects only the ordering key by default."""
        spec = resource_spec(resource)
        if fields is None:
            fields = spec.ordering_fields
        return self.fetch_all(spec, batch_size, fields, filter, checkpoint, sleep_seconds)

    def fetch_updates(
        self,
        consumer: BatchConsumer,
        checkpoint: Checkpoint,
        resource: str | ResourceSpec = PROPERTY,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        sleep_seconds: Optional[float] = None,
    ) -> Checkpoint:
        """Replay changes since a saved checkpoint page by page."""
        spec = resource_spec(resource)
        if fields is None:
            fields = spec.ordering_fields
        return self.each_batch(spec, consumer, batch_size, fields, filter, checkpoint, sleep_seconds)

    # --- per-resource wrappers ---

    def fetch_property_batch(self, **kwargs: Any) -> List[Record]:
        return self.fetch_batch(PROPERTY, **kwargs)

    def each_property_batch(self, consumer: BatchConsumer, **kwargs: Any) -> Checkpoint:
        return self.each_batch(PROPERTY, consumer, **kwargs)

    def fetch_all_properties(self, **kwargs: Any) -> List[Record]:
        return self.fetch_all(PROPERTY, **kwargs)

    def fetch_media_batch(self, **kwargs: Any) -> List[Record]:
        return self.fetch_batch(MEDIA, **kwargs)

    def each_media_batch(self, consumer: BatchConsumer, **kwargs: Any) -> Checkpoint:
        return self.each_batch(MEDIA, consumer, **kwargs)

    def fetch_all_media(self, **kwargs: Any) -> List[Record]:
        return self.fetch_all(MEDIA, **kwargs)

    def fetch_lookup_batch(self, **kwargs: Any) -> List[Record]:
        return self.fetch_batch(LOOKUP, **kwargs)

    def each_lookup_batch(self, consumer: BatchConsumer, **kwargs: Any) -> Checkpoint:
        return self.each_batch(LOOKUP, consumer, **kwargs)

    def fetch_all_lookups(self, **kwargs: Any) -> List[Record]:
        return self.fetch_all(LOOKUP, **kwargs)

    def fetch_field_batch(self, **kwargs: Any) -> List[Record]:
        return self.fetch_batch(FIELD, **kwargs)

    def each_field_batch(self, consumer: BatchConsumer, **kwargs: Any) -> Checkpoint:
        return self.each_batch(FIELD, consumer, **kwargs)

    def fetch_all_fields(self, **kwargs: Any) -> List[Record]:
        return self.fetch_all(FIELD, **kwargs)
