from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from .exceptions import ProtocolError, ReplicationError
from .logging_utils import get_logger, log_json
from .models import Checkpoint, Record, ReplicationBatch, ResourceSpec, resource_spec
from .query import build_page_request

FetchPage = Callable[[str, Dict[str, Any]], Mapping[str, Any]]
BatchConsumer = Callable[[List[Record], Checkpoint], None]

logger = get_logger(__name__)


def page_records(envelope: Any) -> List[Record]:
    """Extract the ``value`` array from a decoded OData response."""
    if not isinstance(envelope, Mapping):
        raise ProtocolError(f"Expected a JSON object, got {type(envelope).__name__}")
    value = envelope.get("value")
    if not isinstance(value, list):
        raise ProtocolError("Response has no 'value' array")
    return value


class Replicator:
    """Walks a resource page by page in ``(timestamp, key)`` order.

    ``fetch_page(resource, query_options)`` performs one request and returns
    the decoded envelope. Failures must be raised, not returned as an empty
    page: an empty ``value`` array is the only "caught up" signal.

    One request is in flight at a time; the next boundary is computed from
    the last record of the previous page.
    """

    def __init__(self, fetch_page: FetchPage, *, sleep_seconds: float = 0.0, sleep: Callable[[float], None] = time.sleep):
        self._fetch_page = fetch_page
        self.sleep_seconds = sleep_seconds
        self._sleep = sleep

    def fetch_batch(
        self,
        resource: str | ResourceSpec,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        checkpoint: Optional[Checkpoint] = None,
    ) -> List[Record]:
        """Fetch the single page after ``checkpoint``. The checkpoint is not advanced."""
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        cp = checkpoint or Checkpoint()
        request = build_page_request(resource, fields, filter, cp, batch_size)
        options = request.query_options()
        log_json(
            logger,
            logging.DEBUG,
            "batch_request",
            resource=request.resource,
            last_timestamp=cp.last_timestamp,
            last_key=cp.last_key,
            options=options,
        )
        records = page_records(self._fetch_page(request.resource, options))
        log_json(logger, logging.DEBUG, "batch_received", resource=request.resource, count=len(records))
        return records

    def iter_batches(
        self,
        resource: str | ResourceSpec,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        checkpoint: Optional[Checkpoint] = None,
        sleep_seconds: Optional[float] = None,
    ) -> Iterator[ReplicationBatch]:
        """Yield every remaining page as a :class:`ReplicationBatch`.

        Each batch carries the checkpoint *after* its records. Persisting
        that pair and restarting from the checkpoint resumes the walk with
        no gaps and no duplicates. Stopping the iteration early is safe; the
        pacing delay only runs once the consumer asks for the next page.
        """
        spec = resource_spec(resource)
        fields = list(fields) if fields is not None else None
        pause = self.sleep_seconds if sleep_seconds is None else sleep_seconds
        cp = checkpoint or Checkpoint()
        batches = 0
        total = 0

        while True:
            records = self.fetch_batch(spec, batch_size, fields, filter, cp)
            if not records:
                break

            try:
                advanced = cp.advance(records[-1], spec)
            except KeyError as e:
                raise ProtocolError(f"{spec.name} record is missing ordering field {e}") from e
            if not advanced.is_after(cp):
                raise ReplicationError(
                    f"{spec.name} page ending at ({advanced.last_timestamp}, {advanced.last_key}) "
                    f"does not sort after checkpoint ({cp.last_timestamp}, {cp.last_key})"
                )
            cp = advanced
            batches += 1
            total += len(records)
            yield ReplicationBatch(records=records, checkpoint=cp)

            # Short page: the next one must be empty, skip the round trip.
            if len(records) < batch_size:
                break
            if pause > 0:
                self._sleep(pause)

        log_json(
            logger,
            logging.INFO,
            "replication_complete",
            resource=spec.name,
            batches=batches,
            records=total,
            last_timestamp=cp.last_timestamp,
            last_key=cp.last_key,
        )

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
        """Call ``consumer(records, checkpoint)`` for each page; return the final checkpoint."""
        cp = checkpoint or Checkpoint()
        for batch in self.iter_batches(resource, batch_size, fields, filter, cp, sleep_seconds):
            consumer(batch.records, batch.checkpoint)
            cp = batch.checkpoint
        return cp

    def fetch_all(
        self,
        resource: str | ResourceSpec,
        batch_size: int = 100,
        fields: Optional[Iterable[str]] = None,
        filter: Optional[str] = None,
        checkpoint: Optional[Checkpoint] = None,
        sleep_seconds: Optional[float] = None,
    ) -> List[Record]:
        """Buffer the whole remaining collection in memory.

        Memory grows with the record count; use :meth:`iter_batches` for
        anything that is not known to be small (lookups, field metadata).
        """
        records: List[Record] = []
        for batch in self.iter_batches(resource, batch_size, fields, filter, checkpoint, sleep_seconds):
            records.extend(batch.records)
        return records
