"""Page query construction for checkpointed replication.

Every page request selects the records strictly after the checkpoint under
ascending ``(timestamp, key)`` order::

    (T gt ts) or (T eq ts and K gt 'key')

Ties on the timestamp fall back to the key, so a coarse server clock never
causes records to be skipped or re-delivered. The replication driver advances
its checkpoint from the last record of each page, which is only correct while
the ``$orderby`` below stays ``T,K`` ascending.
"""

from __future__ import annotations

from typing import Iterable, List, Optional
from urllib.parse import quote

from .models import Checkpoint, Key, PageRequest, ResourceSpec, resource_spec


def odata_literal(value: Key) -> str:
    """Render a key as an OData string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def boundary_filter(spec: ResourceSpec, checkpoint: Checkpoint) -> str:
    ts = quote(str(checkpoint.last_timestamp), safe="")
    key = odata_literal(checkpoint.last_key)
    return (
        f"({spec.timestamp_field} gt {ts}) "
        f"or ({spec.timestamp_field} eq {ts} and {spec.key_field} gt {key})"
    )


def combine_filters(caller_filter: Optional[str], boundary: str) -> str:
    # Conjunctive only: a caller filter narrows the boundary, never widens it.
    if not caller_filter:
        return boundary
    return f"({caller_filter}) and ({boundary})"


def select_fields(spec: ResourceSpec, fields: Iterable[str] | None) -> List[str]:
    selected = list(fields or [])
    if not selected:
        return selected
    for name in spec.ordering_fields:
        if name not in selected:
            selected.append(name)
    return selected


def build_page_request(
    resource: str | ResourceSpec,
    fields: Iterable[str] | None,
    caller_filter: Optional[str],
    checkpoint: Checkpoint,
    page_size: int,
) -> PageRequest:
    spec = resource_spec(resource)
    return PageRequest(
        resource=spec.name,
        fields=select_fields(spec, fields),
        filter=combine_filters(caller_filter, boundary_filter(spec, checkpoint)),
        orderby=f"{spec.timestamp_field},{spec.key_field}",
        top=page_size,
    )
