from __future__ import annotations

import re
from typing import Any, Dict, List
from urllib.parse import unquote

BOUNDARY = re.compile(
    r"(?P<tsf>\w+) eq (?P<ts>\S+) and (?P<keyf>\w+) gt '(?P<key>(?:[^']|'')*)'\)+$"
)


def rec(ts: str, key: str, **extra: Any) -> Dict[str, Any]:
    return {"ModificationTimestamp": ts, "ListingKey": key, **extra}


class ScriptedFetch:
    """Returns canned envelopes in order, then empty pages."""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[tuple] = []

    def __call__(self, resource, options):
        self.calls.append((resource, dict(options)))
        if self.responses:
            r = self.responses.pop(0)
            if isinstance(r, Exception):
                raise r
            return r
        return {"value": []}


class FakeFeed:
    """In-memory collection that honours the boundary filter like the server."""

    def __init__(self, records: List[Dict[str, Any]], fail_on_call: int | None = None):
        self.records = list(records)
        self.calls: List[tuple] = []
        self.fail_on_call = fail_on_call

    def __call__(self, resource, options):
        self.calls.append((resource, dict(options)))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ConnectionError("feed unavailable")
        m = BOUNDARY.search(options["$filter"])
        tsf, keyf = m.group("tsf"), m.group("keyf")
        after = (unquote(m.group("ts")), m.group("key").replace("''", "'"))
        rows = sorted(self.records, key=lambda r: (r[tsf], r[keyf]))
        rows = [r for r in rows if (r[tsf], r[keyf]) > after]
        return {"value": rows[: int(options["$top"])]}
