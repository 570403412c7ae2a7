from __future__ import annotations

import re
from typing import Any, Mapping, Optional

import requests

from .config import Settings, load_settings
from .exceptions import HttpError, ProtocolError
from .http_client import HttpClient

_DUPLICATE_SLASHES = re.compile(r"(?<!:)/{2,}")


class Client:
    """Bearer-authenticated JSON GETs against the OData endpoint."""

    def __init__(self, settings: Optional[Settings] = None, http: Optional[HttpClient] = None):
        self.settings = settings or load_settings()
        self.base_url = self.settings.base_url
        self.http = http or HttpClient(self.settings.http_config())

    def url_for(self, endpoint: str) -> str:
        return _DUPLICATE_SLASHES.sub("/", f"{self.base_url}/{endpoint}")

    def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        resp = self.http.request("GET", self.url_for(endpoint), params=dict(params) if params else None)
        return parse_response(resp)

    def get_with_options(self, endpoint: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        # Values are sent as written (the filter carries its own encoding);
        # requests only requotes characters that are unsafe in a URL.
        if not options:
            return self.get(endpoint)
        query = "&".join(f"{key}={value}" for key, value in options.items())
        return self.get(f"{endpoint}?{query}")


def parse_response(resp: requests.Response) -> Any:
    if resp.status_code != 200:
        raise HttpError(resp.status_code, resp.text)
    try:
        return resp.json()
    except ValueError as e:
        raise ProtocolError(f"Response from {resp.url} is not JSON") from e
