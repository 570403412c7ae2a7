import unittest
from unittest import mock

import requests

from amplify_syndication.client import Client
from amplify_syndication.config import Settings
from amplify_syndication.exceptions import ConfigurationError, HttpError, ProtocolError
from amplify_syndication.http_client import HttpClient, HttpConfig


def make_response(status, body, headers=None):
    resp = requests.Response()
    resp.status_code = status
    resp._content = body.encode("utf-8")
    resp.headers.update(headers or {})
    resp.url = "https://example.test/odata/Property"
    return resp


class FakeSession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def make_client(responses, max_retries=2, base_url="https://example.test/odata/"):
    session = FakeSession(responses)
    http = HttpClient(HttpConfig(access_token="tok", max_retries=max_retries), session=session)
    client = Client(Settings(base_url=base_url, access_token="tok"), http=http)
    return client, session


class TestClient(unittest.TestCase):
    def test_bearer_headers(self):
        _, session = make_client([])
        self.assertEqual(session.headers["Authorization"], "Bearer tok")
        self.assertEqual(session.headers["Accept"], "application/json")

    def test_url_joining_collapses_slashes(self):
        client, _ = make_client([])
        self.assertEqual(client.url_for("Property"), "https://example.test/odata/Property")
        self.assertEqual(client.url_for("/Media('1')"), "https://example.test/odata/Media('1')")

    def test_get_with_options_appends_raw_query(self):
        client, session = make_client([make_response(200, '{"value": [{"ListingKey": "A"}]}')])
        data = client.get_with_options("Property", {"$top": 2, "$filter": "City eq 'X'"})

        self.assertEqual(data, {"value": [{"ListingKey": "A"}]})
        method, url, kwargs = session.calls[0]
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://example.test/odata/Property?$top=2&$filter=City eq 'X'")
        self.assertIsNone(kwargs["params"])
        self.assertEqual(kwargs["timeout"], (10.0, 30.0))

    def test_get_passes_params(self):
        client, session = make_client([make_response(200, "{}")])
        client.get("Property", {"$top": 1})
        self.assertEqual(session.calls[0][2]["params"], {"$top": 1})

    def test_get_with_options_without_options(self):
        client, session = make_client([make_response(200, '{"value": []}')])
        self.assertEqual(client.get_with_options("Lookup", {}), {"value": []})
        self.assertEqual(session.calls[0][1], "https://example.test/odata/Lookup")

    def test_non_200_raises_http_error(self):
        client, _ = make_client([make_response(404, "not found")])
        with self.assertRaises(HttpError) as ctx:
            client.get("Property('nope')")
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(str(ctx.exception), "HTTP Error: 404 - not found")

    def test_non_json_raises_protocol_error(self):
        client, _ = make_client([make_response(200, "<html>maintenance</html>")])
        with self.assertRaises(ProtocolError):
            client.get("Property")

    def test_missing_token(self):
        with self.assertRaises(ConfigurationError):
            Client(Settings(access_token=None))


@mock.patch("amplify_syndication.http_client.random.uniform", return_value=0.0)
@mock.patch("amplify_syndication.http_client.time.sleep")
class TestRetries(unittest.TestCase):
    def test_retries_transient_status_honouring_retry_after(self, sleep, _uniform):
        client, session = make_client(
            [make_response(503, "busy", {"Retry-After": "5"}), make_response(200, '{"value": []}')]
        )
        self.assertEqual(client.get("Property"), {"value": []})
        self.assertEqual(len(session.calls), 2)
        sleep.assert_called_once_with(5.0)

    def test_exhausted_retries_surface_http_error(self, sleep, _uniform):
        client, session = make_client([make_response(429, "slow down"), make_response(429, "slow down")], max_retries=1)
        with self.assertRaises(HttpError) as ctx:
            client.get("Property")
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertEqual(len(session.calls), 2)
        sleep.assert_called_once_with(2.0)

    def test_connection_errors_are_retried_then_raised(self, sleep, _uniform):
        client, session = make_client(
            [requests.ConnectionError("reset"), requests.ConnectionError("reset")], max_retries=1
        )
        with self.assertRaises(requests.ConnectionError):
            client.get("Property")
        self.assertEqual(len(session.calls), 2)

    def test_backoff_grows_exponentially(self, sleep, _uniform):
        client, _ = make_client(
            [make_response(500, "x"), make_response(502, "x"), make_response(200, "{}")], max_retries=3
        )
        client.get("Property")
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [2.0, 4.0])


if __name__ == "__main__":
    unittest.main()
