import pytest
import requests

from colis_dashboard.api.transport import RequestsTransport, _truncate
from colis_dashboard.errors import TransportError


class FakeResp:
    def __init__(self, status_code=200, text="", payload=None):
        self.status_code = status_code
        self.text = text
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _transport(monkeypatch, result):
    t = RequestsTransport(timeout=5, max_retries=0)
    seen = {}

    def fake_post(url, **kwargs):
        seen.update(kwargs, url=url)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(t.session, "post", fake_post)
    return t, seen


def test_post_json_decodes_and_passes_timeout(monkeypatch):
    t, seen = _transport(monkeypatch, FakeResp(payload={"ok": True}))
    assert t.post_json("https://x.test/a", {"k": 1}) == {"ok": True}
    assert seen["timeout"] == 5
    assert seen["json"] == {"k": 1}


def test_http_error_becomes_transport_error(monkeypatch):
    t, _ = _transport(monkeypatch, FakeResp(status_code=503, text="down"))
    with pytest.raises(TransportError) as ei:
        t.post("https://x.test/a")
    assert ei.value.status_code == 503


def test_network_error_becomes_transport_error(monkeypatch):
    t, _ = _transport(monkeypatch, requests.ConnectionError("refused"))
    with pytest.raises(TransportError):
        t.post("https://x.test/a")


def test_non_json_body_is_transport_error(monkeypatch):
    t, _ = _transport(monkeypatch, FakeResp(text="<html>"))
    with pytest.raises(TransportError):
        t.post_json("https://x.test/a", {})


def test_truncate():
    assert _truncate("abc", 5) == "abc"
    assert _truncate("abcdef", 3) == "abc..."
    assert _truncate(None) is None
