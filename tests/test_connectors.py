import json
import urllib.error
import urllib.parse
from pathlib import Path

import pytest

from talkmatch.connectors import LocalFileMarkupProvider, MediaWikiMarkupProvider, PageRef
from talkmatch.errors import ProviderError


class _FakeResponse:
    def __init__(self, payload: dict) -> None:
        self._payload = payload

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def read(self) -> bytes:
        return json.dumps(self._payload).encode("utf-8")


def _page_payload(content: str) -> dict:
    return {
        "query": {
            "pages": [
                {
                    "pageid": 1,
                    "title": "Talk:Example",
                    "revisions": [{"revid": 42, "slots": {"main": {"content": content}}}],
                }
            ]
        }
    }


def test_mediawiki_provider_requests_revision_content(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def _fake_urlopen(request, timeout: float):  # noqa: ANN001
        captured["url"] = request.full_url
        captured["timeout"] = timeout
        captured["headers"] = dict(request.headers)
        return _FakeResponse(_page_payload("== Topic ==\nHello"))

    monkeypatch.setattr("urllib.request.urlopen", _fake_urlopen)

    provider = MediaWikiMarkupProvider("https://wiki.example/w/api.php", timeout_seconds=2.5, user_agent="tests/1.0")
    markup = provider.get_markup(PageRef(title="Talk:Example", section=3))

    assert markup == "== Topic ==\nHello"
    assert captured["timeout"] == 2.5
    assert captured["headers"]["User-agent"] == "tests/1.0"
    query = urllib.parse.parse_qs(urllib.parse.urlparse(captured["url"]).query)
    assert query["titles"] == ["Talk:Example"]
    assert query["rvsection"] == ["3"]
    assert query["rvslots"] == ["main"]
    assert query["formatversion"] == ["2"]


def test_mediawiki_provider_prefers_revision_id() -> None:
    provider = MediaWikiMarkupProvider("https://wiki.example/w/api.php/")
    url = provider.build_url(PageRef(title="Talk:Example", revision_id=42))

    query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)
    assert url.startswith("https://wiki.example/w/api.php?")
    assert query["revids"] == ["42"]
    assert "titles" not in query


def test_mediawiki_provider_reports_missing_page(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "urllib.request.urlopen",
        lambda request, timeout: _FakeResponse({"query": {"pages": [{"title": "Talk:Nope", "missing": True}]}}),
    )
    with pytest.raises(ProviderError):
        MediaWikiMarkupProvider("https://wiki.example/w/api.php").get_markup(PageRef(title="Talk:Nope"))


def test_mediawiki_provider_reports_api_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "urllib.request.urlopen",
        lambda request, timeout: _FakeResponse({"error": {"code": "badrevids", "info": "Bad revision id"}}),
    )
    with pytest.raises(ProviderError) as excinfo:
        MediaWikiMarkupProvider("https://wiki.example/w/api.php").get_markup(PageRef(title="X", revision_id=1))
    assert "badrevids" in str(excinfo.value)


def test_mediawiki_provider_wraps_transport_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _failing_urlopen(request, timeout: float):  # noqa: ANN001
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr("urllib.request.urlopen", _failing_urlopen)
    with pytest.raises(ProviderError):
        MediaWikiMarkupProvider("https://wiki.example/w/api.php").get_markup(PageRef(title="Talk:Example"))


def test_local_file_provider_reads_markup(tmp_path: Path) -> None:
    (tmp_path / "Talk:Example_page.wiki").write_text("Some markup\n", encoding="utf-8")
    provider = LocalFileMarkupProvider(tmp_path)

    assert provider.get_markup(PageRef(title="Talk:Example page")) == "Some markup\n"

    with pytest.raises(ProviderError):
        provider.get_markup(PageRef(title="Talk:Missing"))
    with pytest.raises(ProviderError):
        provider.get_markup(PageRef(title="Talk:Example page", section=1))
