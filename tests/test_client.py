import json

import pytest
import requests

from md_search_indexer.index.base import BulkSubmitError
from md_search_indexer.index.batch import submit_batches
from md_search_indexer.index.es_http import ElasticsearchClient, normalize_host
from md_search_indexer.index.factory import make_client
from md_search_indexer.index.schema import Batch, IndexOperation, Section


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self._body


class HtmlResponse(FakeResponse):
    """A proxy error page served with status 200."""

    def json(self):
        raise ValueError("Expecting value: line 1 column 1 (char 0)")


class FakeSession:
    def __init__(self, responses=None):
        self.responses = responses or {}
        self.requests = []
        self.auth = None

    def _reply(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        return self.responses.get(method, FakeResponse())

    def head(self, url, **kw):
        return self._reply("HEAD", url, **kw)

    def delete(self, url, **kw):
        return self._reply("DELETE", url, **kw)

    def put(self, url, **kw):
        return self._reply("PUT", url, **kw)

    def post(self, url, **kw):
        return self._reply("POST", url, **kw)


def _batch(number=0):
    section = Section(title="Intro", anchor_id="intro", url="a.html#intro", text="hi", source_order=0)
    op = IndexOperation(operation_id="amd_0", index_name="docs", section=section, document_title="A", document_id="a")
    return Batch(number=number, operations=[op])


def test_normalize_host(monkeypatch):
    monkeypatch.delenv("ELASTIC_SEARCH_HOST", raising=False)
    assert normalize_host(None) == "http://localhost:9200"
    assert normalize_host("search:9200/") == "http://search:9200"
    monkeypatch.setenv("ELASTIC_SEARCH_HOST", "https://es.internal")
    assert normalize_host(None) == "https://es.internal"


def test_exists_maps_404_to_false():
    session = FakeSession({"HEAD": FakeResponse(404)})
    client = ElasticsearchClient(host="http://es:9200", session=session)
    assert client.exists("docs") is False
    assert session.requests[0][1] == "http://es:9200/docs"


def test_exists_raises_on_server_error():
    client = ElasticsearchClient(host="http://es:9200", session=FakeSession({"HEAD": FakeResponse(500)}))
    with pytest.raises(requests.exceptions.HTTPError):
        client.exists("docs")


def test_create_sends_mapping():
    session = FakeSession()
    client = ElasticsearchClient(host="http://es:9200", session=session)
    client.create("docs", {"title": {"type": "text"}})
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("PUT", "http://es:9200/docs")
    assert kwargs["json"] == {"mappings": {"properties": {"title": {"type": "text"}}}}


def test_bulk_posts_ndjson():
    session = FakeSession({"POST": FakeResponse(200, {"errors": False, "items": []})})
    client = ElasticsearchClient(host="http://es:9200", session=session)
    client.bulk(_batch())
    method, url, kwargs = session.requests[0]
    assert url == "http://es:9200/_bulk"
    assert kwargs["headers"]["Content-Type"] == "application/x-ndjson"
    lines = kwargs["data"].decode("utf-8").splitlines()
    assert json.loads(lines[0]) == {"index": {"_index": "docs", "_id": "amd_0"}}
    assert json.loads(lines[1]) == {
        "title": "Intro",
        "url": "a.html#intro",
        "content": "hi",
        "documentTitle": "A",
        "documentId": "a",
    }


def test_bulk_item_errors_raise():
    body = {"errors": True, "items": [{"index": {"_id": "amd_0", "error": {"reason": "mapper_parsing_exception"}}}]}
    client = ElasticsearchClient(host="http://es:9200", session=FakeSession({"POST": FakeResponse(200, body)}))
    with pytest.raises(BulkSubmitError, match="mapper_parsing_exception"):
        client.bulk(_batch())


def test_bulk_http_error_raises():
    client = ElasticsearchClient(host="http://es:9200", session=FakeSession({"POST": FakeResponse(413)}))
    with pytest.raises(BulkSubmitError, match="batch 0"):
        client.bulk(_batch())


def test_basic_auth_and_factory():
    session = FakeSession()
    ElasticsearchClient(host="http://es:9200", username="u", password="p", session=session)
    assert session.auth == ("u", "p")
    assert isinstance(make_client("opensearch", host="http://os:9200"), ElasticsearchClient)
    with pytest.raises(RuntimeError):
        make_client("solr")


def test_bulk_non_json_reply_raises():
    client = ElasticsearchClient(host="http://es:9200", session=FakeSession({"POST": HtmlResponse(200)}))
    with pytest.raises(BulkSubmitError, match="batch 0"):
        client.bulk(_batch())


def test_bulk_unexpected_json_shape_raises():
    client = ElasticsearchClient(host="http://es:9200", session=FakeSession({"POST": FakeResponse(200, ["ok"])}))
    with pytest.raises(BulkSubmitError, match="unexpected bulk response"):
        client.bulk(_batch())


def test_non_json_reply_does_not_stop_later_batches():
    replies = [HtmlResponse(200), FakeResponse(200, {"errors": False, "items": []}), FakeResponse(200, {"errors": False, "items": []})]

    class SequencedSession(FakeSession):
        def post(self, url, **kw):
            self.requests.append(("POST", url, kw))
            return replies.pop(0)

    session = SequencedSession()
    client = ElasticsearchClient(host="http://es:9200", session=session)
    results = submit_batches(client, [_batch(n) for n in range(3)])
    assert len(session.requests) == 3
    assert [r.ok for r in results] == [False, True, True]
    assert "batch 0" in results[0].error
