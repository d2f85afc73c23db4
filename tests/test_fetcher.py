import asyncio

import httpx
import pytest

from ermirror.models.area import AreaDocument, RecordDocument
from ermirror.services.crawl.base import (
    InvalidLocatorError,
    MalformedError,
    NotFoundError,
    UnknownStatusError,
    UnreachableError,
)
from ermirror.services.crawl.fetcher import AreaFetcher
from ermirror.services.crawl.locator import locate
from ermirror.services.crawl.retry import RetryPolicy

from fakes import (
    TEMPLATES,
    FakeRemote,
    SleepRecorder,
    area_url,
    corrupt_gzip,
    listing,
    precinct_url,
    redirect_to_self,
)


def fetch(remote, locator, *, max_retries=5, sleep=None):
    async def go():
        async with remote.client() as client:
            fetcher = AreaFetcher(client=client, policy=RetryPolicy(max_retries=max_retries), sleep=sleep or SleepRecorder())
            return await fetcher.fetch(locator), fetcher.requests_made

    return asyncio.run(go())


def loc(code, depth):
    return locate(code, depth, templates=TEMPLATES)


def test_listing_response_becomes_area_document():
    remote = FakeRemote({area_url("01"): listing(("0101", "Province A"), ("0102", "Province B"))})
    doc, requests = fetch(remote, loc("01", 1))
    assert isinstance(doc, AreaDocument)
    assert [r.name for r in doc.regions] == ["Province A", "Province B"]
    assert requests == 1


def test_record_response_becomes_record_document():
    remote = FakeRemote({area_url("0101"): {"totalReceived": 5}})
    doc, _ = fetch(remote, loc("0101", 2))
    assert isinstance(doc, RecordDocument)
    assert doc.payload == {"totalReceived": 5}


def test_forbidden_is_not_found_and_not_retried():
    remote = FakeRemote({area_url("01"): 403})
    with pytest.raises(NotFoundError):
        fetch(remote, loc("01", 1))
    assert remote.count(area_url("01")) == 1


def test_unknown_status_is_retried_until_bound():
    remote = FakeRemote({area_url("01"): 500})
    sleep = SleepRecorder()
    with pytest.raises(UnknownStatusError) as exc_info:
        fetch(remote, loc("01", 1), max_retries=5, sleep=sleep)
    assert exc_info.value.status_code == 500
    assert remote.count(area_url("01")) == 6
    assert sleep.delays == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6])


def test_network_failure_is_unreachable_after_retries():
    remote = FakeRemote({area_url("01"): httpx.ConnectError("connection refused")})
    with pytest.raises(UnreachableError):
        fetch(remote, loc("01", 1), max_retries=2)
    assert remote.count(area_url("01")) == 3


def test_transient_failure_then_success():
    class Flaky(FakeRemote):
        async def __call__(self, request):
            if len(self.calls) < 2:
                self.calls.append(str(request.url))
                return httpx.Response(503)
            return await super().__call__(request)

    remote = Flaky({area_url("01"): listing(("0101", "Province A"))})
    doc, requests = fetch(remote, loc("01", 1))
    assert isinstance(doc, AreaDocument)
    assert requests == 3


def test_non_json_body_is_malformed_and_not_retried():
    remote = FakeRemote({area_url("01"): "<html>maintenance</html>"})
    with pytest.raises(MalformedError):
        fetch(remote, loc("01", 1))
    assert remote.count(area_url("01")) == 1


def test_broken_content_encoding_is_malformed_and_not_retried():
    remote = FakeRemote({area_url("01"): corrupt_gzip})
    sleep = SleepRecorder()
    with pytest.raises(MalformedError):
        fetch(remote, loc("01", 1), sleep=sleep)
    assert remote.count(area_url("01")) == 1
    assert sleep.delays == []


def test_redirect_loop_is_unreachable_after_retries():
    remote = FakeRemote({area_url("01"): redirect_to_self})
    sleep = SleepRecorder()
    with pytest.raises(UnreachableError) as exc_info:
        fetch(remote, loc("01", 1), max_retries=1, sleep=sleep)
    assert "TooManyRedirects" in str(exc_info.value)
    assert sleep.delays == pytest.approx([0.1])


def test_unexpected_shape_is_malformed():
    remote = FakeRemote({area_url("01"): {"regions": "nope"}})
    with pytest.raises(MalformedError):
        fetch(remote, loc("01", 1))


def test_short_code_is_rejected_before_any_request():
    remote = FakeRemote({precinct_url("1"): listing(("x", "y"))})
    with pytest.raises(InvalidLocatorError):
        fetch(remote, loc("1", 4))
    assert remote.calls == []
