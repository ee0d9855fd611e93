"""Tests for the connectivity probe and its bounded retry loop."""

import pytest
import requests

from iptvrec.recorder.errors import ConnectivityError
from iptvrec.recorder.probe import ConnectivityProbe
from iptvrec.recorder.request import RetryPolicy

from fakes import FakeResponse, FakeSession, RecordingSleep


def test_attempt_success_closes_response():
    response = FakeResponse([b"data"])
    session = FakeSession([response])
    probe = ConnectivityProbe(session, connect_timeout=3, read_timeout=4)

    assert probe.attempt("http://src/1") is True
    assert response.closed is True
    url, kwargs = session.calls[0]
    assert url == "http://src/1"
    assert kwargs["timeout"] == (3, 4)
    assert kwargs["stream"] is True


def test_attempt_failure_statuses():
    probe = ConnectivityProbe(FakeSession([FakeResponse(status=404)]))
    assert probe.attempt("http://src/1") is False
    assert "404" in probe.last_error


@pytest.mark.asyncio
async def test_stops_at_first_success():
    sleep = RecordingSleep()
    session = FakeSession([
        requests.ConnectionError("refused"),
        requests.Timeout("timed out"),
        FakeResponse(),
        FakeResponse(),
    ])
    probe = ConnectivityProbe(session, sleep=sleep)

    attempts = await probe.wait_until_reachable("http://src/1", RetryPolicy(5, 7))

    assert attempts == 3
    assert len(session.calls) == 3
    assert sleep.calls == [7, 7]


@pytest.mark.asyncio
async def test_exhaustion_raises_after_max_attempts():
    sleep = RecordingSleep()
    session = FakeSession([requests.ConnectionError("refused")] * 3)
    probe = ConnectivityProbe(session, sleep=sleep)

    with pytest.raises(ConnectivityError) as excinfo:
        await probe.wait_until_reachable("http://src/1", RetryPolicy(3, 2))

    assert excinfo.value.attempts == 3
    assert len(session.calls) == 3
    assert sleep.calls == [2, 2]


@pytest.mark.asyncio
async def test_single_attempt_never_sleeps():
    sleep = RecordingSleep()
    probe = ConnectivityProbe(FakeSession([FakeResponse()]), sleep=sleep)

    assert await probe.wait_until_reachable("http://src/1", RetryPolicy(1, 60)) == 1
    assert sleep.calls == []
