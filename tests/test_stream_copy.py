"""Tests for the in-process stream copy strategy.

The HTTP session and the wall clock are replaced by fakes so that the
boundary is reached (or not) at a precise chunk.
"""

import threading

import pytest
import requests

from iptvrec.recorder.context import RecorderContext
from iptvrec.recorder.errors import CaptureStartError, StreamDrop
from iptvrec.recorder.stream_copy import StreamCopy

from fakes import FakeClock, FakeResponse, FakeSession, at, endless


def make_copy(session, clock, context=None):
    return StreamCopy(context or RecorderContext(), now=clock, poll_interval=0.01,
                      session=session, chunk_size=4)


def test_eof_before_boundary_is_a_drop(tmp_path):
    clock = FakeClock(at(20, 0))
    session = FakeSession([FakeResponse([b"ab", b"cd"])])
    dest = tmp_path / "rec.ts"

    outcome = make_copy(session, clock).run_once("http://src/1", dest, at(20, 0, 10))

    assert outcome.reached_boundary is False
    assert outcome.bytes_written == 4
    assert dest.read_bytes() == b"abcd"


def test_eof_at_boundary_is_success(tmp_path):
    clock = FakeClock(at(20, 0))
    boundary = at(20, 0, 2)

    def tick(index):
        clock.advance(1)

    session = FakeSession([FakeResponse([b"a", b"b"], on_chunk=tick)])
    outcome = make_copy(session, clock).run_once("http://src/1", tmp_path / "rec.ts", boundary)

    assert outcome.reached_boundary is True
    assert outcome.bytes_written == 2


def test_copy_stops_at_boundary_on_endless_stream(tmp_path):
    clock = FakeClock(at(20, 0))
    session = FakeSession([FakeResponse(endless(b"zz"), on_chunk=lambda i: clock.advance(1))])

    outcome = make_copy(session, clock).run_once("http://src/1", tmp_path / "rec.ts", at(20, 0, 5))

    assert outcome.reached_boundary is True
    assert outcome.bytes_written == 10


def test_destination_is_truncated(tmp_path):
    dest = tmp_path / "rec.ts"
    dest.write_bytes(b"old recording data")
    session = FakeSession([FakeResponse([b"new"])])

    make_copy(session, FakeClock(at(20, 0))).run_once("http://src/1", dest, at(21, 0))

    assert dest.read_bytes() == b"new"


def test_connection_failure_is_start_error(tmp_path):
    session = FakeSession([requests.ConnectionError("refused")])
    dest = tmp_path / "rec.ts"

    with pytest.raises(CaptureStartError):
        make_copy(session, FakeClock(at(20, 0))).run_once("http://src/1", dest, at(21, 0))
    assert not dest.exists()


def test_http_error_is_start_error_and_releases_connection(tmp_path):
    response = FakeResponse(status=503)
    session = FakeSession([response])
    with pytest.raises(CaptureStartError):
        make_copy(session, FakeClock(at(20, 0))).run_once("http://src/1", tmp_path / "r.ts", at(21, 0))
    assert response.closed is True
    assert not (tmp_path / "r.ts").exists()


def test_read_error_before_data_is_start_error(tmp_path):
    session = FakeSession([FakeResponse([b"a"], error_after=0)])
    dest = tmp_path / "r.ts"
    with pytest.raises(CaptureStartError):
        make_copy(session, FakeClock(at(20, 0))).run_once("http://src/1", dest, at(21, 0))
    assert not dest.exists()


def test_each_chunk_reaches_disk_before_the_next_read(tmp_path):
    dest = tmp_path / "r.ts"
    sizes = []

    def record_size(index):
        if index > 0:
            sizes.append(dest.stat().st_size)

    session = FakeSession([FakeResponse([b"abcd", b"efgh", b"ij"], on_chunk=record_size)])
    make_copy(session, FakeClock(at(20, 0))).run_once("http://src/1", dest, at(21, 0))

    assert sizes == [4, 8]


def test_read_error_after_data_is_reported(tmp_path):
    session = FakeSession([FakeResponse([b"a", b"b", b"c"], error_after=2)])
    outcome = make_copy(session, FakeClock(at(20, 0))).run_once("http://src/1", tmp_path / "r.ts", at(21, 0))

    assert outcome.reached_boundary is False
    assert outcome.bytes_written == 2
    assert "reset" in outcome.error


def test_cancel_stops_copy(tmp_path):
    clock = FakeClock(at(20, 0))
    copier = None

    def cancel_on_third(index):
        if index == 2:
            copier.cancel()

    session = FakeSession([FakeResponse(endless(b"x"), on_chunk=cancel_on_third)])
    copier = make_copy(session, clock)
    outcome = copier.run_once("http://src/1", tmp_path / "r.ts", at(21, 0))

    assert outcome.cancelled is True
    assert outcome.bytes_written == 2


@pytest.mark.asyncio
async def test_run_until_raises_drop_on_early_eof(tmp_path):
    session = FakeSession([FakeResponse([b"x"])])
    with RecorderContext() as context:
        copier = make_copy(session, FakeClock(at(20, 0)), context)
        with pytest.raises(StreamDrop) as excinfo:
            await copier.run_until("http://src/1", tmp_path / "r.ts", at(20, 0, 10))
    assert excinfo.value.bytes_written == 1


@pytest.mark.asyncio
async def test_run_until_succeeds_at_boundary(tmp_path):
    clock = FakeClock(at(20, 0))
    session = FakeSession([FakeResponse(endless(b"data"), on_chunk=lambda i: clock.advance(0.5))])
    dest = tmp_path / "r.ts"
    with RecorderContext() as context:
        result = await make_copy(session, clock, context).run_until("http://src/1", dest, at(20, 0, 2))

    assert result.success is True
    assert result.stopped_at_boundary is True
    assert dest.stat().st_size > 0


@pytest.mark.asyncio
async def test_run_until_cancels_hung_worker_at_boundary(tmp_path):
    clock = FakeClock(at(20, 0))
    release = threading.Event()

    def hang(index):
        if index == 1:
            clock.advance(60)
            release.wait(5)

    session = FakeSession([FakeResponse(endless(b"d"), on_chunk=hang)])
    with RecorderContext() as context:
        copier = make_copy(session, clock, context)
        result = await copier.run_until("http://src/1", tmp_path / "r.ts", at(20, 0, 30))
        release.set()

    assert result.success is True
    assert result.stopped_at_boundary is True
