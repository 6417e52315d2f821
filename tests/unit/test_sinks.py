"""Unit tests for sinks and the heartbeat, using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from k8stream.heartbeat import Heartbeat
from k8stream.models.config import SinkConfig
from k8stream.models.events import EnrichedEvent
from k8stream.sinks import HTTPSink, LogSink, SinkError, build_sink


def _events() -> list[EnrichedEvent]:
    return [
        EnrichedEvent(id="E1", timestamp=10, reason="BackOff", pod={"uid": "P1", "impacted_services": ["web"]}),
        EnrichedEvent(id="S1-2", timestamp=11, reason="addedService"),
    ]


class TestHTTPSink:
    async def test_posts_run_id_and_events(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        sink = HTTPSink("https://sink.example/ingest", token="t0k", transport=httpx.MockTransport(handler))
        await sink.deliver("run-1", _events())

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert request.headers["Authorization"] == "Bearer t0k"
        body = json.loads(request.content)
        assert body["run_id"] == "run-1"
        assert [e["id"] for e in body["events"]] == ["E1", "S1-2"]
        # Empty fields are omitted.
        assert "host" not in body["events"][0]
        assert body["events"][0]["pod"]["impacted_services"] == ["web"]

    async def test_non_2xx_raises(self) -> None:
        sink = HTTPSink(
            "https://sink.example/ingest",
            transport=httpx.MockTransport(lambda _r: httpx.Response(503, text="overloaded")),
        )
        with pytest.raises(SinkError, match="503"):
            await sink.deliver("run-1", _events())

    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        sink = HTTPSink("https://sink.example/ingest", transport=httpx.MockTransport(handler))
        with pytest.raises(SinkError):
            await sink.deliver("run-1", _events())

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(ValueError):
            HTTPSink("")


class TestBuildSink:
    def test_http(self) -> None:
        assert isinstance(build_sink(SinkConfig(kind="http", url="https://x")), HTTPSink)

    def test_log(self) -> None:
        sink = build_sink(SinkConfig(kind="log"))
        assert isinstance(sink, LogSink)
        assert sink.sink_name == "log"

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError):
            build_sink(SinkConfig(kind="kafka"))

    async def test_log_sink_accepts_batches(self) -> None:
        await LogSink().deliver("run", _events())


class TestHeartbeat:
    async def test_beat_posts_run_id(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200)

        hb = Heartbeat("run-9", "https://hb.example", transport=httpx.MockTransport(handler))
        assert await hb.beat() is True
        assert bodies[0]["run_id"] == "run-9"
        assert "timestamp" in bodies[0]

    async def test_beat_failure_returns_false(self) -> None:
        hb = Heartbeat(
            "run-9",
            "https://hb.example",
            transport=httpx.MockTransport(lambda _r: httpx.Response(500)),
        )
        assert await hb.beat() is False

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(ValueError):
            Heartbeat("run", "")
