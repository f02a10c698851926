"""
Tests for the WatcherOrchestrator class.

Construction and failure policies are tested with a mocked prober; the
end-to-end scenario runs real probes against a loopback server and scrapes
the real metrics endpoint.

The tests follow the Arrange-Act-Assert (AAA) pattern.
"""

import asyncio
import logging
import re
import socket
from datetime import timedelta
from typing import AsyncIterator, List
from unittest.mock import AsyncMock

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from url_watcher.contracts import ResultProcessor, TargetProber
from url_watcher.domain import ProbeResult, Target
from url_watcher.exceptions import ConfigurationError, ExpositionError, ProbeError, SinkError
from url_watcher.orchestrator import WatcherOrchestrator
from url_watcher.prober.aiohttp_prober import AiohttpProber, create_trace_config

GOOD_URL = "http://good.example"
BAD_URL = "http://bad.example"


@pytest.fixture
def prober() -> AsyncMock:
    """
    Creates a prober that answers 200 for every URL except BAD_URL, which fails hard.
    """
    mock_prober = AsyncMock(spec=TargetProber)

    async def probe(target: Target) -> ProbeResult:
        if target.url == BAD_URL:
            raise ProbeError(target.url, "connection refused")
        return ProbeResult(url=target.url, status_code=200, duration=timedelta(milliseconds=3))

    mock_prober.probe.side_effect = probe
    return mock_prober


def _orchestrator(prober: TargetProber, urls: List[str], interval: str = "20ms") -> WatcherOrchestrator:
    return WatcherOrchestrator(
        urls=urls, interval=interval, timeout="10ms", port=0, prober=prober, host="127.0.0.1"
    )


@pytest.mark.parametrize(
    "interval, timeout, message",
    [
        ("asdf", "1s", "could not parse poll interval: asdf"),
        ("4ms", "ss43", "could not parse poll timeout: ss43"),
        ("0s", "1s", "poll interval must be a positive duration"),
    ],
)
def test_constructor_should_validate_durations(
    prober: AsyncMock, interval: str, timeout: str, message: str
) -> None:
    """
    Tests that invalid duration strings fail construction.
    """
    # Act & Assert
    with pytest.raises(ConfigurationError, match=message):
        WatcherOrchestrator([GOOD_URL], interval, timeout, 8080, prober)


def test_constructor_should_require_urls(prober: AsyncMock) -> None:
    """
    Tests that an empty URL list fails construction.
    """
    # Act & Assert
    with pytest.raises(ConfigurationError, match="must provide urls to watch"):
        WatcherOrchestrator([], "1s", "1s", 8080, prober)


@pytest.mark.parametrize("kwargs", [{"port": 70000}, {"port": -1}, {"queue_size": 0}])
def test_constructor_should_validate_port_and_queue_size(prober: AsyncMock, kwargs: dict) -> None:
    """
    Tests that out of range ports and queue sizes fail construction.
    """
    # Arrange
    arguments = {"urls": [GOOD_URL], "interval": "1s", "timeout": "1s", "port": 8080, "prober": prober}
    arguments.update(kwargs)

    # Act & Assert
    with pytest.raises(ConfigurationError):
        WatcherOrchestrator(**arguments)


def test_add_target_should_register_a_target(prober: AsyncMock) -> None:
    """
    Tests that adding a URL results in one more target sharing interval and timeout.
    """
    # Arrange
    orchestrator = WatcherOrchestrator([GOOD_URL], "1s", "500ms", 8080, prober)

    # Act
    target = orchestrator.add_target("http://other.example")

    # Assert
    assert target == Target(
        url="http://other.example",
        interval=timedelta(seconds=1),
        timeout=timedelta(milliseconds=500),
    )
    assert [t.url for t in orchestrator.targets] == [GOOD_URL, "http://other.example"]


def test_add_target_should_ignore_duplicates(prober: AsyncMock) -> None:
    """
    Tests that the URL is the unique key of a target.
    """
    # Arrange
    orchestrator = WatcherOrchestrator([GOOD_URL, GOOD_URL], "1s", "1s", 8080, prober)

    # Act
    target = orchestrator.add_target(f" {GOOD_URL} ")

    # Assert
    assert target is None
    assert len(orchestrator.targets) == 1


def test_add_target_should_reject_blank_urls(prober: AsyncMock) -> None:
    """
    Tests that blank URLs are a configuration error.
    """
    # Act & Assert
    with pytest.raises(ConfigurationError):
        WatcherOrchestrator([GOOD_URL, "  "], "1s", "1s", 8080, prober)


@pytest.mark.asyncio
async def test_hard_failure_should_only_stop_the_affected_runner(prober: AsyncMock) -> None:
    """
    Tests that a failing target is reported while the other targets keep polling.
    """
    # Arrange
    orchestrator = _orchestrator(prober, [GOOD_URL, BAD_URL])
    await orchestrator.start()

    # Act
    await asyncio.sleep(0.15)
    good_probes = sum(1 for call in prober.probe.await_args_list if call.args[0].url == GOOD_URL)
    bad_probes = sum(1 for call in prober.probe.await_args_list if call.args[0].url == BAD_URL)
    orchestrator.stop()
    errors = await asyncio.wait_for(orchestrator.wait(), timeout=2)

    # Assert
    assert bad_probes == 1
    assert good_probes >= 3
    assert list(errors) == [BAD_URL]
    assert isinstance(errors[BAD_URL], ProbeError)
    assert orchestrator.gauges.up(GOOD_URL) == 1
    assert orchestrator.gauges.up(BAD_URL) is None


@pytest.mark.asyncio
async def test_wait_should_return_when_every_runner_failed(prober: AsyncMock) -> None:
    """
    Tests that the orchestrator finishes on its own once no runner is left.
    """
    # Arrange
    orchestrator = _orchestrator(prober, [BAD_URL])

    # Act
    errors = await asyncio.wait_for(orchestrator.run(), timeout=2)

    # Assert
    assert list(errors) == [BAD_URL]


@pytest.mark.asyncio
async def test_stop_before_start_should_shut_down_immediately(prober: AsyncMock) -> None:
    """
    Tests that a stop requested before start() is honoured.
    """
    # Arrange
    orchestrator = _orchestrator(prober, [GOOD_URL], interval="10s")
    orchestrator.stop()

    # Act
    errors = await asyncio.wait_for(orchestrator.run(), timeout=2)

    # Assert
    assert errors == {}
    prober.probe.assert_not_awaited()


@pytest.mark.asyncio
async def test_shutdown_should_drain_every_forwarded_result(prober: AsyncMock) -> None:
    """
    Tests that every result produced before the shutdown reaches the gauges.
    """
    # Arrange
    orchestrator = _orchestrator(prober, [GOOD_URL, "http://second.example"])
    await orchestrator.start()
    await asyncio.sleep(0.1)

    # Act
    orchestrator.stop()
    await asyncio.wait_for(orchestrator.wait(), timeout=2)

    # Assert
    assert orchestrator._sink.processed == prober.probe.await_count
    assert orchestrator.gauges.up("http://second.example") == 1
    assert orchestrator.gauges.response_ms(GOOD_URL) == 3


@pytest.mark.asyncio
async def test_start_should_fail_when_port_is_taken(prober: AsyncMock) -> None:
    """
    Tests that a bind failure is fatal and starts nothing.
    """
    # Arrange
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
        occupied.bind(("127.0.0.1", 0))
        occupied.listen()
        orchestrator = WatcherOrchestrator(
            [GOOD_URL], "10ms", "5ms", occupied.getsockname()[1], prober, host="127.0.0.1"
        )

        # Act & Assert
        with pytest.raises(ExpositionError):
            await orchestrator.start()

    await asyncio.sleep(0.05)
    prober.probe.assert_not_awaited()
    with pytest.raises(RuntimeError, match="not started"):
        await orchestrator.wait()


@pytest.mark.asyncio
async def test_wait_should_raise_sink_error_when_sink_dies(prober: AsyncMock) -> None:
    """
    Tests that a crashed sink is fatal: runners are cancelled and SinkError is raised.
    """
    # Arrange
    orchestrator = WatcherOrchestrator(
        [GOOD_URL], "10ms", "5ms", 0, prober, host="127.0.0.1", queue_size=1
    )
    orchestrator._sink.run = AsyncMock(side_effect=RuntimeError("boom"))
    await orchestrator.start()

    # Act & Assert
    with pytest.raises(SinkError) as exc_info:
        await asyncio.wait_for(orchestrator.wait(), timeout=2)

    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest_asyncio.fixture
async def delayed_server() -> AsyncIterator[test_utils.TestServer]:
    """
    Starts a loopback server that answers 200 after 100ms and counts requests.
    """

    async def handler(request: web.Request) -> web.Response:
        request.app["hits"] += 1
        await asyncio.sleep(0.1)
        return web.Response(text="ok")

    app = web.Application()
    app["hits"] = 0
    app.add_routes([web.get("/", handler)])
    server = test_utils.TestServer(app, host="127.0.0.1")
    await server.start_server()
    yield server
    await server.close()


@pytest.mark.asyncio
async def test_watch_and_scrape_end_to_end(delayed_server: test_utils.TestServer) -> None:
    """
    Polls a 100ms endpoint every 200ms for 500ms: two probes, both exposed, then a clean stop.
    """
    # Arrange
    target_url = str(delayed_server.make_url("/"))
    async with aiohttp.ClientSession(trace_configs=[create_trace_config()]) as probe_session:
        orchestrator = WatcherOrchestrator(
            urls=[target_url],
            interval="200ms",
            timeout="2s",
            port=0,
            prober=AiohttpProber(probe_session),
            host="127.0.0.1",
        )
        await orchestrator.start()
        metrics_url = f"http://127.0.0.1:{orchestrator.metrics_port}/metrics"

        async with aiohttp.ClientSession() as scraper:
            # Act
            await asyncio.sleep(0.5)
            async with scraper.get(metrics_url) as response:
                status = response.status
                body = await response.text()
            hits = delayed_server.app["hits"]

            orchestrator.stop()
            errors = await asyncio.wait_for(orchestrator.wait(), timeout=3)

            # Assert
            assert status == 200
            assert f'sample_external_url_up{{url="{target_url}"}} 1.0' in body
            match = re.search(
                rf'sample_external_url_response_ms{{url="{re.escape(target_url)}"}} (\d+)\.0', body
            )
            assert match is not None
            assert 100 <= int(match.group(1)) < 1000
            assert hits == 2
            assert errors == {}

            with pytest.raises(aiohttp.ClientConnectionError):
                async with scraper.get(metrics_url, timeout=aiohttp.ClientTimeout(total=2)):
                    pass


@pytest.mark.asyncio
async def test_queue_monitor_should_warn_when_queue_is_nearly_full(
    prober: AsyncMock, caplog: pytest.LogCaptureFixture
) -> None:
    """
    Tests that a result queue stuck at capacity is reported and that the monitor ends with wait().
    """
    # Arrange
    caplog.set_level(logging.WARNING, logger="url_watcher.orchestrator")
    gate = asyncio.Event()

    async def blocked_process(result: ProbeResult) -> None:
        await gate.wait()

    processor = AsyncMock(spec=ResultProcessor)
    processor.process.side_effect = blocked_process
    orchestrator = WatcherOrchestrator(
        [GOOD_URL],
        "10s",
        "1s",
        0,
        prober,
        host="127.0.0.1",
        queue_size=2,
        queue_size_monitoring_interval=0.05,
    )
    orchestrator._sink._processor = processor
    await orchestrator.start()

    # Act
    # The sink takes the first result and blocks on it; two stay queued.
    for _ in range(3):
        await orchestrator._results.put(ProbeResult(url=GOOD_URL, status_code=200))
    await asyncio.sleep(0.2)
    gate.set()
    orchestrator.stop()
    await asyncio.wait_for(orchestrator.wait(), timeout=2)

    # Assert
    assert "Result queue size (2) is above 90% of capacity (2)" in caplog.messages
    assert orchestrator._monitor_task.done()
    assert processor.process.await_count == 3


@pytest.mark.asyncio
async def test_wait_should_refuse_a_second_call(prober: AsyncMock) -> None:
    """
    Tests that waiting again after the shutdown completed is rejected instead of reported as a sink failure.
    """
    # Arrange
    orchestrator = _orchestrator(prober, [GOOD_URL], interval="10s")
    await orchestrator.start()
    orchestrator.stop()
    await asyncio.wait_for(orchestrator.wait(), timeout=2)

    # Act & Assert
    with pytest.raises(RuntimeError, match="already waited"):
        await asyncio.wait_for(orchestrator.wait(), timeout=2)
