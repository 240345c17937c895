"""DiagnosticSink unit tests."""

from __future__ import annotations

import asyncio

import pytest

from machine_env.runtime.sink import DiagnosticSink


class TestDiagnosticSink:
    """Single consumer, whole lines, bounded capture."""

    @pytest.mark.asyncio
    async def test_captures_stderr_in_order(self):
        async with DiagnosticSink(label="tool", warn_stderr=False) as sink:
            await sink.put("stderr", "first")
            await sink.put("stdout", "ignored for capture")
            await sink.put("stderr", "second")

        assert sink.text == "first\nsecond"

    @pytest.mark.asyncio
    async def test_concurrent_producers_never_split_lines(self):
        seen: list[str] = []

        async def produce(prefix: str) -> None:
            for i in range(200):
                await sink.put("stderr", f"{prefix}-{i}-{'x' * 50}")
                if i % 17 == 0:
                    await asyncio.sleep(0)

        async with DiagnosticSink(warn_stderr=False, on_stderr=seen.append, maxsize=8) as sink:
            await asyncio.gather(produce("a"), produce("b"))

        assert len(seen) == 400
        assert all(line.endswith("x" * 50) for line in seen)
        assert [line for line in seen if line.startswith("a-")] == [
            f"a-{i}-{'x' * 50}" for i in range(200)
        ]

    @pytest.mark.asyncio
    async def test_capture_drops_oldest_when_full(self):
        async with DiagnosticSink(warn_stderr=False, max_captured=20) as sink:
            for i in range(10):
                await sink.put("stderr", f"line{i}")

        assert sink.text.endswith("line9")
        assert "line0" not in sink.text
        assert len(sink.text) <= 20

    @pytest.mark.asyncio
    async def test_stderr_warning_and_stdout_debug(self, caplog):
        with caplog.at_level("DEBUG", logger="machine_env"):
            async with DiagnosticSink(label="docker-machine") as sink:
                await sink.put("stderr", "Error: no host")
                await sink.put("stdout", "verbose output")

        records = {r.getMessage(): r.levelname for r in caplog.records}
        assert records["[docker-machine] Error: no host"] == "WARNING"
        assert records["[docker-machine] verbose output"] == "DEBUG"

    @pytest.mark.asyncio
    async def test_callback_failure_does_not_stop_consumer(self):
        calls: list[str] = []

        def flaky(line: str) -> None:
            calls.append(line)
            if line == "bad":
                raise RuntimeError("callback broke")

        async with DiagnosticSink(warn_stderr=False, on_stderr=flaky) as sink:
            await sink.put("stderr", "bad")
            await sink.put("stderr", "good")

        assert calls == ["bad", "good"]
        assert sink.text == "bad\ngood"

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self):
        sink = DiagnosticSink(warn_stderr=False)
        sink.start()
        await sink.put("stderr", "once")
        await sink.aclose()
        await sink.aclose()

        assert sink.text == "once"
