"""Tests for throughput extraction from raw adapter outputs."""

from __future__ import annotations

import json

import pytest

from llmbench.core.metrics import (
    NO_RATE_FOUND,
    ZERO_RATE_REPORTED,
    compute_rate,
    extract_token_count,
    extract_tokens_per_second,
    parse_run_output,
)
from llmbench.domain.results import RawRunOutput, RunSource

LLAMA_BENCH_OUTPUT = """\
ggml_cuda_init: found 1 ROCm devices:
  Device 0: AMD Radeon Graphics, gfx1151 (0x1151), VMM: no, Wave Size: 32
| model                          |       size |     params | backend    | ngl | fa | mmap |            test |                  t/s |
| ------------------------------ | ---------: | ---------: | ---------- | --: | -: | ---: | --------------: | -------------------: |
| qwen3 8B Q4_K - Medium         |   4.68 GiB |     8.19 B | ROCm       |  99 |  1 |    0 |           pp512 |        123.45 ± 1.23 |
| qwen3 8B Q4_K - Medium         |   4.68 GiB |     8.19 B | ROCm       |  99 |  1 |    0 |           tg128 |         38.21 ± 0.05 |

build: 6d7b1d2 (6543)
"""  # noqa: E501

LLAMA_BENCH_ZERO = LLAMA_BENCH_OUTPUT.replace("123.45 ± 1.23", "0.00 ± 0.00")


def _container(text: str, duration: float = 12.0) -> RawRunOutput:
    return RawRunOutput(source=RunSource.CONTAINER, text=text, duration_seconds=duration)


def _remote(payload: object, duration: float = 2.0) -> RawRunOutput:
    return RawRunOutput(
        source=RunSource.REMOTE, text=json.dumps(payload), duration_seconds=duration
    )


# ---------------------------------------------------------------------------
# compute_rate
# ---------------------------------------------------------------------------


class TestComputeRate:
    def test_tokens_over_duration(self):
        assert compute_rate(100, 2.0) == pytest.approx(50.0)

    def test_zero_duration_is_zero_rate(self):
        assert compute_rate(100, 0.0) == 0.0

    def test_negligible_duration_is_zero_rate(self):
        assert compute_rate(100, 1e-12) == 0.0


# ---------------------------------------------------------------------------
# Text extraction
# ---------------------------------------------------------------------------


class TestExtraction:
    def test_first_inline_rate_wins(self):
        assert extract_tokens_per_second("pp512: 123.45 t/s\ntg128: 38.21 t/s") == 123.45

    def test_table_first_row_rate(self):
        assert extract_tokens_per_second(LLAMA_BENCH_OUTPUT) == pytest.approx(123.45)

    def test_table_header_without_rows(self):
        header = LLAMA_BENCH_OUTPUT.splitlines()[2]
        assert extract_tokens_per_second(header) is None

    def test_integer_rate(self):
        assert extract_tokens_per_second("tg128: 42 t/s") == 42.0

    def test_no_rate(self):
        assert extract_tokens_per_second("llama-bench: error loading model") is None

    def test_token_count(self):
        assert extract_token_count("prompt eval\ntokens: 512\n") == 512

    def test_token_count_missing(self):
        assert extract_token_count(LLAMA_BENCH_OUTPUT) is None


# ---------------------------------------------------------------------------
# Container outputs
# ---------------------------------------------------------------------------


class TestParseContainer:
    def test_rate_parsed(self):
        metrics = parse_run_output(_container("tg128: 123.45 t/s"))
        assert metrics.success is True
        assert metrics.tokens_per_second == pytest.approx(123.45)
        assert metrics.duration_seconds == 12.0

    def test_table_output(self):
        metrics = parse_run_output(_container(LLAMA_BENCH_OUTPUT))
        assert metrics.success is True
        assert metrics.tokens_per_second == pytest.approx(123.45)
        assert metrics.total_tokens == 0

    def test_token_count_carried(self):
        metrics = parse_run_output(_container("tokens: 128\n38.2 t/s"))
        assert metrics.total_tokens == 128

    def test_no_rate_is_failure(self):
        metrics = parse_run_output(_container("main: error: failed to load model"))
        assert metrics.success is False
        assert metrics.error == NO_RATE_FOUND
        assert metrics.tokens_per_second == 0.0
        assert metrics.total_tokens == 0

    def test_zero_rate_is_failure(self):
        metrics = parse_run_output(_container("tg128: 0.00 t/s"))
        assert metrics.success is False
        assert metrics.error == ZERO_RATE_REPORTED

    def test_zero_rate_in_table_is_failure(self):
        metrics = parse_run_output(_container(LLAMA_BENCH_ZERO))
        assert metrics.success is False
        assert metrics.error == ZERO_RATE_REPORTED

    def test_failure_messages_differ(self):
        assert NO_RATE_FOUND != ZERO_RATE_REPORTED

    def test_adapter_failure_wins_over_text(self):
        raw = RawRunOutput(
            source=RunSource.CONTAINER,
            text="123.45 t/s",
            duration_seconds=300.0,
            failure="Command timed out after 300s: toolbox run ...",
        )
        metrics = parse_run_output(raw)
        assert metrics.success is False
        assert "timed out" in metrics.error
        assert metrics.tokens_per_second == 0.0


# ---------------------------------------------------------------------------
# Remote outputs
# ---------------------------------------------------------------------------


class TestParseRemote:
    def test_rate_from_eval_count_and_duration(self):
        metrics = parse_run_output(_remote({"response": "AI is...", "eval_count": 100}))
        assert metrics.success is True
        assert metrics.total_tokens == 100
        assert metrics.tokens_per_second == pytest.approx(50.0)

    def test_missing_eval_count_is_zero_tokens(self):
        metrics = parse_run_output(_remote({"response": "AI is..."}))
        assert metrics.success is True
        assert metrics.total_tokens == 0
        assert metrics.tokens_per_second == 0.0

    @pytest.mark.parametrize("bad", [-3, "100", True, None])
    def test_invalid_eval_count_is_zero(self, bad):
        metrics = parse_run_output(_remote({"eval_count": bad}))
        assert metrics.total_tokens == 0

    def test_non_json_body_is_zero_tokens(self):
        raw = RawRunOutput(source=RunSource.REMOTE, text="<html>", duration_seconds=1.0)
        assert parse_run_output(raw).total_tokens == 0

    def test_rate_identity_holds(self):
        metrics = parse_run_output(_remote({"eval_count": 333}, duration=7.0))
        assert metrics.tokens_per_second == pytest.approx(
            metrics.total_tokens / metrics.duration_seconds
        )

    def test_transport_failure(self):
        raw = RawRunOutput(source=RunSource.REMOTE, failure="Request to ollama failed: refused")
        metrics = parse_run_output(raw)
        assert metrics.success is False
        assert metrics.error == "Request to ollama failed: refused"
        assert metrics.total_tokens == 0
