"""Normalise raw adapter output into throughput metrics.

Pure functions only: every input is a ``RawRunOutput`` captured by an
adapter, so parsing can be tested against literal outputs.

Remote outputs are JSON bodies from ``/api/generate``; the token count is
``eval_count`` and the rate is computed from the measured wall-clock span.

Container outputs are free-form ``llama-bench`` text. The first inline
``<number> t/s`` figure is the rate; without one, the ``t/s`` column of the
first row of llama-bench's markdown table (``123.45 ± 1.23``) is used. The
first ``tokens: <n>`` figure is the token count. A run without a positive rate
counts as failed.
"""

from __future__ import annotations

import json
import re

from llmbench.constants import MIN_DURATION_SEC
from llmbench.domain.results import ParsedMetrics, RawRunOutput, RunSource

__all__ = [
    "NO_RATE_FOUND",
    "ZERO_RATE_REPORTED",
    "compute_rate",
    "extract_token_count",
    "extract_tokens_per_second",
    "parse_run_output",
]

# e.g. "tg128: 123.45 t/s"; the first match wins
_RATE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s+t/s", re.IGNORECASE)
_TOKENS_PATTERN = re.compile(r"tokens:\s*(\d+)", re.IGNORECASE)
# markdown table cell: mean with an optional "± stddev"
_TABLE_RATE_CELL = re.compile(r"^(\d+(?:\.\d+)?)(?:\s*±\s*\d+(?:\.\d+)?)?$")

NO_RATE_FOUND = "No throughput figure (t/s) found in benchmark output"
ZERO_RATE_REPORTED = "Benchmark reported zero throughput"


def compute_rate(total_tokens: int, duration_seconds: float) -> float:
    """Tokens per second, defined as 0 for a zero or near-zero duration."""
    if duration_seconds <= MIN_DURATION_SEC:
        return 0.0
    return total_tokens / duration_seconds


def _table_rate(text: str) -> float | None:
    column: int | None = None
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith("|"):
            continue
        cells = [cell.strip() for cell in line.strip("|").split("|")]
        if column is None:
            if "t/s" in cells:
                column = cells.index("t/s")
            continue
        if column >= len(cells) or set(cells[column]) <= set("-: "):
            continue
        match = _TABLE_RATE_CELL.match(cells[column])
        if match:
            return float(match.group(1))
    return None


def extract_tokens_per_second(text: str) -> float | None:
    match = _RATE_PATTERN.search(text)
    if match:
        return float(match.group(1))
    return _table_rate(text)


def extract_token_count(text: str) -> int | None:
    match = _TOKENS_PATTERN.search(text)
    return int(match.group(1)) if match else None


def _eval_count(body: str) -> int:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return 0
    if not isinstance(payload, dict):
        return 0
    count = payload.get("eval_count")
    if isinstance(count, int) and not isinstance(count, bool) and count >= 0:
        return count
    return 0


def _failed(raw: RawRunOutput, error: str) -> ParsedMetrics:
    return ParsedMetrics(duration_seconds=raw.duration_seconds, success=False, error=error)


def _parse_remote(raw: RawRunOutput) -> ParsedMetrics:
    total = _eval_count(raw.text)
    return ParsedMetrics(
        tokens_per_second=compute_rate(total, raw.duration_seconds),
        total_tokens=total,
        duration_seconds=raw.duration_seconds,
        success=True,
    )


def _parse_container(raw: RawRunOutput) -> ParsedMetrics:
    rate = extract_tokens_per_second(raw.text)
    if rate is None:
        return _failed(raw, NO_RATE_FOUND)
    if rate <= 0:
        return _failed(raw, ZERO_RATE_REPORTED)
    return ParsedMetrics(
        tokens_per_second=rate,
        total_tokens=extract_token_count(raw.text) or 0,
        duration_seconds=raw.duration_seconds,
        success=True,
    )


def parse_run_output(raw: RawRunOutput) -> ParsedMetrics:
    """Extract ``(tokens_per_second, total_tokens, duration, success)`` from a run.

    Transport and execution failures recorded by the adapter always produce
    failed metrics with zero rate and zero tokens.
    """
    if raw.failed:
        return _failed(raw, raw.failure or "run failed")
    if raw.source is RunSource.REMOTE:
        return _parse_remote(raw)
    return _parse_container(raw)
