"""Flat-file (CSV) export of benchmark results."""

from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from loguru import logger

from llmbench.constants import CSV_HEADER
from llmbench.domain.results import BenchmarkResult

__all__ = ["export_results_csv", "read_results_csv", "result_to_row"]


def result_to_row(result: BenchmarkResult) -> dict[str, Any]:
    """One CSV row: rate and duration with two decimals, Status Success/Failed."""
    return {
        "Model": result.model,
        "Tokens Per Second": f"{result.tokens_per_second:.2f}",
        "Total Tokens": result.total_tokens,
        "Duration (s)": f"{result.duration_seconds:.2f}",
        "Timestamp": result.timestamp.isoformat(),
        "Status": result.status,
    }


def export_results_csv(results: Iterable[BenchmarkResult], output_path: Path) -> Path:
    """Write results to ``output_path`` (overwriting it).

    Args:
        results: Results to export, in the order they should appear.
        output_path: Destination CSV file.

    Returns:
        Path to the written file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    rows = [result_to_row(r) for r in results]

    with output_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_HEADER)
        writer.writeheader()
        writer.writerows(rows)

    logger.info(f"Exported {len(rows)} results to {output_path}")
    return output_path


def read_results_csv(path: Path) -> list[dict[str, str]]:
    """Read a CSV written by ``export_results_csv`` back into row dicts."""
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))
