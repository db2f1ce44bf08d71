"""Results persistence and export for llmbench."""

from llmbench.results.exporters import export_results_csv, read_results_csv
from llmbench.results.store import ResultsStore

__all__ = [
    "ResultsStore",
    "export_results_csv",
    "read_results_csv",
]
