"""
GitLab Stat Fetcher - Exports commits, merge requests and MR notes to CSV.

Resolves project and group URLs, fetches each project's data with a pool of
worker threads, and appends normalized rows to per-resource CSV files.
Only read operations are performed against GitLab.
"""

__version__ = "0.1.0"

from .checkpoint import FetchCheckpointStore
from .config import FetcherConfig
from .csv_exporter import CsvExporter
from .gitlab_client import GitLabClient
from .orchestrator import run_fetch

__all__ = [
    "CsvExporter",
    "FetchCheckpointStore",
    "FetcherConfig",
    "GitLabClient",
    "run_fetch",
    "__version__",
]
