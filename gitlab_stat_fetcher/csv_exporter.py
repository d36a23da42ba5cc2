"""
CSV exporter - appends fetched records to per-resource CSV files.

Files are shared by every project of every run: rows are appended and the
header is written only while the file is still empty.
"""

from __future__ import annotations

import csv
import logging
import os
from pathlib import Path
from typing import Iterable, List, Sequence

from .errors import WriteError
from .models import Commit, MergeRequest, Note
from .utils import format_rfc3339, sanitize_text

logger = logging.getLogger(__name__)

COMMITS_FILENAME = "commits.csv"
MERGE_REQUESTS_FILENAME = "merge_requests.csv"
NOTES_FILENAME = "notes.csv"

COMMIT_COLUMNS = [
    "project_id", "id", "author_name", "author_email", "date", "message",
    "additions", "deletions", "total",
]
MERGE_REQUEST_COLUMNS = [
    "project_id", "mr_id", "title", "state", "author_username", "author_name",
    "created_at", "merged_at", "source_branch", "target_branch",
    "sha", "merge_commit_sha", "squash_commit_sha",
]
NOTE_COLUMNS = [
    "project_id", "note_id", "author_name", "author_username",
    "created_at", "updated_at", "body", "system",
]


def commit_row(commit: Commit) -> List[str]:
    return [
        str(commit.project_id),
        commit.id,
        commit.author_name,
        commit.author_email,
        format_rfc3339(commit.committed_date),
        sanitize_text(commit.message),
        str(commit.additions),
        str(commit.deletions),
        str(commit.total),
    ]


def merge_request_row(mr: MergeRequest) -> List[str]:
    return [
        str(mr.project_id),
        str(mr.id),
        mr.title,
        mr.state,
        mr.author_username,
        mr.author_name,
        format_rfc3339(mr.created_at),
        format_rfc3339(mr.merged_at),
        mr.source_branch,
        mr.target_branch,
        mr.sha,
        mr.merge_commit_sha,
        mr.squash_commit_sha,
    ]


def note_row(note: Note) -> List[str]:
    return [
        str(note.project_id),
        str(note.id),
        note.author_name,
        note.author_username,
        format_rfc3339(note.created_at),
        format_rfc3339(note.updated_at),
        sanitize_text(note.body),
        "true" if note.system else "false",
    ]


class CsvExporter:
    """
    Append records to commits.csv, merge_requests.csv and notes.csv.

    Usage:
        exporter = CsvExporter(output_dir)
        path = exporter.write_commits(commits)
    """

    def __init__(self, output_dir: Path):
        """
        Initialize CSV exporter.

        Args:
            output_dir: Directory holding the CSV files
        """
        self.output_dir = Path(output_dir)
        self.logger = logging.getLogger(f"{__name__}.CsvExporter")

    def _append(self, filename: str, header: Sequence[str], rows: Iterable[List[str]]) -> Path:
        """
        Append rows to a CSV file, writing the header only into an empty file.

        Returns:
            Path of the written file

        Raises:
            WriteError: If the file cannot be opened or written
        """
        path = self.output_dir / filename
        try:
            with open(path, "a", newline="", encoding="utf-8") as f:
                is_new = os.fstat(f.fileno()).st_size == 0
                writer = csv.writer(f, lineterminator="\n")
                if is_new:
                    writer.writerow(header)
                count = 0
                for row in rows:
                    writer.writerow(row)
                    count += 1
        except OSError as e:
            raise WriteError(f"Could not write {path}: {e}", path=str(path)) from e

        self.logger.debug(f"Appended {count} rows to {path}" + (" (with header)" if is_new else ""))
        return path

    def write_commits(self, commits: Iterable[Commit]) -> Path:
        return self._append(COMMITS_FILENAME, COMMIT_COLUMNS, (commit_row(c) for c in commits))

    def write_merge_requests(self, mrs: Iterable[MergeRequest]) -> Path:
        return self._append(
            MERGE_REQUESTS_FILENAME, MERGE_REQUEST_COLUMNS, (merge_request_row(m) for m in mrs)
        )

    def write_notes(self, notes: Iterable[Note]) -> Path:
        return self._append(NOTES_FILENAME, NOTE_COLUMNS, (note_row(n) for n in notes))
