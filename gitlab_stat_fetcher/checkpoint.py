"""
Fetch checkpoint store.

Keeps a flat, append-only index of projects whose full fetch cycle has
completed, so repeated runs skip them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Set

logger = logging.getLogger(__name__)


class FetchCheckpointStore:
    """
    Append-only index of fully fetched projects.

    Each line of the index file is ``<project id> <project path>``. Only the
    id is used for skipping; the path is kept for operators reading the file.

    Writes happen on the controlling thread after a project's fetch-and-write
    cycle, never concurrently, so no locking is done.

    Usage:
        store = FetchCheckpointStore(output_dir)
        fetched = store.load()
        if project.id not in fetched:
            # Fetch and export project
            store.mark_fetched(project.id, project.path_with_namespace)
    """

    INDEX_FILENAME = ".fetched_projects"

    def __init__(self, output_dir: Path):
        """
        Initialize checkpoint store.

        Args:
            output_dir: Directory holding the index file
        """
        self.output_dir = Path(output_dir)
        self.logger = logging.getLogger(f"{__name__}.FetchCheckpointStore")

    @property
    def index_path(self) -> Path:
        return self.output_dir / self.INDEX_FILENAME

    def load(self) -> Set[int]:
        """
        Load the ids of already fetched projects.

        A missing or unreadable file yields an empty set. Reading stops at the
        first malformed line; entries before it are kept. Undecodable bytes are
        replaced, so they only end the read when they fall in an id.

        Returns:
            Set of project ids
        """
        fetched: Set[int] = set()

        try:
            with open(self.index_path, "r", encoding="utf-8", errors="replace") as f:
                for line_no, line in enumerate(f, 1):
                    if not line.strip():
                        continue
                    parts = line.split(maxsplit=1)
                    try:
                        fetched.add(int(parts[0]))
                    except ValueError:
                        self.logger.warning(
                            f"Malformed line {line_no} in {self.index_path}, ignoring the rest of the file"
                        )
                        break
        except FileNotFoundError:
            return fetched
        except OSError as e:
            self.logger.error(f"Failed to read fetched projects index: {e}")
            return fetched

        return fetched

    def mark_fetched(self, project_id: int, project_path: str) -> None:
        """
        Append a project to the index.

        Failures are logged and do not stop the run.

        Args:
            project_id: GitLab project ID
            project_path: Project path with namespace
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with open(self.index_path, "a", encoding="utf-8") as f:
                f.write(f"{project_id} {project_path}\n")
            self.logger.debug(f"Marked project {project_id} ({project_path}) as fetched")
        except OSError as e:
            self.logger.error(f"Error marking project as fetched: {e}")
