"""
Orchestrator - Main fetch workflow controller.

Resolves input URLs, skips checkpointed projects, and runs the fetch phases
and CSV export for each remaining project, one project at a time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Sequence

from .checkpoint import FetchCheckpointStore
from .config import FetcherConfig, ensure_output_dir
from .csv_exporter import CsvExporter
from .errors import WriteError
from .fetcher import ResourceFetcher
from .gitlab_client import GitLabClient
from .models import Commit, MergeRequest, Note, Project
from .resolver import ProjectResolver
from .utils import format_duration

logger = logging.getLogger(__name__)

BANNER_WIDTH = 80
SUMMARY_WIDTH = 60
TARGET_SECONDS = 5 * 60


@dataclass
class ProjectResult:
    """Outcome of one project's fetch-and-write cycle."""
    project: Project
    commits: List[Commit] = field(default_factory=list)
    merge_requests: List[MergeRequest] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    write_errors: List[str] = field(default_factory=list)

    @property
    def within_target(self) -> bool:
        return self.elapsed_seconds <= TARGET_SECONDS


@dataclass
class RunSummary:
    """Outcome of a whole run."""
    projects_found: int = 0
    projects_skipped: int = 0
    results: List[ProjectResult] = field(default_factory=list)


class FetchOrchestrator:
    """
    Orchestrates the fetch process.

    Phases for a project run in order (commits, merge requests, discussions);
    only the work inside a phase is concurrent.
    """

    def __init__(self, config: FetcherConfig, client: GitLabClient | None = None):
        """
        Initialize the orchestrator.

        Args:
            config: Fetcher configuration
            client: Optional pre-built client (a new one is created otherwise)
        """
        self.config = config
        self.client = client
        self._owns_client = client is None
        self.store = FetchCheckpointStore(config.output_path)
        self.exporter = CsvExporter(config.output_path)

    def run(self, urls: Sequence[str]) -> RunSummary:
        """
        Run the fetch process for the given project/group URLs.

        Raises:
            ResolutionError: If any URL cannot be resolved
        """
        logger.info(f"Fetching data since: {self.config.since_date.strftime('%Y-%m-%d')}")
        ensure_output_dir(self.config)

        fetched = self.store.load()
        logger.info(f"Found {len(fetched)} already fetched projects")

        try:
            self._initialize()

            projects = self.resolve_projects(urls)
            to_fetch = [p for p in projects if p.id not in fetched]

            summary = RunSummary(
                projects_found=len(projects),
                projects_skipped=len(projects) - len(to_fetch),
            )
            if summary.projects_skipped:
                logger.info(f"Skipping {summary.projects_skipped} already fetched projects")

            for project in to_fetch:
                result = self.fetch_project(project)
                summary.results.append(result)
                self.store.mark_fetched(project.id, project.path_with_namespace)

            logger.info("=" * BANNER_WIDTH)
            logger.info(f"ALL PROJECTS COMPLETED! ({len(summary.results)} fetched)")
            logger.info("=" * BANNER_WIDTH)
            return summary

        finally:
            self._cleanup()

    def _initialize(self) -> None:
        if self.client is None:
            self.client = GitLabClient(
                base_url=self.config.gitlab_base_url,
                token=self.config.gitlab_token,
                timeout=self.config.timeout,
                verify_ssl=self.config.verify_ssl,
            )

    def _cleanup(self) -> None:
        if self.client is not None:
            stats = self.client.stats
            logger.info(
                f"API calls: {stats.total_calls} total, {stats.successful_calls} successful, "
                f"{stats.retried_calls} retried, {stats.failed_calls} failed"
            )
            if self._owns_client:
                self.client.close()
                self.client = None

    def resolve_projects(self, urls: Sequence[str]) -> List[Project]:
        """Resolve every URL in order; the first failure aborts the run."""
        resolver = ProjectResolver(self.client, self.config.gitlab_base_url)
        projects: List[Project] = []
        seen = set()
        for url in urls:
            for project in resolver.resolve_url(url):
                if project.id in seen:
                    continue
                seen.add(project.id)
                projects.append(project)
        return projects

    def fetch_project(self, project: Project) -> ProjectResult:
        """Fetch all resources of one project and append them to the CSV files."""
        logger.info("=" * BANNER_WIDTH)
        logger.info(f"Fetching: {project.path_with_namespace} (ID: {project.id})")
        logger.info("=" * BANNER_WIDTH)

        started = time.monotonic()
        fetcher = ResourceFetcher(self.client, self.config.workers, self.config.since_date)
        result = ProjectResult(project=project)

        result.commits = fetcher.fetch_commits(project.id)
        result.merge_requests = fetcher.fetch_merge_requests(project.id)

        if self.config.skip_discussions:
            logger.info("Skipping discussions (--skip-discussions flag set)")
        else:
            mr_iids = [mr.iid for mr in result.merge_requests]
            result.notes = fetcher.fetch_discussions(project.id, mr_iids)

        logger.info("Writing output files...")
        self._write(result, "commits", self.exporter.write_commits, result.commits)
        self._write(result, "MRs", self.exporter.write_merge_requests, result.merge_requests)
        if result.notes:
            self._write(result, "notes", self.exporter.write_notes, result.notes)

        result.elapsed_seconds = time.monotonic() - started
        self._log_summary(result)
        return result

    def _write(self, result: ProjectResult, label: str, write, records) -> None:
        try:
            path = write(records)
            logger.info(f"Saved: {path}")
        except WriteError as e:
            logger.error(f"Error writing {label}: {e}")
            result.write_errors.append(str(e))

    def _log_summary(self, result: ProjectResult) -> None:
        logger.info("=" * SUMMARY_WIDTH)
        logger.info("FETCH COMPLETE!")
        logger.info(f"Total time: {format_duration(result.elapsed_seconds)}")
        logger.info(f"Commits: {len(result.commits)}")
        logger.info(f"Merge Requests: {len(result.merge_requests)}")
        logger.info(f"Notes: {len(result.notes)}")
        logger.info("=" * SUMMARY_WIDTH)
        if result.within_target:
            logger.info("Completed within 5-minute target")
        else:
            logger.warning("Exceeded 5-minute target")


def run_fetch(config: FetcherConfig, urls: Sequence[str]) -> RunSummary:
    """
    Run the fetch process with the given configuration.

    Args:
        config: Fetcher configuration
        urls: Project or group URLs

    Returns:
        Run summary
    """
    orchestrator = FetchOrchestrator(config)
    return orchestrator.run(urls)
