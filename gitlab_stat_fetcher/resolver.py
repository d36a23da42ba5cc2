"""
Project resolution - turns project or group URLs into a list of projects.

A URL naming a project resolves to that project. A URL naming a group
resolves to the projects of each direct subgroup followed by the group's own
projects. Deeper subgroups (a subgroup's subgroups) are not expanded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List
from urllib.parse import urlparse

from .errors import ResolutionError, ValidationError
from .gitlab_client import GitLabClient, GitLabClientError
from .models import Project

logger = logging.getLogger(__name__)


def extract_path(input_url: str, base_url: str) -> str:
    """
    Extract the namespace path from a GitLab project or group URL.

    Args:
        input_url: e.g. "https://gitlab.example.com/group/project"
        base_url: Configured GitLab URL; its host must match

    Returns:
        Path without leading/trailing slashes, e.g. "group/project"

    Raises:
        ValidationError: If the URL is malformed or on a different host
    """
    try:
        parsed = urlparse(input_url)
        parsed_base = urlparse(base_url)
    except ValueError as e:
        raise ValidationError(f"invalid URL: {e}", url=input_url) from e

    if not parsed.netloc:
        raise ValidationError(f"invalid URL: {input_url!r} has no host", url=input_url)

    if parsed.netloc.lower() != parsed_base.netloc.lower():
        raise ValidationError(
            f"URL host {parsed.netloc} does not match GitLab base URL {parsed_base.netloc}",
            url=input_url,
        )

    path = parsed.path
    # Web UI links such as group/project/-/merge_requests
    if "/-/" in path:
        path = path.split("/-/", 1)[0]
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]

    if not path:
        raise ValidationError(f"URL {input_url} does not name a project or group", url=input_url)
    return path


class ProjectResolver:
    """
    Resolves input URLs to GitLab projects.

    Any lookup or listing failure aborts resolution of that URL with
    ResolutionError.
    """

    def __init__(self, client: GitLabClient, base_url: str):
        """
        Initialize the resolver.

        Args:
            client: GitLab API client
            base_url: Configured GitLab URL, used for host validation
        """
        self.client = client
        self.base_url = base_url

    def resolve_url(self, url: str) -> List[Project]:
        """Validate a URL and resolve it to its projects."""
        path = extract_path(url, self.base_url)
        projects = self.resolve(path)
        logger.info(f"Resolved {url} to {len(projects)} project(s)")
        return projects

    def resolve(self, path: str) -> List[Project]:
        """
        Resolve a namespace path as a project, falling back to a group.

        Args:
            path: Project or group path with namespace

        Returns:
            One project, or every project found for the group
        """
        try:
            project = self.client.get_project(path)
            return [Project.from_api(project)]
        except GitLabClientError as e:
            logger.debug(f"{path} is not a project ({e}), trying as a group")

        try:
            group = self.client.get_group(path)
        except GitLabClientError as e:
            raise ResolutionError(f"error fetching group {path}: {e}", url=path) from e

        return self._group_projects(group)

    def _group_projects(self, group: Dict[str, Any]) -> List[Project]:
        """List projects of the group's direct subgroups, then the group's own."""
        group_id = group["id"]
        group_path = group.get("full_path", group_id)
        projects: List[Project] = []

        try:
            subgroups = list(self.client.iter_subgroups(group_id))
        except GitLabClientError as e:
            raise ResolutionError(f"error fetching list subgroups of {group_path}: {e}") from e

        for subgroup in subgroups:
            subgroup_projects = self._list_projects(subgroup["id"], subgroup.get("full_path"))
            logger.debug(f"Subgroup {subgroup.get('full_path')}: {len(subgroup_projects)} projects")
            projects.extend(subgroup_projects)

        projects.extend(self._list_projects(group_id, group_path))
        logger.info(f"Group {group_path}: {len(subgroups)} subgroups, {len(projects)} projects")
        return projects

    def _list_projects(self, group_id: int, group_path: Any = None) -> List[Project]:
        try:
            return [Project.from_api(p) for p in self.client.iter_group_projects(group_id)]
        except GitLabClientError as e:
            raise ResolutionError(
                f"error fetching list projects of group {group_path or group_id}: {e}"
            ) from e
