"""Tests for URL parsing and project/group resolution"""

import pytest

from gitlab_stat_fetcher.errors import ResolutionError, ValidationError
from gitlab_stat_fetcher.gitlab_client import GitLabClientError
from gitlab_stat_fetcher.models import Project
from gitlab_stat_fetcher.resolver import ProjectResolver, extract_path

BASE_URL = "https://gitlab.example"


class TestExtractPath:
    """Test path extraction and host validation"""

    def test_project_url(self):
        """Test a plain project URL."""
        assert extract_path("https://gitlab.example/group/proj", BASE_URL) == "group/proj"

    def test_trailing_slash(self):
        """Test trailing slashes are stripped."""
        assert extract_path("https://gitlab.example/group/sub/", BASE_URL) == "group/sub"

    def test_web_ui_suffix_dropped(self):
        """Test /-/ web UI suffixes are dropped."""
        url = "https://gitlab.example/group/proj/-/merge_requests/4"
        assert extract_path(url, BASE_URL) == "group/proj"

    def test_clone_url_suffix_dropped(self):
        """Test a .git suffix is dropped."""
        assert extract_path("https://gitlab.example/group/proj.git", BASE_URL) == "group/proj"

    def test_host_mismatch(self):
        """Test a URL on another host is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            extract_path("https://other.example/group/proj", BASE_URL)

        assert "does not match" in str(exc_info.value)

    def test_no_host(self):
        """Test a URL without a host is rejected."""
        with pytest.raises(ValidationError):
            extract_path("group/proj", BASE_URL)

    def test_no_path(self):
        """Test a URL without a path is rejected."""
        with pytest.raises(ValidationError):
            extract_path("https://gitlab.example/", BASE_URL)

    def test_validation_error_is_resolution_error(self):
        """Test validation errors are resolution errors."""
        assert issubclass(ValidationError, ResolutionError)


def _project(pid, path):
    return {"id": pid, "path_with_namespace": path, "name": path.rsplit("/", 1)[-1]}


class TestProjectResolver:
    """Test project-first, group-fallback resolution"""

    def test_single_project(self, mock_client):
        """Test a project URL resolves to that project."""
        mock_client.get_project.return_value = _project(1, "group/proj")
        resolver = ProjectResolver(mock_client, BASE_URL)

        projects = resolver.resolve_url("https://gitlab.example/group/proj")

        assert projects == [Project(id=1, path_with_namespace="group/proj")]
        mock_client.get_project.assert_called_once_with("group/proj")
        mock_client.get_group.assert_not_called()

    def test_host_mismatch_makes_no_api_calls(self, mock_client):
        """Test a bad host fails before any request."""
        resolver = ProjectResolver(mock_client, BASE_URL)

        with pytest.raises(ValidationError):
            resolver.resolve_url("https://evil.example/group/proj")

        assert mock_client.method_calls == []

    def test_group_lists_subgroup_projects_then_own(self, mock_client):
        """Test group order: subgroup projects, then own."""
        mock_client.get_project.side_effect = GitLabClientError("404 Project Not Found", status_code=404)
        mock_client.get_group.return_value = {"id": 10, "full_path": "group"}
        mock_client.iter_subgroups.return_value = iter([
            {"id": 11, "full_path": "group/a"},
            {"id": 12, "full_path": "group/b"},
        ])
        group_projects = {
            10: [_project(1, "group/top")],
            11: [_project(2, "group/a/one"), _project(3, "group/a/two")],
            12: [],
        }
        mock_client.iter_group_projects.side_effect = lambda gid: iter(group_projects[gid])
        resolver = ProjectResolver(mock_client, BASE_URL)

        projects = resolver.resolve("group")

        assert [p.id for p in projects] == [2, 3, 1]
        mock_client.iter_subgroups.assert_called_once_with(10)

    def test_nested_subgroups_not_expanded(self, mock_client):
        """Only direct subgroups are listed; their own subgroups are not."""
        mock_client.get_project.side_effect = GitLabClientError("not found", status_code=404)
        mock_client.get_group.return_value = {"id": 10, "full_path": "group"}
        mock_client.iter_subgroups.side_effect = lambda gid: iter(
            [{"id": 11, "full_path": "group/a"}] if gid == 10 else [{"id": 99, "full_path": "group/a/deep"}]
        )
        mock_client.iter_group_projects.side_effect = lambda gid: iter([_project(gid, f"p{gid}")])
        resolver = ProjectResolver(mock_client, BASE_URL)

        projects = resolver.resolve("group")

        assert [p.id for p in projects] == [11, 10]
        mock_client.iter_subgroups.assert_called_once_with(10)

    def test_group_lookup_failure(self, mock_client):
        """Test a missing group raises."""
        mock_client.get_project.side_effect = GitLabClientError("not found", status_code=404)
        mock_client.get_group.side_effect = GitLabClientError("not found", status_code=404)
        resolver = ProjectResolver(mock_client, BASE_URL)

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve("missing")

        assert "error fetching group" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, GitLabClientError)

    def test_subgroup_listing_failure(self, mock_client):
        """Test a failed subgroup listing raises."""
        mock_client.get_project.side_effect = GitLabClientError("not found", status_code=404)
        mock_client.get_group.return_value = {"id": 10, "full_path": "group"}
        mock_client.iter_subgroups.side_effect = GitLabClientError("boom", status_code=500)
        resolver = ProjectResolver(mock_client, BASE_URL)

        with pytest.raises(ResolutionError):
            resolver.resolve("group")

    def test_project_listing_failure(self, mock_client):
        """Test a failed project listing raises."""
        def failing(gid):
            raise GitLabClientError("forbidden", status_code=403)
            yield  # pragma: no cover

        mock_client.get_project.side_effect = GitLabClientError("not found", status_code=404)
        mock_client.get_group.return_value = {"id": 10, "full_path": "group"}
        mock_client.iter_subgroups.return_value = iter([])
        mock_client.iter_group_projects.side_effect = failing
        resolver = ProjectResolver(mock_client, BASE_URL)

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve("group")

        assert "error fetching list projects" in str(exc_info.value)
