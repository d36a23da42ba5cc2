"""Shared fixtures for stat fetcher tests"""

from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest

from gitlab_stat_fetcher.config import FetcherConfig
from gitlab_stat_fetcher.gitlab_client import APICallStats, GitLabClient


def make_response(status_code=200, data=None, headers=None):
    """Build a mock requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.json.return_value = data if data is not None else []
    return response


@pytest.fixture
def mock_session():
    """Create a mock requests session."""
    with patch("gitlab_stat_fetcher.gitlab_client.requests.Session") as mock:
        yield mock.return_value


@pytest.fixture
def client(mock_session):
    """GitLabClient wired to the mock session."""
    client = GitLabClient("https://gitlab.example.com", "test-token")
    client._session = mock_session
    return client


@pytest.fixture
def mock_client():
    """Mock GitLabClient for components above the HTTP layer."""
    client = Mock(spec=GitLabClient)
    client.stats = APICallStats()
    return client


@pytest.fixture
def config(tmp_path):
    """Configuration writing into a temporary data folder."""
    return FetcherConfig(
        gitlab_base_url="https://gitlab.example.com",
        gitlab_token="test-token",
        output_dir=str(tmp_path / "data"),
        workers=2,
        since_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
