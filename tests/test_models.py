"""Tests for record parsing and formatting helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from gitlab_stat_fetcher.models import Commit, MergeRequest, Note, Project
from gitlab_stat_fetcher.utils import format_duration, format_rfc3339, parse_iso, sanitize_text


class TestParseIso:

    def test_zulu(self):
        """Test a Z suffix parses as UTC."""
        assert parse_iso("2024-03-01T10:15:00.000Z") == datetime(2024, 3, 1, 10, 15, tzinfo=timezone.utc)

    def test_offset(self):
        """Test an explicit offset is kept."""
        parsed = parse_iso("2024-03-01T10:15:00.000+02:00")
        assert parsed.utcoffset() == timedelta(hours=2)

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing(self, value):
        """Test missing timestamps give None."""
        assert parse_iso(value) is None


class TestFormatRfc3339:

    def test_utc_uses_z(self):
        """Test UTC is written with Z and no fraction."""
        value = datetime(2024, 3, 1, 10, 15, 30, 999999, tzinfo=timezone.utc)
        assert format_rfc3339(value) == "2024-03-01T10:15:30Z"

    def test_offset_kept(self):
        """Test non-UTC offsets are written as-is."""
        value = datetime(2024, 3, 1, 10, 15, tzinfo=timezone(timedelta(hours=-5)))
        assert format_rfc3339(value) == "2024-03-01T10:15:00-05:00"

    def test_none(self):
        """Test None formats as an empty string."""
        assert format_rfc3339(None) == ""


def test_sanitize_text():
    """Test each line break becomes one space."""
    assert sanitize_text("line1\nline2\r\n") == "line1 line2  "
    assert sanitize_text(None) == ""


def test_format_duration():
    """Test seconds and minutes formatting."""
    assert format_duration(2.5) == "2.5s"
    assert format_duration(65) == "1m 5.0s"


class TestFromApi:
    """Test building records from API payloads"""

    def test_project(self):
        """Test project ids are coerced to int."""
        project = Project.from_api({"id": "12", "path_with_namespace": "a/b", "name": "b"})
        assert project == Project(id=12, path_with_namespace="a/b")

    def test_commit_without_stats(self):
        """Test missing stats and message default to zero and empty."""
        commit = Commit.from_api(3, {"id": "abc", "message": None, "stats": None})

        assert (commit.additions, commit.deletions, commit.total) == (0, 0, 0)
        assert commit.message == ""
        assert commit.committed_date is None

    def test_merge_request_missing_shas(self):
        """Test null SHAs and author become empty strings."""
        mr = MergeRequest.from_api(3, {
            "id": 1, "iid": 2, "title": "x", "state": "opened", "author": None,
            "sha": None, "merge_commit_sha": None, "squash_commit_sha": None,
        })

        assert mr.project_id == 3
        assert (mr.sha, mr.merge_commit_sha, mr.squash_commit_sha) == ("", "", "")
        assert mr.author_username == ""

    def test_note_system_flag(self):
        """Test system notes keep their flag."""
        note = Note.from_api(3, {"id": 4, "body": "changed title", "system": True,
                                 "author": {"name": "Bot", "username": "bot"}})

        assert note.system is True
        assert note.project_id == 3
        assert note.author_username == "bot"
