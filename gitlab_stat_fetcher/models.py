"""
Record types fetched from GitLab.

Each type is built from the raw API payload with ``from_api`` and is never
mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .utils import parse_iso


def _user(data: Dict[str, Any], key: str = "author") -> Dict[str, Any]:
    """Return the nested user object, or an empty dict when absent."""
    return data.get(key) or {}


@dataclass(frozen=True)
class Project:
    """A GitLab project."""
    id: int
    path_with_namespace: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> Project:
        """Create from a /projects payload."""
        return cls(
            id=int(data["id"]),
            path_with_namespace=data.get("path_with_namespace") or "",
        )


@dataclass(frozen=True)
class Commit:
    """A commit with line statistics."""
    project_id: int
    id: str
    author_name: str
    author_email: str
    committed_date: Optional[datetime]
    message: str
    additions: int = 0
    deletions: int = 0
    total: int = 0

    @classmethod
    def from_api(cls, project_id: int, data: Dict[str, Any]) -> Commit:
        """Create from a /repository/commits payload (requested with_stats)."""
        stats = data.get("stats") or {}
        return cls(
            project_id=project_id,
            id=data.get("id") or "",
            author_name=data.get("author_name") or "",
            author_email=data.get("author_email") or "",
            committed_date=parse_iso(data.get("committed_date")),
            message=data.get("message") or "",
            additions=int(stats.get("additions") or 0),
            deletions=int(stats.get("deletions") or 0),
            total=int(stats.get("total") or 0),
        )


@dataclass(frozen=True)
class MergeRequest:
    """
    A merge request.

    ``iid`` is the project-scoped number used to address the MR's discussions;
    ``id`` is the instance-wide identifier exported to CSV. SHA fields are empty
    strings when they do not apply to the MR's state.
    """
    project_id: int
    id: int
    iid: int
    title: str
    state: str
    author_username: str
    author_name: str
    created_at: Optional[datetime]
    merged_at: Optional[datetime]
    source_branch: str
    target_branch: str
    sha: str = ""
    merge_commit_sha: str = ""
    squash_commit_sha: str = ""

    @classmethod
    def from_api(cls, project_id: int, data: Dict[str, Any]) -> MergeRequest:
        """Create from a /merge_requests payload."""
        author = _user(data)
        return cls(
            project_id=int(data.get("project_id") or project_id),
            id=int(data["id"]),
            iid=int(data["iid"]),
            title=data.get("title") or "",
            state=data.get("state") or "",
            author_username=author.get("username") or "",
            author_name=author.get("name") or "",
            created_at=parse_iso(data.get("created_at")),
            merged_at=parse_iso(data.get("merged_at")),
            source_branch=data.get("source_branch") or "",
            target_branch=data.get("target_branch") or "",
            sha=data.get("sha") or "",
            merge_commit_sha=data.get("merge_commit_sha") or "",
            squash_commit_sha=data.get("squash_commit_sha") or "",
        )


@dataclass(frozen=True)
class Note:
    """A single comment inside a merge request discussion."""
    project_id: int
    id: int
    author_name: str
    author_username: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    body: str
    system: bool = False

    @classmethod
    def from_api(cls, project_id: int, data: Dict[str, Any]) -> Note:
        """Create from a note inside a /discussions payload."""
        author = _user(data)
        return cls(
            # Discussion notes carry the project id only on some GitLab versions
            project_id=int(data.get("project_id") or project_id),
            id=int(data["id"]),
            author_name=author.get("name") or "",
            author_username=author.get("username") or "",
            created_at=parse_iso(data.get("created_at")),
            updated_at=parse_iso(data.get("updated_at")),
            body=data.get("body") or "",
            system=bool(data.get("system", False)),
        )
