"""Data models for installed mods and remote repositories."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .utils import parse_iso_timestamp


class ModStatus(str, Enum):
    """Synchronization state of an installed mod."""

    UP_TO_DATE = "up_to_date"
    """Local branch matches its upstream"""

    BEHIND = "behind"
    """Upstream has commits the local branch lacks"""

    AHEAD = "ahead"
    """Local branch has commits the upstream lacks"""

    DIVERGED = "diverged"
    """Both sides have commits the other lacks"""

    LOCAL_CHANGES = "local_changes"
    """Working tree has uncommitted modifications"""

    NON_GIT = "non_git"
    """Plain folder that matches a catalog repository"""

    ERROR = "error"
    """Status could not be determined"""

    UNKNOWN = "unknown"
    """Detached checkout, no upstream to compare against"""


class ModSource(str, Enum):
    """How a mod folder was installed."""

    GIT = "git"
    LOCAL = "local"


@dataclass(frozen=True)
class CommitInfo:
    """A single commit parsed from git log output."""

    hash: str
    short_hash: str
    subject: str
    author: str
    date: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert commit to dictionary for JSON serialization."""
        return {
            "hash": self.hash,
            "short_hash": self.short_hash,
            "subject": self.subject,
            "author": self.author,
            "date": self.date.isoformat() if self.date else None,
        }


@dataclass(frozen=True)
class RemoteRepository:
    """Repository entry from the organization catalog."""

    name: str
    clone_url: str
    default_branch: str
    html_url: str
    description: Optional[str] = None
    topics: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RemoteRepository":
        """Create a RemoteRepository from a hosting API repository object.

        Args:
            data: Repository JSON object

        Returns:
            RemoteRepository instance
        """
        return cls(
            name=data["name"],
            clone_url=data.get("clone_url", ""),
            default_branch=data.get("default_branch") or "main",
            html_url=data.get("html_url", ""),
            description=data.get("description"),
            topics=tuple(data.get("topics") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert repository to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "clone_url": self.clone_url,
            "default_branch": self.default_branch,
            "html_url": self.html_url,
            "description": self.description,
            "topics": list(self.topics),
        }


@dataclass(frozen=True)
class InstalledMod:
    """A mod folder found in the mods directory.

    Instances are rebuilt on every scan and never updated in place.
    """

    name: str
    """Folder name"""

    path: str
    """Absolute path to the folder"""

    source: ModSource
    """Whether the folder is a git checkout or a plain folder"""

    status: ModStatus = ModStatus.UNKNOWN
    remote_url: Optional[str] = None
    branch: Optional[str] = None
    """Current branch, None when the checkout is detached"""

    current_commit: Optional[CommitInfo] = None
    commits_behind: int = 0
    commits_ahead: int = 0
    matched_repo_name: Optional[str] = None
    """Catalog repository this folder was matched to by name"""

    error_message: Optional[str] = None
    has_local_changes: bool = False
    is_workshop: bool = False
    """Plain folder downloaded from the Steam Workshop"""

    @property
    def is_git(self) -> bool:
        """True if the mod is a git checkout."""
        return self.source == ModSource.GIT

    def to_dict(self) -> dict[str, Any]:
        """Convert mod to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "path": self.path,
            "source": self.source.value,
            "status": self.status.value,
            "remote_url": self.remote_url,
            "branch": self.branch,
            "commit": self.current_commit.to_dict() if self.current_commit else None,
            "commits_behind": self.commits_behind,
            "commits_ahead": self.commits_ahead,
            "matched_repo_name": self.matched_repo_name,
            "error": self.error_message,
            "has_local_changes": self.has_local_changes,
            "workshop": self.is_workshop,
        }


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one item in a batch operation."""

    name: str
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for JSON serialization."""
        return {"name": self.name, "success": self.success, "error": self.error}


@dataclass(frozen=True)
class ReleaseInfo:
    """Release metadata from the hosting API."""

    tag_name: str
    name: str
    html_url: str
    published_at: Optional[datetime] = None
    prerelease: bool = False
    draft: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ReleaseInfo":
        """Create a ReleaseInfo from a hosting API release object."""
        return cls(
            tag_name=data.get("tag_name", ""),
            name=data.get("name") or data.get("tag_name", ""),
            html_url=data.get("html_url", ""),
            published_at=parse_iso_timestamp(data.get("published_at")),
            prerelease=bool(data.get("prerelease", False)),
            draft=bool(data.get("draft", False)),
        )


@dataclass
class InventorySummary:
    """Status counts for an inventory, used by the status line."""

    up_to_date: int = 0
    behind: int = 0
    local_changes: int = 0
    non_git: int = 0
    errors: int = 0
    names_behind: list[str] = field(default_factory=list)

    @classmethod
    def from_mods(cls, mods: list[InstalledMod]) -> "InventorySummary":
        """Count statuses across an inventory."""
        summary = cls()
        for mod in mods:
            if not mod.is_git:
                summary.non_git += 1
            elif mod.status == ModStatus.UP_TO_DATE:
                summary.up_to_date += 1
            elif mod.status == ModStatus.BEHIND:
                summary.behind += 1
                summary.names_behind.append(mod.name)
            elif mod.status == ModStatus.LOCAL_CHANGES:
                summary.local_changes += 1
            elif mod.status == ModStatus.ERROR:
                summary.errors += 1
        return summary
