"""Async client for the git command line.

Every operation runs git as a subprocess with an argument list, a bounded
timeout and interactive prompts disabled. Failures are reported through the
returned value (``None``, an empty list or a falsy ``GitResult``) rather than
raised, so callers decide whether to retry or give up. Cancelling the calling
task kills the running git process and all of its children before the
``CancelledError`` propagates.
"""

import asyncio
import logging
import os
import re
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from .models import CommitInfo
from .utils import (
    DEFAULT_CLONE_TIMEOUT,
    DEFAULT_GIT_TIMEOUT,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_INCOMING_LIMIT,
    parse_iso_timestamp,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]
MessageCallback = Callable[[str], None]
PercentCallback = Callable[[float], None]

# Fields: full hash, short hash, subject, author, ISO-8601 author date
COMMIT_FORMAT = "%H%n%h%n%s%n%an%n%aI"
RECORD_SEPARATOR = "---"

# Matches "Receiving objects:  45% (450/1000)" style progress lines
_PROGRESS_PATTERN = re.compile(
    r"^(?:(?P<phase>[^:]+):\s+)?(?P<percent>\d{1,3})%\s+\((?P<done>\d+)/(?P<total>\d+)\)"
)

# Share of the overall clone progress each git phase covers
_CLONE_PHASES = {
    "Receiving objects": (0.0, 80.0),
    "Resolving deltas": (80.0, 100.0),
}


@dataclass(frozen=True)
class GitResult:
    """Outcome of a git command.

    Truthy when the command exited with status 0, so boolean operations can
    return it directly while keeping stderr available for error messages.
    """

    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """True if git exited successfully."""
        return self.returncode == 0 and not self.timed_out

    @property
    def error(self) -> Optional[str]:
        """Human-readable failure reason, None on success."""
        if self.ok:
            return None
        if self.timed_out:
            return "Operation timed out or was cancelled"
        return self.stderr.strip() or f"git exited with status {self.returncode}"

    def __bool__(self) -> bool:
        return self.ok


class VersionControl(Protocol):
    """Repository queries and mutations used by the reconciliation engine.

    ``GitClient`` is the real implementation; tests substitute doubles that
    never spawn processes.
    """

    async def is_installed(self) -> bool: ...

    async def is_repository(self, path: PathLike) -> bool: ...

    async def remote_url(self, path: PathLike) -> Optional[str]: ...

    async def current_commit(self, path: PathLike) -> Optional[CommitInfo]: ...

    async def current_branch(self, path: PathLike) -> Optional[str]: ...

    async def ahead_behind(self, path: PathLike) -> tuple[int, int]: ...

    async def incoming_commits(
        self, path: PathLike, limit: int = DEFAULT_INCOMING_LIMIT
    ) -> list[CommitInfo]: ...

    async def commit_history(
        self, path: PathLike, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[CommitInfo]: ...

    async def fetch(
        self, path: PathLike, progress_callback: Optional[MessageCallback] = None
    ) -> GitResult: ...

    async def pull(
        self, path: PathLike, progress_callback: Optional[MessageCallback] = None
    ) -> GitResult: ...

    async def clone(
        self,
        url: str,
        target_path: PathLike,
        progress_callback: Optional[PercentCallback] = None,
    ) -> GitResult: ...

    async def remote_branches(self, path: PathLike) -> set[str]: ...

    async def checkout(self, path: PathLike, ref: str) -> GitResult: ...

    async def reset_hard(self, path: PathLike, commit_hash: str) -> GitResult: ...

    async def has_local_modifications(self, path: PathLike) -> bool: ...


def parse_commit_log(output: str) -> list[CommitInfo]:
    """Parse ``git log`` output written with COMMIT_FORMAT records.

    Records are separated by a line containing only ``---``. Records with
    fewer than five fields are skipped; an unparseable date yields
    ``date=None``.

    Args:
        output: Raw stdout from git log

    Returns:
        Commits in the order git printed them (newest first)
    """
    commits: list[CommitInfo] = []
    record: list[str] = []

    def flush() -> None:
        fields = [line.strip() for line in record]
        record.clear()
        while fields and not fields[0]:
            fields.pop(0)
        if len(fields) < 5:
            return
        commits.append(
            CommitInfo(
                hash=fields[0],
                short_hash=fields[1],
                subject=fields[2],
                author=fields[3],
                date=parse_iso_timestamp(fields[4]),
            )
        )

    for line in output.splitlines():
        if line.strip() == RECORD_SEPARATOR:
            flush()
        else:
            record.append(line)
    flush()

    return commits


class CloneProgressParser:
    """Turns git clone stderr lines into a monotonic 0-100 percentage."""

    def __init__(self, callback: PercentCallback):
        self.callback = callback
        self.last_percent = 0.0

    def feed(self, line: str) -> None:
        """Process one progress line from git."""
        match = _PROGRESS_PATTERN.search(line.strip())
        if not match:
            return

        percent = min(float(match.group("percent")), 100.0)
        phase = (match.group("phase") or "").strip()
        if phase in _CLONE_PHASES:
            start, end = _CLONE_PHASES[phase]
            percent = start + (end - start) * percent / 100.0
        elif phase:
            return

        if percent > self.last_percent:
            self.last_percent = percent
            self.callback(percent)


def _process_group_kwargs() -> dict:
    """Start git in its own process group so the whole tree can be killed."""
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _kill_process_tree(proc: asyncio.subprocess.Process) -> None:
    """Forcibly terminate a process and all of its descendants."""
    if proc.returncode is not None:
        return
    try:
        if os.name == "nt":
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
                capture_output=True,
                check=False,
            )
        else:
            os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        # Exited between the returncode check and the kill
        pass
    except OSError as e:
        logger.warning(f"Failed to kill git process tree {proc.pid}: {e}")
        proc.kill()


class GitClient:
    """Runs git commands asynchronously against local working copies.

    Examples:
        >>> git = GitClient()
        >>> branch = await git.current_branch("/mods/CoreMod")
        >>> behind, ahead = await git.ahead_behind("/mods/CoreMod")
    """

    def __init__(
        self,
        executable: str = "git",
        timeout: float = DEFAULT_GIT_TIMEOUT,
        clone_timeout: float = DEFAULT_CLONE_TIMEOUT,
        remote: str = "origin",
    ):
        """Initialize git client.

        Args:
            executable: git executable name or path
            timeout: Timeout for a single command in seconds (default: 30)
            clone_timeout: Timeout for clones in seconds (default: 300)
            remote: Remote whose branches are used as upstream (default: origin)
        """
        self.executable = executable
        self.timeout = timeout
        self.clone_timeout = clone_timeout
        self.remote = remote
        self._installed: Optional[bool] = None
        self._env = {
            **os.environ,
            "GIT_TERMINAL_PROMPT": "0",
            "GCM_INTERACTIVE": "never",
        }

    # =========================
    # Process handling
    # =========================

    async def run(
        self,
        args: list[str],
        cwd: PathLike = ".",
        timeout: Optional[float] = None,
        stderr_line_callback: Optional[Callable[[str], None]] = None,
    ) -> GitResult:
        """Run a git command and capture its output.

        Args:
            args: Arguments after the git executable
            cwd: Working directory
            timeout: Timeout in seconds (defaults to the client timeout)
            stderr_line_callback: Called with each stderr line (split on CR
                and LF) while the command runs

        Returns:
            GitResult with exit status and captured output. A command that
            exceeds the timeout is killed and reported with ``timed_out=True``.

        Raises:
            asyncio.CancelledError: If the calling task is cancelled; the git
                process tree is killed first.
        """
        timeout = self.timeout if timeout is None else timeout
        logger.debug(f"git {' '.join(args)} (cwd={cwd})")

        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=str(cwd),
                env=self._env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **_process_group_kwargs(),
            )
        except OSError as e:
            # Missing executable or working directory
            logger.debug(f"Could not start git: {e}")
            return GitResult(returncode=-1, stderr=str(e))

        try:
            if stderr_line_callback is None:
                stdout_bytes, stderr_bytes = await asyncio.wait_for(
                    proc.communicate(), timeout
                )
                stdout = stdout_bytes.decode("utf-8", errors="replace")
                stderr = stderr_bytes.decode("utf-8", errors="replace")
            else:
                stdout, stderr = await asyncio.wait_for(
                    self._communicate_streaming(proc, stderr_line_callback), timeout
                )
        except asyncio.TimeoutError:
            _kill_process_tree(proc)
            await proc.wait()
            logger.warning(f"git {args[0]} timed out after {timeout:.0f}s in {cwd}")
            return GitResult(
                returncode=-1,
                stderr="Operation timed out or was cancelled",
                timed_out=True,
            )
        except asyncio.CancelledError:
            _kill_process_tree(proc)
            logger.debug(f"git {args[0]} cancelled in {cwd}")
            await asyncio.shield(proc.wait())
            raise

        returncode = proc.returncode if proc.returncode is not None else -1
        result = GitResult(returncode=returncode, stdout=stdout, stderr=stderr)
        if not result.ok:
            logger.debug(f"git {args[0]} exited {result.returncode}: {stderr.strip()}")
        return result

    @staticmethod
    async def _communicate_streaming(
        proc: asyncio.subprocess.Process,
        line_callback: Callable[[str], None],
    ) -> tuple[str, str]:
        """Read stdout fully while feeding stderr lines to a callback."""
        assert proc.stdout is not None and proc.stderr is not None
        stderr_stream = proc.stderr

        async def read_stderr() -> str:
            chunks: list[str] = []
            pending = ""
            while True:
                data = await stderr_stream.read(1024)
                if not data:
                    break
                text = data.decode("utf-8", errors="replace")
                chunks.append(text)
                *lines, pending = re.split(r"[\r\n]", pending + text)
                for line in lines:
                    if line:
                        line_callback(line)
            if pending:
                line_callback(pending)
            return "".join(chunks)

        stdout_bytes, stderr = await asyncio.gather(proc.stdout.read(), read_stderr())
        await proc.wait()
        return stdout_bytes.decode("utf-8", errors="replace"), stderr

    # =========================
    # Queries
    # =========================

    async def is_installed(self) -> bool:
        """Check whether the git executable can be run (cached)."""
        if self._installed is None:
            result = await self.run(["--version"])
            self._installed = result.ok
        return self._installed

    async def is_repository(self, path: PathLike) -> bool:
        """Check whether path is the top level of a git working tree.

        A plain folder nested inside some other repository is not treated
        as a repository of its own.
        """
        result = await self.run(["rev-parse", "--show-toplevel"], cwd=path)
        if not result.ok:
            return False
        toplevel = result.stdout.strip()
        if not toplevel:
            return False
        try:
            return Path(toplevel).resolve() == Path(path).resolve()
        except OSError:
            return False

    async def remote_url(self, path: PathLike) -> Optional[str]:
        """Get the URL of the configured remote, None if there is none."""
        result = await self.run(["remote", "get-url", self.remote], cwd=path)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    async def current_commit(self, path: PathLike) -> Optional[CommitInfo]:
        """Get the commit HEAD points at."""
        result = await self.run(["log", "-1", f"--format={COMMIT_FORMAT}"], cwd=path)
        if not result.ok:
            return None
        commits = parse_commit_log(result.stdout)
        return commits[0] if commits else None

    async def current_branch(self, path: PathLike) -> Optional[str]:
        """Get the checked out branch name, None for a detached HEAD."""
        result = await self.run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=path)
        if not result.ok:
            return None
        branch = result.stdout.strip()
        if not branch or branch == "HEAD":
            return None
        return branch

    async def ahead_behind(self, path: PathLike) -> tuple[int, int]:
        """Count commits between HEAD and ``<remote>/<branch>``.

        Returns:
            Tuple of (behind, ahead). (0, 0) when HEAD is detached or the
            upstream branch does not exist.
        """
        branch = await self.current_branch(path)
        if branch is None:
            return (0, 0)

        result = await self.run(
            [
                "rev-list",
                "--left-right",
                "--count",
                f"{self.remote}/{branch}...HEAD",
            ],
            cwd=path,
        )
        if not result.ok:
            return (0, 0)

        parts = result.stdout.split()
        if len(parts) != 2:
            return (0, 0)
        try:
            return (int(parts[0]), int(parts[1]))
        except ValueError:
            return (0, 0)

    async def incoming_commits(
        self, path: PathLike, limit: int = DEFAULT_INCOMING_LIMIT
    ) -> list[CommitInfo]:
        """List commits on the upstream branch that HEAD does not contain."""
        branch = await self.current_branch(path)
        if branch is None:
            return []

        result = await self.run(
            [
                "log",
                f"HEAD..{self.remote}/{branch}",
                f"--format={COMMIT_FORMAT}%n{RECORD_SEPARATOR}",
                "-n",
                str(limit),
            ],
            cwd=path,
        )
        if not result.ok:
            return []
        return parse_commit_log(result.stdout)

    async def commit_history(
        self, path: PathLike, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[CommitInfo]:
        """List the most recent commits reachable from HEAD."""
        result = await self.run(
            ["log", f"--format={COMMIT_FORMAT}%n{RECORD_SEPARATOR}", "-n", str(limit)],
            cwd=path,
        )
        if not result.ok:
            return []
        return parse_commit_log(result.stdout)

    async def remote_branches(self, path: PathLike) -> set[str]:
        """List remote branch names without the remote prefix."""
        result = await self.run(["branch", "-r"], cwd=path)
        if not result.ok:
            return set()

        branches: set[str] = set()
        for line in result.stdout.splitlines():
            name = line.strip()
            # Skip the symbolic "origin/HEAD -> origin/main" entry
            if not name or "->" in name:
                continue
            if "/" in name:
                name = name.split("/", 1)[1]
            branches.add(name)
        return branches

    async def has_local_modifications(self, path: PathLike) -> bool:
        """Check for uncommitted changes, including untracked files."""
        result = await self.run(["status", "--porcelain"], cwd=path)
        return result.ok and bool(result.stdout.strip())

    # =========================
    # Mutations
    # =========================

    async def fetch(
        self, path: PathLike, progress_callback: Optional[MessageCallback] = None
    ) -> GitResult:
        """Fetch all remotes and prune deleted branches."""
        if progress_callback:
            progress_callback("Fetching from remote...")
        result = await self.run(["fetch", "--all", "--prune"], cwd=path)
        if not result and progress_callback:
            progress_callback(f"Fetch failed: {result.error}")
        return result

    async def pull(
        self, path: PathLike, progress_callback: Optional[MessageCallback] = None
    ) -> GitResult:
        """Fast-forward the current branch; fails instead of merging."""
        if progress_callback:
            progress_callback("Pulling changes...")
        result = await self.run(["pull", "--ff-only"], cwd=path)
        if not result and progress_callback:
            progress_callback(f"Pull failed: {result.error}")
        return result

    async def clone(
        self,
        url: str,
        target_path: PathLike,
        progress_callback: Optional[PercentCallback] = None,
    ) -> GitResult:
        """Clone a repository into target_path.

        Args:
            url: Clone URL
            target_path: Folder to create; its parent is created if missing
            progress_callback: Optional callback receiving 0-100 progress

        Returns:
            GitResult of the clone
        """
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)

        parser = CloneProgressParser(progress_callback) if progress_callback else None
        result = await self.run(
            ["clone", "--progress", url, target.name],
            cwd=target.parent,
            timeout=self.clone_timeout,
            stderr_line_callback=parser.feed if parser else None,
        )
        if result and progress_callback:
            progress_callback(100.0)
        return result

    async def checkout(self, path: PathLike, ref: str) -> GitResult:
        """Check out a branch or commit and update submodules."""
        if ref.startswith("-"):
            return GitResult(returncode=-1, stderr=f"Invalid ref: {ref}")
        result = await self.run(["checkout", ref], cwd=path)
        if not result:
            return result
        return await self._update_submodules(path)

    async def reset_hard(self, path: PathLike, commit_hash: str) -> GitResult:
        """Reset the current branch to a commit and update submodules."""
        if commit_hash.startswith("-"):
            return GitResult(returncode=-1, stderr=f"Invalid commit: {commit_hash}")
        result = await self.run(["reset", "--hard", commit_hash], cwd=path)
        if not result:
            return result
        return await self._update_submodules(path)

    async def _update_submodules(self, path: PathLike) -> GitResult:
        return await self.run(
            ["submodule", "update", "--init", "--recursive"], cwd=path
        )
