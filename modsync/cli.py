"""CLI interface for keeping organization mods in sync."""

import asyncio
import dataclasses
import logging
from collections.abc import Coroutine, Sequence
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import click

from . import __version__
from .api import CatalogClient
from .cli_progress import BatchProgressDisplay, DiscoveryStatus
from .config import config
from .exceptions import ModSyncError, ModSyncGitNotFoundError, ModSyncNotFoundError
from .git import GitClient
from .models import BatchResult, InstalledMod, InventorySummary, ModSource
from .output import OutputFormatter
from .paths import discover_mod_paths
from .sync import (
    BatchExecutor,
    ModOperations,
    ReconciliationEngine,
    convertible_mods,
    failure_count,
    find_mod,
    find_mods,
    installable_repositories,
    list_mod_folders,
    updatable_mods,
)
from .update_check import check_for_update
from .utils import DEFAULT_HISTORY_LIMIT, DEFAULT_INCOMING_LIMIT, truncate

logger = logging.getLogger(__name__)

T = TypeVar("T")

GIT_INSTALL_HINT = (
    "Git is not installed or not found in PATH. "
    "Install it from https://git-scm.com/downloads and try again."
)


# =========================
# Helpers
# =========================


def resolve_mods_directory(directory: Optional[str], out: OutputFormatter) -> Path:
    """Pick the mods directory to work on.

    Order: the --directory option, the saved or environment setting,
    auto-discovery, and finally an interactive prompt.
    """
    if directory:
        return Path(directory).expanduser()

    saved = config.mods_directory
    if saved is not None:
        return saved

    found = discover_mod_paths()
    if found:
        if len(found) > 1:
            out.warning(
                f"Found {len(found)} mods folders, using {found[0]}. "
                "Pass --directory or run 'modsync init' to choose another."
            )
        return found[0]

    value = click.prompt(
        "Path to your RimWorld Mods folder",
        type=click.Path(exists=True, file_okay=False),
    )
    return Path(value)


def run_command(ctx: Any, coro: Coroutine[Any, Any, int]) -> None:
    """Run a command coroutine and turn its outcome into an exit code."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        exit_code = asyncio.run(coro)
    except (KeyboardInterrupt, asyncio.CancelledError):
        out.error("Operation cancelled.")
        ctx.exit(1)
    except ModSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        out.error(f"Unexpected error: {e}")
        ctx.exit(1)
    else:
        if exit_code:
            ctx.exit(exit_code)


def make_catalog(ctx: Any) -> CatalogClient:
    """Create a catalog client from the global options."""
    return CatalogClient(organization=ctx.obj["organization"], token=ctx.obj["token"])


async def require_git(git: GitClient) -> None:
    """Raise if git cannot be run."""
    if not await git.is_installed():
        raise ModSyncGitNotFoundError(GIT_INSTALL_HINT)


async def discover_mods(
    engine: ReconciliationEngine, mods_dir: Path, out: OutputFormatter
) -> list[InstalledMod]:
    """Scan the mods directory, with a spinner when output is interactive."""
    if out.quiet or out.json_output:
        return await engine.discover(mods_dir)

    with DiscoveryStatus(console=out.console) as status:
        return await engine.discover(mods_dir, progress_callback=status.update)


async def run_batch(
    out: OutputFormatter,
    description: str,
    items: Sequence[T],
    name_of: Callable[[T], str],
    operation: Callable,
) -> list[BatchResult]:
    """Run a batch with a progress display, reporting partial results on cancel."""
    if out.quiet or out.json_output:
        executor: BatchExecutor = BatchExecutor(description=description)
        return await executor.run_batch(items, name_of, operation)

    with BatchProgressDisplay(console=out.console) as display:
        executor = BatchExecutor(observer=display, description=description)
        try:
            return await executor.run_batch(items, name_of, operation)
        except asyncio.CancelledError:
            if executor.completed:
                out.batch_results(f"{description} (interrupted)", executor.completed)
            raise


async def find_git_mod(git: GitClient, mods_dir: Path, name: str) -> InstalledMod:
    """Locate a single mod folder by name without scanning the whole directory.

    Raises:
        ModSyncNotFoundError: If no folder has that name
        ModSyncError: If the folder is not a git checkout
    """
    folders = list_mod_folders(mods_dir)
    mods = [
        InstalledMod(name=f.name, path=str(f.resolve()), source=ModSource.LOCAL)
        for f in folders
    ]
    mod = find_mod(mods, name)
    if not await git.is_repository(mod.path):
        raise ModSyncError(f"{mod.name} is not a git repository")
    branch = await git.current_branch(mod.path)
    return dataclasses.replace(mod, source=ModSource.GIT, branch=branch)


def _batch_exit_code(results: Sequence[BatchResult]) -> int:
    return 1 if failure_count(results) else 0


# =========================
# Command group
# =========================


@click.group()
@click.option(
    "--directory",
    "-d",
    type=click.Path(file_okay=False),
    help="Mods directory (uses the saved directory if not specified)",
)
@click.option(
    "--organization",
    envvar="MODSYNC_ORGANIZATION",
    help="Organization whose repositories are the mod catalog",
)
@click.option(
    "--token", envvar="GITHUB_TOKEN", help="API token for a higher request quota"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="modsync")
@click.pass_context
def main(
    ctx: Any,
    directory: Optional[str],
    organization: Optional[str],
    token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """ModSync - Keep organization mods in sync with their git repositories."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["directory"] = directory
    ctx.obj["organization"] = organization or config.organization
    ctx.obj["token"] = token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("modsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("path", required=False, type=click.Path(file_okay=False))
@click.pass_context
def init(ctx: Any, path: Optional[str]) -> None:
    """Save the mods directory for future runs.

    PATH: Mods directory (auto-detected if omitted)
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        if path:
            mods_dir = Path(path)
        else:
            found = discover_mod_paths()
            if found:
                out.info(f"Found mods folder: {found[0]}")
                mods_dir = found[0]
                if len(found) > 1:
                    out.warning("Several mods folders found; pass PATH to choose.")
            else:
                mods_dir = Path(
                    click.prompt(
                        "Path to your RimWorld Mods folder",
                        type=click.Path(exists=True, file_okay=False),
                    )
                )

        config.save_mods_directory(mods_dir)
        out.print_summary(
            "Initialization Complete",
            [
                ("Mods directory", str(config.mods_directory)),
                ("Organization", ctx.obj["organization"]),
                ("Config file", str(config.get_config_path())),
            ],
        )
    except ModSyncError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)


# =========================
# Inventory
# =========================


@main.command()
@click.pass_context
def scan(ctx: Any) -> None:
    """Show the status of every organization mod."""
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _scan(ctx, mods_dir))


async def _scan(ctx: Any, mods_dir: Path) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    if not await git.is_installed():
        out.warning("git not found; only plain mod folders can be recognized.")

    catalog = make_catalog(ctx)
    try:
        engine = ReconciliationEngine(
            git, catalog, organization=ctx.obj["organization"], host=config.host
        )
        mods = await discover_mods(engine, mods_dir, out)
        out.mod_table(mods, catalog.rate_limit_remaining, catalog.rate_limit_reset)

        summary = InventorySummary.from_mods(mods)
        if summary.behind:
            out.info("Run 'modsync update' to update the mods that are behind.")

        if not out.quiet and not out.json_output:
            update = await check_for_update(catalog)
            if update is not None:
                out.warning(
                    f"modsync {update.latest_version} is available "
                    f"(you have {update.current_version}): {update.release_url}"
                )
    finally:
        await catalog.close()
    return 0


@main.command()
@click.pass_context
def available(ctx: Any) -> None:
    """List catalog repositories that are not installed."""
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _available(ctx, mods_dir))


async def _available(ctx: Any, mods_dir: Path) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    catalog = make_catalog(ctx)
    try:
        engine = ReconciliationEngine(
            git, catalog, organization=ctx.obj["organization"], host=config.host
        )
        mods = await discover_mods(engine, mods_dir, out)
        repositories = await catalog.organization_repositories()
    finally:
        await catalog.close()

    missing = installable_repositories(repositories, mods)
    if not missing:
        out.success("Every catalog mod is installed.")
        if out.json_output:
            out.output_json([])
        return 0

    out.output_table(
        [
            {
                "name": r.name,
                "description": truncate(r.description, 60),
                "url": r.html_url,
            }
            for r in missing
        ],
        ["name", "description", "url"],
        {"name": "Name", "description": "Description", "url": "URL"},
        title="Available Mods",
    )
    return 0


# =========================
# Batch operations
# =========================


@main.command()
@click.argument("names", nargs=-1)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option(
    "--show-commits", is_flag=True, help="List incoming commits before updating"
)
@click.pass_context
def update(ctx: Any, names: tuple[str, ...], yes: bool, show_commits: bool) -> None:
    """Update mods that are behind their repository.

    NAMES: Mods to update (defaults to every mod that is behind)
    """
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _update(ctx, mods_dir, names, yes, show_commits))


async def _update(
    ctx: Any,
    mods_dir: Path,
    names: tuple[str, ...],
    yes: bool,
    show_commits: bool,
) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    await require_git(git)

    catalog = make_catalog(ctx)
    try:
        engine = ReconciliationEngine(
            git, catalog, organization=ctx.obj["organization"], host=config.host
        )
        mods = await discover_mods(engine, mods_dir, out)

        if names:
            selected = []
            for mod in find_mods(mods, names):
                if mod.is_git:
                    selected.append(mod)
                else:
                    out.warning(f"{mod.name} is not a git checkout; try 'convert'.")
        else:
            selected = updatable_mods(mods)

        if not selected:
            out.success("All mods are up to date.")
            return 0

        incoming = None
        if show_commits:
            incoming = {}
            for mod in selected:
                incoming[mod.name] = await git.incoming_commits(
                    mod.path, DEFAULT_INCOMING_LIMIT
                )
            if not out.json_output:
                out.incoming_commits(incoming)

        if not yes and not click.confirm(
            f"Update {len(selected)} mod(s)?", default=True
        ):
            out.warning("Update cancelled.")
            return 0

        operations = ModOperations(git, catalog, mods_dir)
        results = await run_batch(
            out, "Updating", selected, lambda m: m.name, operations.update
        )
    finally:
        await catalog.close()

    out.batch_results("Update Results", results, incoming=incoming)
    return _batch_exit_code(results)


@main.command()
@click.argument("names", nargs=-1)
@click.option("--all", "install_all", is_flag=True, help="Install every missing mod")
@click.pass_context
def install(ctx: Any, names: tuple[str, ...], install_all: bool) -> None:
    """Clone catalog repositories into the mods directory.

    NAMES: Repositories to install
    """
    out: OutputFormatter = ctx.obj["out"]
    if not names and not install_all:
        out.error("Name at least one mod, or pass --all.")
        ctx.exit(1)
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _install(ctx, mods_dir, names, install_all))


async def _install(
    ctx: Any, mods_dir: Path, names: tuple[str, ...], install_all: bool
) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    await require_git(git)

    catalog = make_catalog(ctx)
    try:
        engine = ReconciliationEngine(
            git, catalog, organization=ctx.obj["organization"], host=config.host
        )
        mods = await discover_mods(engine, mods_dir, out)
        repositories = await catalog.organization_repositories()
        missing = installable_repositories(repositories, mods)

        if install_all:
            targets = missing
        else:
            by_name = {r.name.casefold(): r for r in repositories}
            missing_names = {r.name for r in missing}
            targets = []
            for name in names:
                repository = by_name.get(name.casefold())
                if repository is None:
                    raise ModSyncNotFoundError(f"No repository named {name}")
                if repository.name not in missing_names:
                    out.warning(f"{repository.name} is already installed.")
                    continue
                targets.append(repository)

        if not targets:
            out.info("Nothing to install.")
            return 0

        operations = ModOperations(git, catalog, mods_dir)
        results = await run_batch(
            out, "Installing", targets, lambda r: r.name, operations.install
        )
    finally:
        await catalog.close()

    out.batch_results("Install Results", results)
    return _batch_exit_code(results)


@main.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def uninstall(ctx: Any, names: tuple[str, ...], yes: bool) -> None:
    """Delete mod folders.

    NAMES: Mods to remove
    """
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _uninstall(ctx, mods_dir, names, yes))


async def _uninstall(
    ctx: Any, mods_dir: Path, names: tuple[str, ...], yes: bool
) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    catalog = make_catalog(ctx)
    try:
        engine = ReconciliationEngine(
            git, catalog, organization=ctx.obj["organization"], host=config.host
        )
        mods = await discover_mods(engine, mods_dir, out)
        targets = find_mods(mods, names)

        if not yes:
            for mod in targets:
                out.print(f"  {mod.name}  ({mod.path})")
            if not click.confirm(
                f"Delete {len(targets)} mod folder(s)? This cannot be undone.",
                default=False,
            ):
                out.warning("Uninstall cancelled.")
                return 0
            if click.prompt("Type DELETE to confirm") != "DELETE":
                out.warning("Uninstall cancelled.")
                return 0

        operations = ModOperations(git, catalog, mods_dir)
        results = await run_batch(
            out, "Removing", targets, lambda m: m.name, operations.uninstall
        )
    finally:
        await catalog.close()

    out.batch_results("Uninstall Results", results)
    return _batch_exit_code(results)


@main.command()
@click.argument("names", nargs=-1)
@click.option("--all", "convert_all", is_flag=True, help="Convert every plain folder")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def convert(
    ctx: Any, names: tuple[str, ...], convert_all: bool, yes: bool
) -> None:
    """Replace plain mod folders with git clones of their repository.

    NAMES: Mods to convert (or --all)
    """
    out: OutputFormatter = ctx.obj["out"]
    if not names and not convert_all:
        out.error("Name at least one mod, or pass --all.")
        ctx.exit(1)
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _convert(ctx, mods_dir, names, convert_all, yes))


async def _convert(
    ctx: Any,
    mods_dir: Path,
    names: tuple[str, ...],
    convert_all: bool,
    yes: bool,
) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    await require_git(git)

    catalog = make_catalog(ctx)
    try:
        engine = ReconciliationEngine(
            git, catalog, organization=ctx.obj["organization"], host=config.host
        )
        mods = await discover_mods(engine, mods_dir, out)
        candidates = convertible_mods(mods)

        if convert_all:
            targets = candidates
        else:
            targets = find_mods(mods, names)
            for mod in targets:
                if mod not in candidates:
                    raise ModSyncError(
                        f"{mod.name} is not a plain folder matching a repository"
                    )

        if not targets:
            out.info("Nothing to convert.")
            return 0

        if not yes and not click.confirm(
            f"Replace {len(targets)} folder(s) with fresh clones? "
            "Local edits in these folders will be lost.",
            default=False,
        ):
            out.warning("Convert cancelled.")
            return 0

        operations = ModOperations(git, catalog, mods_dir)
        results = await run_batch(
            out, "Converting", targets, lambda m: m.name, operations.convert
        )
    finally:
        await catalog.close()

    out.batch_results("Convert Results", results)
    return _batch_exit_code(results)


# =========================
# Single-mod git commands
# =========================


@main.command()
@click.argument("name")
@click.pass_context
def branches(ctx: Any, name: str) -> None:
    """List the remote branches of a mod.

    NAME: Installed mod
    """
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _branches(ctx, mods_dir, name))


async def _branches(ctx: Any, mods_dir: Path, name: str) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    await require_git(git)
    mod = await find_git_mod(git, mods_dir, name)

    fetched = await git.fetch(mod.path)
    if not fetched:
        out.warning(f"Fetch failed, branch list may be stale: {fetched.error}")

    names = sorted(await git.remote_branches(mod.path))
    out.output_table(
        [
            {"current": "*" if b == mod.branch else "", "branch": b}
            for b in names
        ],
        ["current", "branch"],
        {"current": "", "branch": "Branch"},
        title=f"Branches of {mod.name}",
    )
    return 0


@main.command()
@click.argument("name")
@click.argument("branch")
@click.pass_context
def switch(ctx: Any, name: str, branch: str) -> None:
    """Switch a mod to another remote branch.

    NAME: Installed mod
    BRANCH: Remote branch to check out
    """
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _switch(ctx, mods_dir, name, branch))


async def _switch(ctx: Any, mods_dir: Path, name: str, branch: str) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    await require_git(git)
    mod = await find_git_mod(git, mods_dir, name)

    if mod.branch == branch:
        out.info(f"{mod.name} is already on {branch}.")
        return 0

    operations = ModOperations(git, make_catalog(ctx), mods_dir)
    result = await operations.switch_branch(mod, branch)
    if not result:
        out.error(f"Could not switch {mod.name} to {branch}: {result.error}")
        return 1
    out.success(f"Switched {mod.name} to {branch}.")
    return 0


@main.command()
@click.argument("name")
@click.option(
    "--limit",
    "-n",
    type=int,
    default=DEFAULT_HISTORY_LIMIT,
    help=f"Number of commits to show (default: {DEFAULT_HISTORY_LIMIT})",
)
@click.pass_context
def history(ctx: Any, name: str, limit: int) -> None:
    """Show recent commits of a mod.

    NAME: Installed mod
    """
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _history(ctx, mods_dir, name, limit))


async def _history(ctx: Any, mods_dir: Path, name: str, limit: int) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    await require_git(git)
    mod = await find_git_mod(git, mods_dir, name)

    commits = await git.commit_history(mod.path, limit)
    out.commit_table(f"History of {mod.name}", commits)
    return 0


@main.command()
@click.argument("name")
@click.argument("ref")
@click.pass_context
def checkout(ctx: Any, name: str, ref: str) -> None:
    """Check out a commit or tag, leaving the mod detached.

    NAME: Installed mod
    REF: Commit hash or tag
    """
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _checkout(ctx, mods_dir, name, ref))


async def _checkout(ctx: Any, mods_dir: Path, name: str, ref: str) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    await require_git(git)
    mod = await find_git_mod(git, mods_dir, name)

    operations = ModOperations(git, make_catalog(ctx), mods_dir)
    result = await operations.checkout_commit(mod, ref)
    if not result:
        out.error(f"Could not check out {ref} in {mod.name}: {result.error}")
        return 1
    out.success(f"Checked out {ref} in {mod.name}.")
    out.info(f"Run 'modsync switch {mod.name} <branch>' to return to a branch.")
    return 0


@main.command()
@click.argument("name")
@click.argument("commit")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reset(ctx: Any, name: str, commit: str, yes: bool) -> None:
    """Hard-reset a mod's branch to a commit.

    NAME: Installed mod
    COMMIT: Commit to reset to
    """
    out: OutputFormatter = ctx.obj["out"]
    mods_dir = resolve_mods_directory(ctx.obj["directory"], out)
    run_command(ctx, _reset(ctx, mods_dir, name, commit, yes))


async def _reset(
    ctx: Any, mods_dir: Path, name: str, commit: str, yes: bool
) -> int:
    out: OutputFormatter = ctx.obj["out"]
    git = GitClient()
    await require_git(git)
    mod = await find_git_mod(git, mods_dir, name)

    if not yes and not click.confirm(
        f"Reset {mod.name} to {commit}? Uncommitted changes and later commits "
        "on this branch will be lost.",
        default=False,
    ):
        out.warning("Reset cancelled.")
        return 0

    operations = ModOperations(git, make_catalog(ctx), mods_dir)
    result = await operations.reset_to_commit(mod, commit)
    if not result:
        out.error(f"Could not reset {mod.name}: {result.error}")
        return 1
    out.success(f"Reset {mod.name} to {commit}.")
    return 0


if __name__ == "__main__":
    main()
