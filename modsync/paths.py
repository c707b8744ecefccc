"""Auto-discovery of RimWorld mods folders."""

import os
import string
import sys
from pathlib import Path
from typing import Optional


def _linux_candidates(home: Path) -> list[Path]:
    return [
        # Steam
        home / ".steam/steam/steamapps/common/RimWorld/Mods",
        home / ".local/share/Steam/steamapps/common/RimWorld/Mods",
        # Steam (flatpak)
        home
        / ".var/app/com.valvesoftware.Steam/.steam/steam/steamapps/common/RimWorld/Mods",
        home
        / ".var/app/com.valvesoftware.Steam/.local/share/Steam/steamapps/common/RimWorld/Mods",
        # GOG
        home / "Games/RimWorld/Mods",
        home / "GOG Games/RimWorld/Mods",
        # Lutris
        home / "Games/rimworld/drive_c/GOG Games/RimWorld/Mods",
    ]


def _windows_drives() -> list[Path]:
    return [
        Path(f"{letter}:\\")
        for letter in string.ascii_uppercase
        if os.path.exists(f"{letter}:\\")
    ]


def _windows_candidates() -> list[Path]:
    program_files = Path(os.environ.get("ProgramFiles", r"C:\Program Files"))
    program_files_x86 = Path(
        os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)")
    )

    paths = [
        program_files_x86 / "Steam/steamapps/common/RimWorld/Mods",
        program_files / "Steam/steamapps/common/RimWorld/Mods",
        program_files_x86 / "GOG Galaxy/Games/RimWorld/Mods",
        program_files / "GOG Galaxy/Games/RimWorld/Mods",
        Path(r"C:\GOG Games\RimWorld\Mods"),
    ]
    # Steam libraries on other drives
    for drive in _windows_drives():
        paths.append(drive / "SteamLibrary/steamapps/common/RimWorld/Mods")
        paths.append(drive / "Steam/steamapps/common/RimWorld/Mods")
        paths.append(drive / "Games/RimWorld/Mods")
    return paths


def _mac_candidates(home: Path) -> list[Path]:
    return [
        home
        / "Library/Application Support/Steam/steamapps/common/RimWorld/RimWorldMac.app/Mods",
        home / "Applications/RimWorld.app/Mods",
        Path("/Applications/RimWorld.app/Mods"),
    ]


def candidate_mod_paths(
    platform: Optional[str] = None, home: Optional[Path] = None
) -> list[Path]:
    """List the usual mods folder locations for a platform.

    Args:
        platform: ``sys.platform`` style name (defaults to the running one)
        home: Home directory (defaults to the current user's)

    Returns:
        Candidate paths, whether or not they exist
    """
    platform = platform or sys.platform
    home = home or Path.home()

    if platform.startswith("linux"):
        return _linux_candidates(home)
    if platform.startswith("win"):
        return _windows_candidates()
    if platform == "darwin":
        return _mac_candidates(home)
    return []


def discover_mod_paths(
    platform: Optional[str] = None, home: Optional[Path] = None
) -> list[Path]:
    """Find existing mods folders, de-duplicated in discovery order."""
    found: list[Path] = []
    seen: set[Path] = set()
    for path in candidate_mod_paths(platform, home):
        if not path.is_dir():
            continue
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        found.append(resolved)
    return found
