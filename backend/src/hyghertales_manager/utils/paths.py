"""Path helpers for the Mods / Mods.disabled directory pair.

Paths are handled as ``/``-separated strings: the Mods directory is stored as
the user typed it (often a Windows path with backslashes), and every path the
engine derives from it is normalised the same way so comparisons and joins
behave identically on Windows and Linux.
"""

from hyghertales_manager.constants import DISABLED_SUFFIX
from hyghertales_manager.models.mod import InstalledModRecord


def normalize_dir(path: str) -> str:
    return path.replace("\\", "/").strip()


def disabled_dir_for(mods_dir: str) -> str:
    """Return the sibling disabled directory for a Mods directory.

    ``C:\\Games\\UserData\\Mods`` → ``C:/Games/UserData/Mods.disabled``.
    Never fails: an empty path yields ``".disabled"``.
    """
    normalized = normalize_dir(mods_dir)
    parts = [p for p in normalized.split("/") if p]
    if not parts:
        return normalized + DISABLED_SUFFIX
    parts[-1] = parts[-1] + DISABLED_SUFFIX
    # Keep the leading separators of POSIX absolute and UNC paths
    prefix = normalized[: len(normalized) - len(normalized.lstrip("/"))]
    return prefix + "/".join(parts)


def join_path(directory: str, filename: str) -> str:
    return f"{normalize_dir(directory).rstrip('/')}/{filename}"


def filename_of(path: str) -> str:
    return normalize_dir(path).rsplit("/", 1)[-1]


def path_for(record: InstalledModRecord, mods_dir: str, disabled_dir: str) -> str:
    """Where the record's file lives given its ``enabled`` flag."""
    directory = mods_dir if record.enabled else disabled_dir
    return join_path(directory, record.installed_filename)
