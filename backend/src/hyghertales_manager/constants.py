UNTRACKED_SLUG = "__untracked__"

DISABLED_SUFFIX = ".disabled"
BACKUP_DIR_NAME = "Mods.backup"
BACKUP_SUFFIX = ".bak"
UPDATE_TEMP_PREFIX = ".ht-update-"
DOWNLOAD_TEMP_SUFFIX = ".tmp"

# Highest number tried when picking a collision-free "name (n).ext"
MAX_UNIQUE_NAME_ATTEMPTS = 999

# CurseForge release channels, lower value preferred
RELEASE_ORDER: dict[str, int] = {
    "release": 0,
    "beta": 1,
    "alpha": 2,
}
UNKNOWN_RELEASE_PRIORITY = 99

IMPORTED_PROFILE_PREFIX = "Imported: "
