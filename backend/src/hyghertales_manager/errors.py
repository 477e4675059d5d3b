"""Error taxonomy shared by the engine, the host file operations and the catalog client."""


class ModManagerError(Exception):
    code = "MOD_MANAGER_ERROR"


class NotFoundLocalError(ModManagerError):
    code = "NOT_FOUND_LOCAL"

    def __init__(self, path: str, message: str | None = None) -> None:
        self.path = path
        super().__init__(message or f"File not found: {path}")


class MoveFailedError(ModManagerError):
    code = "MOVE_FAILED"


class TrashFailedError(ModManagerError):
    code = "TRASH_FAILED"


class DownloadFailedError(ModManagerError):
    code = "DOWNLOAD_FAILED"


class CatalogUnavailableError(ModManagerError):
    code = "CATALOG_UNAVAILABLE"

    def __init__(self, message: str, status: int | None = None, body_code: str = "") -> None:
        self.status = status
        self.body_code = body_code
        super().__init__(message)


class DistributionRestrictedError(CatalogUnavailableError):
    code = "DISTRIBUTION_RESTRICTED"

    def __init__(self, message: str = "") -> None:
        super().__init__(
            message
            or (
                "This mod's download is restricted by CurseForge distribution settings. "
                "You may need to download it manually from the website."
            ),
            status=503,
            body_code="DOWNLOAD_NOT_AVAILABLE",
        )


class InvalidManifestError(ModManagerError):
    code = "INVALID_MANIFEST"


class AmbiguousStateError(ModManagerError):
    code = "AMBIGUOUS_STATE"

    def __init__(self, record_id: int, filename: str, in_active: bool, in_disabled: bool) -> None:
        self.record_id = record_id
        self.filename = filename
        self.in_active = in_active
        self.in_disabled = in_disabled
        where = "both directories" if in_active else "neither directory"
        super().__init__(f"Mod {record_id} ({filename}) found in {where}")


class RecordNotFoundError(ModManagerError):
    code = "RECORD_NOT_FOUND"

    def __init__(self, record_id: int) -> None:
        self.record_id = record_id
        super().__init__(f"Installed mod {record_id} not found")


class ProfileNotFoundError(ModManagerError):
    code = "PROFILE_NOT_FOUND"

    def __init__(self, profile_id: int) -> None:
        self.profile_id = profile_id
        super().__init__(f"Profile {profile_id} not found")


class ModsDirNotConfiguredError(ModManagerError):
    code = "MODS_DIR_NOT_CONFIGURED"

    def __init__(self) -> None:
        super().__init__("Set the Mods directory in settings to manage installed mods.")
