from fastapi.testclient import TestClient

from hyghertales_manager.errors import (
    AmbiguousStateError,
    CatalogUnavailableError,
    DistributionRestrictedError,
    InvalidManifestError,
    ModsDirNotConfiguredError,
    MoveFailedError,
    RecordNotFoundError,
)
from hyghertales_manager.main import app, status_for


class TestApp:
    def test_health(self, client):
        assert client.get("/health").json() == {"ok": True}

    def test_status_mapping(self):
        assert status_for(RecordNotFoundError(1)) == 404
        assert status_for(InvalidManifestError("bad")) == 422
        assert status_for(DistributionRestrictedError()) == 503
        assert status_for(CatalogUnavailableError("down")) == 502
        assert status_for(ModsDirNotConfiguredError()) == 400
        assert status_for(MoveFailedError("locked")) == 409
        assert status_for(AmbiguousStateError(1, "a.jar", True, True)) == 409

    def test_missing_mods_dir_is_400(self, monkeypatch, tmp_path):
        monkeypatch.setattr("hyghertales_manager.config.settings.mods_dir", None)
        monkeypatch.setattr("hyghertales_manager.config.settings.data_dir", tmp_path)
        with TestClient(app) as tc:
            r = tc.get("/api/v1/mods/")
        assert r.status_code == 400
        assert r.json()["code"] == "MODS_DIR_NOT_CONFIGURED"
