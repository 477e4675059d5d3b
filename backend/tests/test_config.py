from pathlib import Path

from hyghertales_manager.config import Settings, default_mods_dir_candidates


class TestSettings:
    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HTM_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("HTM_MODS_DIR", "  C:\\Games\\Mods  ")
        monkeypatch.setenv("HTM_PROXY_BASE_URL", "https://proxy.example/")

        s = Settings()

        assert s.data_dir == tmp_path
        assert s.installed_mods_path == tmp_path / "installed_mods.json"
        assert s.profiles_path == tmp_path / "profiles.json"
        assert s.mods_dir == "C:\\Games\\Mods"
        assert s.proxy_base_url == "https://proxy.example"

    def test_blank_mods_dir_is_unset(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HTM_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("HTM_MODS_DIR", "   ")
        assert Settings().mods_dir is None

    def test_explicit_document_paths_kept(self, tmp_path):
        s = Settings(data_dir=tmp_path, profiles_path=tmp_path / "elsewhere.json")
        assert s.profiles_path == tmp_path / "elsewhere.json"
        assert s.installed_mods_path == tmp_path / "installed_mods.json"


class TestModsDirCandidates:
    def test_unique_and_end_in_mods(self):
        candidates = default_mods_dir_candidates()
        assert candidates
        assert len(candidates) == len(set(candidates))
        assert all(Path(c).name == "Mods" for c in candidates)
