import json

import pytest

from hyghertales_manager.constants import UNTRACKED_SLUG
from hyghertales_manager.errors import (
    CatalogUnavailableError,
    InvalidManifestError,
    NotFoundLocalError,
    ProfileNotFoundError,
)
from hyghertales_manager.models.mod import Provider
from hyghertales_manager.models.profile import ProfileRecord
from hyghertales_manager.schemas.profile import ExportedMod, ExportedProfile
from hyghertales_manager.services.mod_service import toggle_enabled
from hyghertales_manager.services.profile_service import (
    apply_switch,
    compute_switch_plan,
    create_profile,
    delete_profile,
    duplicate_profile,
    export_profile,
    export_to_file,
    get_profile,
    import_profile,
    list_profiles,
    plan_switch,
    read_manifest,
    rename_profile,
)


class TestCreateProfile:
    def test_seeded_from_enabled_mods(self, ctx, make_record):
        a = make_record("Alpha")
        make_record("Beta", enabled=False)

        profile = create_profile("Main", True, ctx)

        assert profile.id == 1
        assert profile.enabled_mod_ids == [a.id]
        data = ctx.store.load_profiles()
        assert data.active_profile_id == profile.id
        assert data.next_id == 2

    def test_empty_when_not_seeded(self, ctx, make_record):
        make_record("Alpha")
        assert create_profile("Blank", False, ctx).enabled_mod_ids == []

    def test_ids_increase(self, ctx):
        first = create_profile("A", False, ctx)
        second = create_profile("B", False, ctx)
        assert second.id == first.id + 1
        assert ctx.store.load_profiles().active_profile_id == second.id


class TestRenameDeleteDuplicate:
    def test_rename(self, ctx):
        p = create_profile("Old", False, ctx)
        rename_profile(p.id, "New", ctx)
        assert get_profile(p.id, ctx).name == "New"

    def test_rename_unknown(self, ctx):
        with pytest.raises(ProfileNotFoundError):
            rename_profile(42, "x", ctx)

    def test_delete_active_falls_back_to_first(self, ctx):
        a = create_profile("A", False, ctx)
        b = create_profile("B", False, ctx)

        delete_profile(b.id, ctx)

        data = list_profiles(ctx)
        assert [p.id for p in data.profiles] == [a.id]
        assert data.active_profile_id == a.id

    def test_delete_last_clears_active(self, ctx):
        a = create_profile("A", False, ctx)
        delete_profile(a.id, ctx)
        assert list_profiles(ctx).active_profile_id is None

    def test_delete_inactive_keeps_active(self, ctx):
        a = create_profile("A", False, ctx)
        b = create_profile("B", False, ctx)
        delete_profile(a.id, ctx)
        assert list_profiles(ctx).active_profile_id == b.id

    def test_delete_unknown(self, ctx):
        with pytest.raises(ProfileNotFoundError):
            delete_profile(5, ctx)

    def test_duplicate_copies_mods_without_activating(self, ctx, make_record):
        make_record("Alpha")
        source = create_profile("A", True, ctx)

        clone = duplicate_profile(source.id, "A copy", ctx)

        assert clone.id != source.id
        assert clone.enabled_mod_ids == source.enabled_mod_ids
        assert list_profiles(ctx).active_profile_id == source.id


class TestComputeSwitchPlan:
    def test_diff(self, ctx, make_record):
        a = make_record("Alpha")
        b = make_record("Beta", enabled=False)
        c = make_record("Gamma")
        target = ProfileRecord(id=9, name="T", enabled_mod_ids=[b.id, c.id, 77])

        plan = compute_switch_plan(target, ctx.store.load_records())

        assert [r.id for r in plan.to_enable] == [b.id]
        assert [r.id for r in plan.to_disable] == [a.id]
        assert plan.missing_ids == [77]
        assert plan.total == 2

    def test_pure(self, ctx, make_record, mods_dir):
        a = make_record("Alpha")
        records = ctx.store.load_records()
        compute_switch_plan(ProfileRecord(id=1, name="T"), records)
        assert records[0].enabled is True
        assert (mods_dir / "alpha.jar").exists()
        assert a.enabled is True


class TestApplySwitch:
    @pytest.mark.asyncio
    async def test_two_record_switch(self, ctx, make_record, mods_dir, disabled_dir):
        one = make_record("One")
        two = make_record("Two", enabled=False)
        current = create_profile("Current", True, ctx)
        target = create_profile("Target", False, ctx)
        data = ctx.store.load_profiles()
        data.active_profile_id = current.id
        data.get(target.id).enabled_mod_ids = [two.id]
        ctx.store.save_profiles(data)

        plan = plan_switch(target.id, ctx)
        assert [r.id for r in plan.to_enable] == [two.id]
        assert [r.id for r in plan.to_disable] == [one.id]

        result = await apply_switch(plan, ctx)

        by_id = {r.id: r for r in ctx.store.load_records()}
        assert by_id[one.id].enabled is False
        assert (disabled_dir / "one.jar").exists()
        assert by_id[two.id].enabled is True
        assert (mods_dir / "two.jar").exists()
        assert ctx.store.load_profiles().active_profile_id == target.id
        assert (result.enabled_count, result.disabled_count) == (1, 1)

    @pytest.mark.asyncio
    async def test_replanning_after_apply_is_empty(self, ctx, make_record):
        make_record("One")
        make_record("Two", enabled=False)
        target = create_profile("T", False, ctx)

        await apply_switch(plan_switch(target.id, ctx), ctx)

        assert plan_switch(target.id, ctx).is_empty

    @pytest.mark.asyncio
    async def test_empty_plan_still_activates(self, ctx, make_record):
        make_record("One")
        matching = create_profile("Same", True, ctx)
        create_profile("Other", False, ctx)

        plan = plan_switch(matching.id, ctx)
        assert plan.is_empty
        await apply_switch(plan, ctx)

        assert ctx.store.load_profiles().active_profile_id == matching.id

    @pytest.mark.asyncio
    async def test_reports_progress_disables_first(self, ctx, make_record):
        make_record("On")
        off = make_record("Off", enabled=False)
        target = create_profile("T", False, ctx)
        data = ctx.store.load_profiles()
        data.get(target.id).enabled_mod_ids = [off.id]
        ctx.store.save_profiles(data)

        calls: list[tuple[int, int]] = []
        plan = plan_switch(target.id, ctx)
        await apply_switch(plan, ctx, lambda done, total: calls.append((done, total)))

        assert calls == [(1, 2), (2, 2)]

    @pytest.mark.asyncio
    async def test_failure_keeps_completed_moves(self, ctx, make_record, disabled_dir):
        one = make_record("One")
        ghost = make_record("Ghost", enabled=False, create_file=False)
        start = create_profile("Start", True, ctx)
        target = create_profile("Target", False, ctx)
        data = ctx.store.load_profiles()
        data.active_profile_id = start.id
        data.get(target.id).enabled_mod_ids = [ghost.id]
        ctx.store.save_profiles(data)

        with pytest.raises(NotFoundLocalError):
            await apply_switch(plan_switch(target.id, ctx), ctx)

        by_id = {r.id: r for r in ctx.store.load_records()}
        assert by_id[one.id].enabled is False
        assert (disabled_dir / "one.jar").exists()
        assert by_id[ghost.id].enabled is False
        assert ctx.store.load_profiles().active_profile_id == start.id

        retry = plan_switch(target.id, ctx)
        assert retry.to_disable == []
        assert [r.id for r in retry.to_enable] == [ghost.id]

    @pytest.mark.asyncio
    async def test_unknown_profile(self, ctx):
        with pytest.raises(ProfileNotFoundError):
            plan_switch(3, ctx)


class TestExport:
    def test_projects_enabled_ids_by_provider_reference(self, ctx, make_record):
        a = make_record("Alpha", ref=10, installed_file_id=100)
        b = make_record("Beta", provider=Provider.ORBIS, ref="res-b", installed_file_id="v1:0")
        make_record("Gamma", ref=30)
        profile = ProfileRecord(id=1, name="Mine", enabled_mod_ids=[a.id, b.id])

        manifest = export_profile(profile, ctx.store.load_records())

        assert manifest.name == "Mine"
        assert [(m.provider, m.project_id, m.resource_id) for m in manifest.mods] == [
            (Provider.CURSEFORGE, 10, None),
            (Provider.ORBIS, None, "res-b"),
        ]
        dumped = manifest.model_dump(by_alias=True)
        assert "id" not in dumped["mods"][0]
        assert "installedFilename" not in dumped["mods"][0]

    def test_placeholders_left_out(self, ctx, make_record):
        p = make_record("loose.jar", filename="loose.jar", slug=UNTRACKED_SLUG,
                        provider=Provider.ORBIS, ref=None, installed_file_id=None)
        manifest = export_profile(
            ProfileRecord(id=1, name="X", enabled_mod_ids=[p.id]), ctx.store.load_records()
        )
        assert manifest.mods == []

    def test_file_round_trip(self, ctx, make_record, tmp_path):
        make_record("Alpha")
        profile = create_profile("Main", True, ctx)
        path = tmp_path / "exports" / "main.json"

        export_to_file(profile.id, path, ctx)

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["mods"][0]["projectId"] == 1000
        assert read_manifest(path.read_text(encoding="utf-8")).name == "Main"


class TestReadManifest:
    def test_not_json(self):
        with pytest.raises(InvalidManifestError):
            read_manifest("not json at all")

    def test_wrong_shape(self):
        with pytest.raises(InvalidManifestError):
            read_manifest('{"mods": "nope"}')

    def test_unknown_provider(self):
        with pytest.raises(InvalidManifestError):
            read_manifest('{"name": "x", "mods": [{"provider": "steam", "slug": "s", "name": "n"}]}')


class TestImport:
    @pytest.mark.asyncio
    async def test_round_trip_reuses_local_mods(self, ctx, catalog, make_record, mods_dir):
        a = make_record("Alpha", ref=10)
        b = make_record("Beta", provider=Provider.ORBIS, ref="res-b", installed_file_id="v1:0")
        c = make_record("Gamma", ref=30)
        original = ProfileRecord(id=1, name="Trip", enabled_mod_ids=[a.id, b.id])
        manifest = export_profile(original, ctx.store.load_records())
        await toggle_enabled(a.id, ctx)

        result = await import_profile(manifest, ctx, catalog)

        assert sorted(result.matched_ids) == [a.id, b.id]
        assert result.downloaded_ids == []
        assert catalog.file_calls == []
        assert result.profile.name == "Imported: Trip"
        assert ctx.store.load_profiles().active_profile_id == result.profile.id
        by_id = {r.id: r for r in ctx.store.load_records()}
        assert by_id[a.id].enabled is True
        assert by_id[b.id].enabled is True
        assert by_id[c.id].enabled is False
        assert sorted(p.name for p in mods_dir.iterdir()) == ["alpha.jar", "beta.jar"]

    @pytest.mark.asyncio
    async def test_downloads_missing_mods(self, ctx, catalog, make_file, mods_dir):
        catalog.add_files(
            Provider.CURSEFORGE,
            55,
            make_file("pinned-v1.jar", file_id=100, day=1),
            make_file("pinned-v2.jar", file_id=101, day=2),
        )
        catalog.add_files(
            Provider.ORBIS,
            "orb",
            make_file("orb-old.jar", version_id="a", file_index=0, day=1),
            make_file("orb-new.jar", version_id="b", file_index=0, day=5),
        )
        manifest = ExportedProfile(
            name="Shared",
            mods=[
                ExportedMod(provider=Provider.CURSEFORGE, project_id=55,
                            installed_file_id=100, slug="p", name="Pinned"),
                ExportedMod(provider=Provider.ORBIS, resource_id="orb", slug="o", name="Orb"),
            ],
        )

        result = await import_profile(manifest, ctx, catalog)

        assert len(result.downloaded_ids) == 2
        assert (mods_dir / "pinned-v1.jar").exists()
        assert (mods_dir / "orb-new.jar").exists()
        records = {r.name: r for r in ctx.store.load_records()}
        assert records["Pinned"].installed_file_id == 100
        assert records["Orb"].installed_file_id == "b:0"
        assert sorted(result.profile.enabled_mod_ids) == sorted(result.downloaded_ids)

    @pytest.mark.asyncio
    async def test_failures_are_skipped(self, ctx, catalog, make_record):
        keep = make_record("Keep", ref=1)
        catalog.failing[(Provider.CURSEFORGE, "2")] = CatalogUnavailableError("offline")
        manifest = ExportedProfile(
            name="Mixed",
            mods=[
                ExportedMod(provider=Provider.CURSEFORGE, project_id=1, slug="k", name="Keep"),
                ExportedMod(provider=Provider.CURSEFORGE, project_id=2, slug="x", name="Broken"),
                ExportedMod(provider=Provider.ORBIS, slug="n", name="NoRef"),
            ],
        )

        result = await import_profile(manifest, ctx, catalog)

        assert result.matched_ids == [keep.id]
        assert result.skipped_count == 2
        assert {s.name for s in result.skipped_mods} == {"Broken", "NoRef"}

    @pytest.mark.asyncio
    async def test_without_catalog_only_matches(self, ctx, make_record):
        make_record("Keep", ref=1)
        manifest = ExportedProfile(
            name="Offline",
            mods=[ExportedMod(provider=Provider.CURSEFORGE, project_id=9, slug="m", name="Remote")],
        )

        result = await import_profile(manifest, ctx)

        assert result.skipped_mods[0].name == "Remote"
        assert result.profile.enabled_mod_ids == []

    @pytest.mark.asyncio
    async def test_tolerates_file_already_in_place(self, ctx, catalog, make_record, mods_dir):
        rec = make_record("Stale", ref=4, enabled=False, create_file=False)
        (mods_dir / "stale.jar").write_bytes(b"already enabled on disk")
        manifest = ExportedProfile(
            name="P",
            mods=[ExportedMod(provider=Provider.CURSEFORGE, project_id=4, slug="s", name="Stale")],
        )

        result = await import_profile(manifest, ctx, catalog)

        assert result.skipped_count == 0
        assert ctx.store.load_records()[0].enabled is True
        assert rec.id in result.profile.enabled_mod_ids
