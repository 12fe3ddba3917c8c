"""test suite for UnifiedModView."""
import asyncio
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from modprofile.domain.models import CustomMod, ManagedMod, Profile, ProfileModEntry
from modprofile.events import DISK_FILES_INVALIDATED, PROFILES_INVALIDATED, EventHub
from modprofile.profiles.repository import ProfileRepository
from modprofile.services.mods import UnifiedModView


class TestUnifiedModView:
    @pytest.fixture
    def repository(self, tmp_path):
        return ProfileRepository(tmp_path)

    @pytest.fixture
    def hub(self):
        return EventHub()

    @pytest.fixture
    def view(self, repository, hub):
        return UnifiedModView(repository, hub)

    @pytest.fixture
    def plugins(self, repository):
        path = repository.create_dir("p1")
        repository.write_metadata(Profile(id="p1", name="P1", path=str(path), created_at=1))
        plugins = repository.plugins_dir(path)
        plugins.mkdir(parents=True)
        return plugins

    def set_mods(self, repository, *mods, **fields):
        with repository.edit("p1") as profile:
            profile.mods = list(mods)
            for key, value in fields.items():
                setattr(profile, key, value)

    def test_custom_file_listed_and_missing_entry_pruned(self, view, repository, plugins):
        (plugins / "a.dll").write_bytes(b"a")
        self.set_mods(repository, ProfileModEntry(mod_id="b", version="1.0.0", file="b.dll"))

        mods = asyncio.run(view.get_unified_mods("p1"))

        assert mods == [CustomMod(file="a.dll")]
        assert repository.get_by_id("p1").mods == []

    def test_managed_before_custom(self, view, repository, plugins):
        for name in ["z.dll", "custom.dll", "m.dll"]:
            (plugins / name).write_bytes(b"x")
        self.set_mods(
            repository,
            ProfileModEntry(mod_id="mz", version="1.0.0", file="z.dll"),
            ProfileModEntry(mod_id="mm", version="2.0.0", file="m.dll"),
        )

        mods = asyncio.run(view.get_unified_mods("p1"))

        assert mods == [
            ManagedMod(mod_id="mz", version="1.0.0", file="z.dll"),
            ManagedMod(mod_id="mm", version="2.0.0", file="m.dll"),
            CustomMod(file="custom.dll"),
        ]

    def test_entries_without_file_are_kept(self, view, repository, plugins):
        entry = ProfileModEntry(mod_id="declared", version="1.0.0")
        self.set_mods(repository, entry)

        mods = asyncio.run(view.get_unified_mods("p1"))

        assert mods == []
        assert repository.get_by_id("p1").mods == [entry]

    def test_pruning_resets_icon_of_removed_mod(self, view, repository, plugins):
        self.set_mods(
            repository,
            ProfileModEntry(mod_id="b", version="1.0.0", file="b.dll"),
            icon_mode="mod",
            icon_mod_id="b",
        )

        asyncio.run(view.get_unified_mods("p1"))

        profile = repository.get_by_id("p1")
        assert profile.icon_mode == "default"
        assert profile.icon_mod_id is None

    def test_cleanup_is_idempotent(self, view, repository, hub, plugins):
        (plugins / "keep.dll").write_bytes(b"k")
        self.set_mods(
            repository,
            ProfileModEntry(mod_id="keep", version="1.0.0", file="keep.dll"),
            ProfileModEntry(mod_id="gone", version="1.0.0", file="gone.dll"),
        )
        events = []
        hub.subscribe(PROFILES_INVALIDATED, events.append)

        asyncio.run(view.cleanup_missing_mods("p1"))
        after_first = (Path(repository.get_by_id("p1").path) / "metadata.json").read_bytes()
        asyncio.run(view.cleanup_missing_mods("p1"))
        after_second = (Path(repository.get_by_id("p1").path) / "metadata.json").read_bytes()

        assert [m.mod_id for m in repository.get_by_id("p1").mods] == ["keep"]
        assert after_first == after_second
        assert len(events) == 1

    def test_delete_managed_mod(self, view, repository, hub, plugins):
        (plugins / "a.dll").write_bytes(b"a")
        self.set_mods(repository, ProfileModEntry(mod_id="a", version="1.0.0", file="a.dll"))
        topics = []
        hub.subscribe(PROFILES_INVALIDATED, lambda payload: topics.append(PROFILES_INVALIDATED))
        hub.subscribe(DISK_FILES_INVALIDATED, lambda payload: topics.append(DISK_FILES_INVALIDATED))

        asyncio.run(view.delete_unified_mod("p1", ManagedMod(mod_id="a", version="1.0.0", file="a.dll")))

        assert not (plugins / "a.dll").exists()
        assert repository.get_by_id("p1").mods == []
        assert topics == [PROFILES_INVALIDATED, DISK_FILES_INVALIDATED]

    def test_delete_custom_mod_leaves_metadata(self, view, repository, hub, plugins):
        (plugins / "c.dll").write_bytes(b"c")
        entry = ProfileModEntry(mod_id="other", version="1.0.0")
        self.set_mods(repository, entry)
        topics = []
        hub.subscribe(PROFILES_INVALIDATED, lambda payload: topics.append(PROFILES_INVALIDATED))
        hub.subscribe(DISK_FILES_INVALIDATED, lambda payload: topics.append(DISK_FILES_INVALIDATED))

        asyncio.run(view.delete_unified_mod("p1", CustomMod(file="c.dll")))

        assert not (plugins / "c.dll").exists()
        assert repository.get_by_id("p1").mods == [entry]
        assert topics == [DISK_FILES_INVALIDATED]

    def test_count_mods(self, view, repository, plugins):
        (plugins / "a.dll").write_bytes(b"a")
        (plugins / "b.dll").write_bytes(b"b")
        (plugins / "notes.txt").write_text("n")

        assert view.count_mods(repository.get_by_id("p1").path) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
