"""Unit tests for the installed-profile manifest."""

from pathlib import Path

import pytest
from wsctl.profiles.base import AlreadyInstalledError, ProfileError
from wsctl.profiles.db import ProfileDB
from wsctl.profiles.target import Target


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Location of a profile manifest."""
    return tmp_path / "profiles.toml"


def installed(spec: str, **changes: object) -> Target:
    return Target.parse(spec).replace(installation_dir="/p/" + spec, **changes)


class TestProfileDB:
    """Tests for ProfileDB."""

    def test_missing_file_is_empty(self, db_path: Path) -> None:
        """Loading a missing manifest gives an empty database."""
        db = ProfileDB.load(db_path)

        assert db.profiles() == []
        assert db.targets("native") == []

    def test_add_and_lookup(self, db_path: Path) -> None:
        """Added targets can be looked up by a matching request."""
        db = ProfileDB(db_path)
        db.add_target("native", "/root/native", installed("amd64-linux@2"))

        found = db.lookup_target("native", Target.parse("amd64-linux"))

        assert found is not None
        assert found.version == "2"
        assert db.root("native") == "/root/native"

    def test_add_twice_rejected(self, db_path: Path) -> None:
        """A pair can only be installed once."""
        db = ProfileDB(db_path)
        db.add_target("native", "/r", installed("amd64-linux@2"))

        with pytest.raises(AlreadyInstalledError):
            db.add_target("native", "/r", installed("amd64-linux@1"))

    def test_remove_last_target_drops_profile(self, db_path: Path) -> None:
        """Removing the only target forgets the profile."""
        db = ProfileDB(db_path)
        db.add_target("native", "/r", installed("amd64-linux@2"))

        assert db.remove_target("native", Target.parse("amd64-linux")) is True
        assert db.profiles() == []
        assert db.remove_target("native", Target.parse("amd64-linux")) is False

    def test_replace_target(self, db_path: Path) -> None:
        """Replacing keeps one record per arch/OS."""
        db = ProfileDB(db_path)
        db.add_target("native", "/r", installed("amd64-linux@1"))

        db.replace_target("native", installed("amd64-linux@2"))

        assert [t.version for t in db.targets("native")] == ["2"]

    def test_replace_missing_target(self, db_path: Path) -> None:
        """Replacing a target that is not installed is an error."""
        with pytest.raises(ProfileError):
            ProfileDB(db_path).replace_target("native", installed("amd64-linux"))

    def test_save_and_reload(self, db_path: Path) -> None:
        """Saved targets load back with every field."""
        db = ProfileDB(db_path)
        target = installed(
            "amd64-linux@2",
            env=("A=1",),
            command_line_env=("A=1",),
            update_time="2026-10-19T10:00:00+00:00",
        )
        db.add_target("native", "/r", target)

        db.save()
        reloaded = ProfileDB.load(db_path)

        assert reloaded.targets("native") == [target]
        assert reloaded.root("native") == "/r"

    def test_save_keeps_previous_version(self, db_path: Path) -> None:
        """The previous manifest is kept with a .prev suffix."""
        db = ProfileDB(db_path)
        db.add_target("native", "/r", installed("amd64-linux@2"))
        db.save()
        first = db_path.read_text()

        db.remove_target("native", Target.parse("amd64-linux"))
        db.save()

        assert (db_path.parent / "profiles.toml.prev").read_text() == first
        assert ProfileDB.load(db_path).profiles() == []

    def test_malformed_file(self, db_path: Path) -> None:
        """Unknown fields make the manifest invalid."""
        db_path.write_text('[[profiles]]\nname = "native"\nbogus = true\n')

        with pytest.raises(ProfileError, match="Invalid profile manifest"):
            ProfileDB.load(db_path)
