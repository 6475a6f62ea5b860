"""Tests for the on-disk snapshot layout."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml
from conftest import FakeRegistry, make_file

from savekeep.config.schema import RedirectConfig
from savekeep.layout.manager import MAPPING_FILENAME, BackupLayout, GameLayout, escape_folder_name
from savekeep.layout.models import (
    SNAPSHOT_FILENAME,
    Backup,
    LayoutError,
    RetentionPolicy,
    payload_path,
)
from savekeep.scan.change import ScanChange
from savekeep.scan.models import ScanInfo, ScannedRegistryKey, ScannedRegistryValue
from savekeep.scanner.registry import RegistryValueData
from savekeep.scanner.walker import hash_file

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _scan(saves: Path, name: str = "Game") -> ScanInfo:
    files = set()
    for path in sorted(saves.rglob("*")):
        if path.is_file():
            files.add(
                make_file(
                    path.as_posix(),
                    size=path.stat().st_size,
                    hash=hash_file(path),
                    change=ScanChange.NEW,
                )
            )
    return ScanInfo(game_name=name, found_files=files)


def _create_many(game_layout, scan, count):
    names = []
    for i in range(count):
        backup, _ = game_layout.create(scan, when=T0 + timedelta(days=i))
        names.append(backup.name)
    return names


class TestHelpers:
    def test_payload_path_posix(self):
        assert payload_path("/home/me/save.dat") == "drive-0/home/me/save.dat"

    def test_payload_path_windows(self):
        assert payload_path("C:/Games/save.dat") == "drive-C/Games/save.dat"
        assert payload_path("d:\\Saves\\x") == "drive-D/Saves/x"

    def test_escape_folder_name(self):
        assert escape_folder_name("Game: Director's Cut?") == "Game_ Director's Cut_"
        assert escape_folder_name("...") == "_"


class TestCreate:
    def test_writes_payload_and_manifest(self, saves_dir: Path, backup_root: Path):
        layout = BackupLayout(backup_root)
        game_layout = layout.game_layout("My Game")
        backup, info = game_layout.create(_scan(saves_dir), os_name="linux", when=T0)

        assert info.successful()
        assert backup.name == "backup-20240301T120000Z"
        snapshot = game_layout.path / backup.name
        assert (snapshot / SNAPSHOT_FILENAME).is_file()
        profile = saves_dir / "profile.sav"
        copied = snapshot / payload_path(profile.as_posix())
        assert copied.read_bytes() == b"profile-data"
        assert backup.files[profile.as_posix()].hash == hash_file(profile)
        assert backup.os == "linux"

    def test_mapping_records_real_name(self, saves_dir: Path, backup_root: Path):
        layout = BackupLayout(backup_root)
        layout.game_layout("Game: Remastered").create(_scan(saves_dir), when=T0)
        mapping = yaml.safe_load((backup_root / "Game_ Remastered" / MAPPING_FILENAME).read_text())
        assert mapping == {"name": "Game: Remastered"}
        assert layout.find_games() == ["Game: Remastered"]

    def test_colliding_folder_names(self, saves_dir: Path, backup_root: Path):
        layout = BackupLayout(backup_root)
        layout.game_layout("A:B").create(_scan(saves_dir), when=T0)
        other = layout.game_layout("A?B")
        assert other.path != layout.game_layout("A:B").path
        other.create(_scan(saves_dir), when=T0)
        assert layout.find_games() == ["A:B", "A?B"]

    def test_colliding_names_reserved_before_first_write(self, saves_dir: Path, backup_root: Path):
        layout = BackupLayout(backup_root)
        first = layout.game_layout("A:B")
        second = layout.game_layout("A?B")
        assert first.path != second.path
        assert layout.game_layout("A:B").path == first.path

        first.create(_scan(saves_dir, "A:B"), when=T0)
        second.create(_scan(saves_dir, "A?B"), when=T0)
        assert layout.find_games() == ["A:B", "A?B"]
        assert len(layout.game_layout("A:B").list()) == 1
        assert len(layout.game_layout("A?B").list()) == 1

    def test_folder_of_another_game_refused(self, saves_dir: Path, backup_root: Path):
        BackupLayout(backup_root).game_layout("A:B").create(_scan(saves_dir, "A:B"), when=T0)
        intruder = GameLayout(backup_root / "A_B", "A?B")
        backup, info = intruder.create(_scan(saves_dir, "A?B"), when=T0 + timedelta(hours=1))

        assert backup is None
        assert not info.successful()
        assert BackupLayout(backup_root).find_games() == ["A:B"]
        assert len(BackupLayout(backup_root).game_layout("A:B").list()) == 1

    def test_same_second_gets_unique_name(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        first, _ = game_layout.create(_scan(saves_dir), when=T0)
        second, _ = game_layout.create(_scan(saves_dir), when=T0)
        assert first.name != second.name
        assert game_layout.latest().name == second.name

    def test_ignored_files_not_copied(self, saves_dir: Path, backup_root: Path):
        scan = _scan(saves_dir)
        ignored = make_file((saves_dir / "profile.sav").as_posix(), ignored=True)
        scan.found_files.discard(ignored)
        scan.found_files.add(ignored)
        backup, _ = BackupLayout(backup_root).game_layout("Game").create(scan, when=T0)
        assert ignored.path not in backup.files
        assert len(backup.files) == 1

    def test_redirected_file_recorded_at_target(self, saves_dir: Path, backup_root: Path):
        source = (saves_dir / "profile.sav").as_posix()
        entry = make_file(source, size=12, hash=hash_file(saves_dir / "profile.sav"), redirected="/portable/profile.sav")
        scan = ScanInfo(game_name="Game", found_files={entry})
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(scan, when=T0)
        assert list(backup.files) == ["/portable/profile.sav"]
        assert (game_layout.path / backup.name / "drive-0/portable/profile.sav").is_file()

    def test_missing_file_is_entry_failure(self, saves_dir: Path, backup_root: Path):
        scan = _scan(saves_dir)
        ghost = make_file((saves_dir / "ghost.sav").as_posix(), size=5)
        scan.found_files.add(ghost)
        backup, info = BackupLayout(backup_root).game_layout("Game").create(scan, when=T0)

        assert backup is not None
        assert info.file_error(ghost) is not None
        assert ghost.path not in backup.files
        assert len(backup.files) == 2

    def test_unwritable_layout_fails_every_entry(self, saves_dir: Path, tmp_path: Path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        scan = _scan(saves_dir)
        backup, info = BackupLayout(blocker).game_layout("Game").create(scan, when=T0)

        assert backup is None
        assert set(info.failed_files) == scan.found_files

    def test_registry_recorded(self, backup_root: Path):
        key = ScannedRegistryKey("HKEY_CURRENT_USER/Software/Game")
        key.values["Volume"] = ScannedRegistryValue(kind="dword", data=7, hash="h")
        key.values["Skip"] = ScannedRegistryValue(kind="sz", data="x", ignored=True)
        scan = ScanInfo(game_name="Game", found_registry_keys={key})
        backup, _ = BackupLayout(backup_root).game_layout("Game").create(scan, when=T0)
        assert backup.registry == {
            "HKEY_CURRENT_USER/Software/Game": {"Volume": RegistryValueData("dword", 7)}
        }


class TestListing:
    def test_newest_first(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        names = _create_many(game_layout, _scan(saves_dir), 3)
        assert [b.name for b in game_layout.list()] == list(reversed(names))
        assert game_layout.latest().name == names[-1]

    def test_empty_layout(self, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Nothing")
        assert game_layout.list() == []
        assert game_layout.latest() is None
        assert game_layout.baseline() is None

    def test_unfinished_snapshot_not_listed(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        game_layout.create(_scan(saves_dir), when=T0)
        (game_layout.path / ".tmp-backup-20990101T000000Z").mkdir()
        assert len(game_layout.list()) == 1

    def test_unknown_metadata_ignored(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(_scan(saves_dir), when=T0)
        meta = game_layout.path / backup.name / SNAPSHOT_FILENAME
        data = yaml.safe_load(meta.read_text())
        data["compression"] = {"kind": "zstd"}
        data["future_field"] = 42
        meta.write_text(yaml.safe_dump(data))

        loaded = game_layout.find(backup.name)
        assert loaded is not None
        assert loaded.files == backup.files

    def test_backup_round_trip(self):
        backup = Backup(
            name="backup-20240301T120000Z",
            when=T0,
            os="windows",
            comment="before patch",
            locked=True,
        )
        loaded = Backup.from_dict(yaml.safe_load(yaml.safe_dump(backup.to_dict())))
        assert loaded == backup

    def test_baseline_from_latest(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        game_layout.create(_scan(saves_dir), when=T0)
        baseline = game_layout.baseline()
        profile = saves_dir / "profile.sav"
        assert baseline.classify_file(profile.as_posix(), hash_file(profile)) is ScanChange.SAME


class TestLocking:
    def test_lock_is_persisted_and_idempotent(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(_scan(saves_dir), when=T0)
        game_layout.lock(backup.name)
        game_layout.lock(backup.name)
        assert game_layout.find(backup.name).locked
        game_layout.unlock(backup.name)
        game_layout.unlock(backup.name)
        assert not game_layout.find(backup.name).locked

    def test_lock_unknown_backup(self, backup_root: Path):
        with pytest.raises(LayoutError):
            BackupLayout(backup_root).game_layout("Game").lock("backup-nope")

    def test_comment(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(_scan(saves_dir), when=T0)
        game_layout.set_comment(backup.name, "boss fight")
        assert game_layout.find(backup.name).comment == "boss fight"
        game_layout.set_comment(backup.name, "")
        assert game_layout.find(backup.name).comment is None


class TestPrune:
    def test_keeps_policy_count(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        names = _create_many(game_layout, _scan(saves_dir), 4)
        removed = game_layout.prune(RetentionPolicy(full=2))
        assert sorted(removed) == names[:2]
        assert [b.name for b in game_layout.list()] == [names[3], names[2]]

    def test_never_removes_locked(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        names = _create_many(game_layout, _scan(saves_dir), 4)
        game_layout.lock(names[0])
        game_layout.prune(RetentionPolicy(full=1))
        remaining = {b.name for b in game_layout.list()}
        assert remaining == {names[0], names[3]}

    def test_never_removes_newest(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        names = _create_many(game_layout, _scan(saves_dir), 3)
        removed = game_layout.prune(
            RetentionPolicy(full=1, max_age_days=1), now=T0 + timedelta(days=365)
        )
        assert names[-1] not in removed
        assert [b.name for b in game_layout.list()] == [names[-1]]

    @pytest.mark.parametrize("full", [1, 2, 3, 10])
    @pytest.mark.parametrize("locked", [(), (0,), (2,), (0, 1, 2, 3, 4)])
    def test_invariant_across_policies(self, saves_dir, backup_root, full, locked):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        names = _create_many(game_layout, _scan(saves_dir), 5)
        for index in locked:
            game_layout.lock(names[index])
        removed = game_layout.prune(RetentionPolicy(full=full, max_age_days=0), now=T0 + timedelta(days=30))
        remaining = {b.name for b in game_layout.list()}
        assert names[-1] in remaining
        assert all(names[i] in remaining for i in locked)
        assert not set(removed) & remaining

    def test_max_age(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        names = _create_many(game_layout, _scan(saves_dir), 3)
        removed = game_layout.prune(
            RetentionPolicy(full=10, max_age_days=2), now=T0 + timedelta(days=2, hours=12)
        )
        assert removed == [names[0]]

    def test_delete_refuses_locked(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        names = _create_many(game_layout, _scan(saves_dir), 2)
        game_layout.lock(names[0])
        with pytest.raises(LayoutError):
            game_layout.delete(names[0])
        game_layout.delete(names[1])
        assert [b.name for b in game_layout.list()] == [names[0]]


class TestRestore:
    def test_classifies_against_live_system(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(_scan(saves_dir), when=T0)
        (saves_dir / "profile.sav").write_bytes(b"changed")
        (saves_dir / "slot1" / "game.sav").unlink()

        scan = game_layout.scan_for_restore(backup)
        assert scan.restoring
        assert scan.backup is backup
        profile = scan.file((saves_dir / "profile.sav").as_posix())
        slot = scan.file((saves_dir / "slot1" / "game.sav").as_posix())
        assert profile.change is ScanChange.DIFFERENT
        assert slot.change is ScanChange.NEW
        assert scan.overall_change() is ScanChange.NEW

    def test_restore_writes_files_back(self, saves_dir: Path, backup_root: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(_scan(saves_dir), when=T0)
        (saves_dir / "profile.sav").write_bytes(b"changed")
        (saves_dir / "slot1" / "game.sav").unlink()

        info = game_layout.restore(game_layout.scan_for_restore(backup))
        assert info.successful()
        assert (saves_dir / "profile.sav").read_bytes() == b"profile-data"
        assert (saves_dir / "slot1" / "game.sav").read_bytes() == b"slot-one"

    def test_restore_through_redirect(self, saves_dir: Path, backup_root: Path, tmp_path: Path):
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(_scan(saves_dir), when=T0)
        moved = tmp_path.resolve() / "moved"
        redirects = [RedirectConfig(source=saves_dir.as_posix(), target=moved.as_posix(), kind="restore")]

        scan = game_layout.scan_for_restore(backup, redirects)
        info = game_layout.restore(scan)
        assert info.successful()
        assert (moved / "profile.sav").read_bytes() == b"profile-data"
        entry = scan.file((saves_dir / "profile.sav").as_posix())
        assert entry.readable(True) == (moved / "profile.sav").as_posix()

    def test_registry_without_registry_fails_entry(self, backup_root: Path):
        key = ScannedRegistryKey("HKEY_CURRENT_USER/Software/Game")
        key.values["Volume"] = ScannedRegistryValue(kind="dword", data=7)
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(ScanInfo(game_name="Game", found_registry_keys={key}), when=T0)

        scan = game_layout.scan_for_restore(backup)
        restored_key = scan.registry_key("HKEY_CURRENT_USER/Software/Game")
        assert restored_key.change is ScanChange.UNKNOWN
        info = game_layout.restore(scan)
        assert info.registry_error("HKEY_CURRENT_USER/Software/Game") is not None

    def test_registry_restore(self, backup_root: Path):
        key = ScannedRegistryKey("HKEY_CURRENT_USER/Software/Game")
        key.values["Volume"] = ScannedRegistryValue(kind="dword", data=7)
        game_layout = BackupLayout(backup_root).game_layout("Game")
        backup, _ = game_layout.create(ScanInfo(game_name="Game", found_registry_keys={key}), when=T0)

        registry = FakeRegistry()
        scan = game_layout.scan_for_restore(backup, registry=registry)
        restored_key = scan.registry_key("HKEY_CURRENT_USER/Software/Game")
        assert restored_key.change is ScanChange.NEW
        assert restored_key.values["Volume"].change is ScanChange.NEW

        info = game_layout.restore(scan, registry)
        assert info.successful()
        assert registry.tree["HKEY_CURRENT_USER/Software/Game"] == {
            "Volume": RegistryValueData("dword", 7)
        }
