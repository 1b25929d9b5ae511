"""
Tests for the status store.

Validates:
- Deterministic key policy
- Record invariants and forward-compatible reads
- Atomic replacement with explicit permissions
- No temp files left on success or failure
- NotFound / Corrupt on the read side
- Listing
"""

import hashlib
import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from cronwrap.errors import Corrupt, NotFound, PersistenceFailure
from cronwrap.execution import SENTINEL_EXIT_STATUS, ExecutionOutcome, ExecutionResult
from cronwrap.status import StatusRecord, StatusStore, status_path, store_key


# =============================================================================
# Key policy
# =============================================================================


class TestStoreKey:

    def test_key_is_sha1_of_name(self):
        assert store_key("backup") == hashlib.sha1(b"backup").hexdigest()

    def test_same_name_same_path(self, status_dir):
        assert status_path(status_dir, "nightly backup") == status_path(status_dir, "nightly backup")

    def test_distinct_names_distinct_paths(self, status_dir):
        assert status_path(status_dir, "a") != status_path(status_dir, "b")

    @pytest.mark.parametrize("name", ["with/slash", "../escape", "new\nline", "tab\tand space", "ünïcödé"])
    def test_any_name_maps_directly_under_status_dir(self, status_dir, name):
        path = status_path(status_dir, name)

        assert path.parent == status_dir
        assert path.name == store_key(name) + ".json"


# =============================================================================
# Record model
# =============================================================================


class TestStatusRecord:

    def test_success_with_error_rejected(self, make_record):
        with pytest.raises(ValueError):
            make_record(success=True, error="boom")

    def test_failure_without_error_rejected(self, make_record):
        with pytest.raises(ValueError):
            make_record(success=False, error="", exit_status=1)

    def test_success_with_nonzero_exit_rejected(self, make_record):
        with pytest.raises(ValueError):
            make_record(success=True, exit_status=2)

    def test_empty_name_rejected(self, make_record):
        with pytest.raises(ValueError):
            make_record(name="")

    def test_from_failed_execution(self):
        started = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        result = ExecutionResult(
            command=["missing-program"],
            outcome=ExecutionOutcome.LAUNCH_FAILURE,
            exit_status=SENTINEL_EXIT_STATUS,
            error="No such file or directory",
            started_at=started,
        )

        record = StatusRecord.from_execution("job", result, user_name="alice", user_id="1000")

        assert record.name == "job"
        assert record.last_run == started
        assert record.command_line == ["missing-program"]
        assert record.success is False
        assert record.exit_status == SENTINEL_EXIT_STATUS
        assert record.error == "No such file or directory"
        assert record.environment is None

    def test_json_form_is_one_object_per_file(self, make_record):
        text = make_record().to_json()

        assert text.endswith("\n")
        data = json.loads(text)
        assert data["name"] == "backup"
        assert data["success"] is True
        assert data["command_line"] == ["/usr/local/bin/backup", "--full"]


# =============================================================================
# Writes
# =============================================================================


class TestStatusStoreWrite:

    def test_write_then_read(self, store, make_record):
        record = make_record(output="line 1\nline 2\n")

        path = store.write(record)

        assert path == store.path_for("backup")
        assert store.read("backup") == record

    def test_write_replaces_previous_record(self, store, make_record):
        store.write(make_record(output="first"))
        store.write(make_record(output="second", success=False, error="exit status 1", exit_status=1))

        record = store.read("backup")
        assert record.output == "second"
        assert record.success is False
        assert len(list(store.status_dir.iterdir())) == 1

    def test_no_temp_files_left(self, store, make_record):
        store.write(make_record("a"))
        store.write(make_record("b"))

        names = sorted(p.name for p in store.status_dir.iterdir())
        assert names == sorted([store_key("a") + ".json", store_key("b") + ".json"])

    @pytest.mark.posix
    @pytest.mark.parametrize("mode", [0o600, 0o640, 0o644])
    def test_mode_applied_regardless_of_umask(self, store, make_record, mode):
        previous = os.umask(0o077)
        try:
            path = store.write(make_record(), mode=mode)
        finally:
            os.umask(previous)

        assert path.stat().st_mode & 0o777 == mode

    def test_missing_status_dir_is_persistence_failure(self, tmp_path, make_record):
        missing = tmp_path / "does-not-exist"
        store = StatusStore(missing)

        with pytest.raises(PersistenceFailure) as exc_info:
            store.write(make_record())

        assert exc_info.value.name == "backup"
        assert exc_info.value.path == missing / (store_key("backup") + ".json")
        assert not missing.exists()

    def test_failed_replace_keeps_previous_record(self, store, make_record, monkeypatch):
        store.write(make_record(output="original"))

        def broken_replace(src, dst):
            raise OSError("disk on fire")

        monkeypatch.setattr(os, "replace", broken_replace)

        with pytest.raises(PersistenceFailure):
            store.write(make_record(output="replacement"))

        monkeypatch.undo()
        assert store.read("backup").output == "original"
        assert [p.name for p in store.status_dir.iterdir()] == [store_key("backup") + ".json"]

    def test_concurrent_reader_sees_whole_records(self, store, make_record):
        """A reader polling during repeated large writes never sees a partial file."""
        store.write(make_record(output="seed"))
        outputs = ["a" * 200_000, "b" * 250_000]
        errors = []
        done = threading.Event()

        def reader():
            while not done.is_set():
                try:
                    record = store.read("backup")
                except (Corrupt, NotFound) as e:
                    errors.append(e)
                    return
                if record.output not in ("seed", *outputs):
                    errors.append(AssertionError(f"mixed output of length {len(record.output)}"))
                    return

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for i in range(200):
                store.write(make_record(output=outputs[i % 2]))
        finally:
            done.set()
            thread.join(timeout=30)

        assert errors == []
        assert [p.name for p in store.status_dir.iterdir()] == [store_key("backup") + ".json"]

    def test_names_with_separators_stay_in_status_dir(self, store, make_record):
        path = store.write(make_record("../../etc/passwd"))

        assert path.parent == store.status_dir
        assert store.read("../../etc/passwd").name == "../../etc/passwd"


# =============================================================================
# Reads
# =============================================================================


class TestStatusStoreRead:

    def test_missing_record_is_not_found(self, store):
        with pytest.raises(NotFound) as exc_info:
            store.read("never-ran")

        assert exc_info.value.identifier == "never-ran"
        assert exc_info.value.path == store.path_for("never-ran")

    def test_empty_file_is_corrupt(self, store):
        store.path_for("job").write_text("")

        with pytest.raises(Corrupt) as exc_info:
            store.read("job")

        assert exc_info.value.reason == "empty file"

    def test_garbage_is_corrupt(self, store):
        store.path_for("job").write_text("{not json")

        with pytest.raises(Corrupt):
            store.read("job")

    def test_missing_field_is_corrupt(self, store):
        store.path_for("job").write_text(json.dumps({"name": "job"}))

        with pytest.raises(Corrupt):
            store.read("job")

    def test_contradictory_record_is_corrupt(self, store, make_record):
        data = json.loads(make_record("job").to_json())
        data["error"] = "exit status 1"
        store.path_for("job").write_text(json.dumps(data))

        with pytest.raises(Corrupt):
            store.read("job")

    def test_unknown_fields_are_ignored(self, store, make_record):
        data = json.loads(make_record("job").to_json())
        data["added_by_a_newer_version"] = {"anything": [1, 2, 3]}
        store.path_for("job").write_text(json.dumps(data))

        assert store.read("job").name == "job"

    def test_nanosecond_timestamps_are_accepted(self, store, make_record):
        data = json.loads(make_record("job").to_json())
        data["last_run"] = "2024-01-02T03:04:05.123456789Z"
        store.path_for("job").write_text(json.dumps(data))

        last_run = store.read("job").last_run
        assert last_run.microsecond == 123456
        assert last_run.utcoffset().total_seconds() == 0

    def test_read_path(self, store, make_record):
        path = store.write(make_record("job"))

        assert store.read_path(path).name == "job"

    def test_read_path_missing_uses_identifier(self, store, tmp_path):
        with pytest.raises(NotFound) as exc_info:
            store.read_path(tmp_path / "nope.json", identifier="nope")

        assert exc_info.value.identifier == "nope"


# =============================================================================
# Listing
# =============================================================================


class TestStatusStoreList:

    def test_empty_store(self, store):
        assert store.list() == []

    def test_list_sorted_by_key(self, store, make_record):
        for name in ["c", "a", "b"]:
            store.write(make_record(name))

        keys = [entry.key for entry in store.list()]
        assert keys == sorted(store_key(name) for name in ["a", "b", "c"])

    def test_list_ignores_temp_files_and_directories(self, store, make_record):
        store.write(make_record("job"))
        (store.status_dir / ".abc.123.tmp").write_text("partial")
        (store.status_dir / "subdir.json").mkdir()

        entries = store.list()
        assert [entry.key for entry in entries] == [store_key("job")]

    def test_list_with_names(self, store, make_record):
        store.write(make_record("job"))
        (store.status_dir / "broken.json").write_text("nope")

        names = {entry.key: entry.name for entry in store.list(with_names=True)}
        assert names == {store_key("job"): "job", "broken": None}

    def test_list_without_names_does_not_read(self, store):
        (store.status_dir / "broken.json").write_text("nope")

        entries = store.list()
        assert len(entries) == 1
        assert entries[0].name is None
        assert entries[0].path == Path(store.status_dir) / "broken.json"
