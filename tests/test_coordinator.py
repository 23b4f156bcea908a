"""Tests for batch orchestration."""

import errno
import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from safemove.config import SafeMoveConfig
from safemove.core import (
    BatchCoordinator,
    BatchRequest,
    CancellationToken,
    EventKind,
    ProgressChannel,
)
from safemove.errors import ConfigurationError, ValidationError
from safemove.mover import Operation, TransferExecutor, TransferRequest
from safemove.mover import executor as executor_module


def _move(source, destination, overwrite=False):
    return TransferRequest(source, destination, Operation.MOVE, overwrite)


def _copy(source, destination, overwrite=False):
    return TransferRequest(source, destination, Operation.COPY, overwrite)


class TestBatchCoordinator:
    """Tests for BatchCoordinator.run."""

    @pytest.fixture
    def coordinator(self, source_root, destination_root):
        return BatchCoordinator(source_root, destination_root)

    @pytest.fixture
    def episodes(self, source_root):
        """Three downloaded episodes in their own release folder."""
        release = source_root / "Show.S01.1080p"
        release.mkdir()
        for n in (1, 2, 3):
            (release / f"show.s01e0{n}.mkv").write_bytes(f"episode {n}".encode())
        return release

    def _episode_requests(self):
        return [
            _move(
                f"Show.S01.1080p/show.s01e0{n}.mkv",
                f"TV/Show/Season 1/Show - S01E0{n}.mkv",
            )
            for n in (1, 2, 3)
        ]

    def test_move_batch(self, coordinator, episodes, destination_root):
        """Test a clean move batch."""
        report = coordinator.run(self._episode_requests())

        assert report.completed_count == 3
        assert report.failed_count == 0
        assert report.errors == []
        assert report.success
        season = destination_root / "TV" / "Show" / "Season 1"
        assert (season / "Show - S01E02.mkv").read_bytes() == b"episode 2"

    def test_one_conflict_without_overwrite(self, coordinator, episodes, destination_root):
        """Test 3 moves with one pre-existing destination: 2 completed, 1 failed."""
        season = destination_root / "TV" / "Show" / "Season 1"
        season.mkdir(parents=True)
        (season / "Show - S01E02.mkv").write_bytes(b"already here")

        report = coordinator.run(self._episode_requests())

        assert report.completed_count == 2
        assert report.failed_count == 1
        assert report.errors == ["Already exists: Show - S01E02.mkv"]
        assert not report.success
        assert (season / "Show - S01E02.mkv").read_bytes() == b"already here"
        assert (episodes / "show.s01e02.mkv").exists()

    @pytest.mark.parametrize("total,conflicts", [(1, 1), (4, 0), (5, 2), (6, 6)])
    def test_counts_with_conflicts(
        self, coordinator, source_root, destination_root, total, conflicts
    ):
        """Test that N items with M conflicts report N-M completed and M failed."""
        requests = []
        for i in range(total):
            (source_root / f"f{i}.bin").write_bytes(b"x" * i)
            if i < conflicts:
                (destination_root / f"f{i}.bin").write_bytes(b"existing")
            requests.append(_move(f"f{i}.bin", f"f{i}.bin"))

        report = coordinator.run(requests)

        assert report.completed_count == total - conflicts
        assert report.failed_count == conflicts
        assert len(report.errors) == conflicts

    def test_overwrite(self, coordinator, episodes, destination_root):
        """Test that overwrite replaces pre-existing destinations."""
        season = destination_root / "TV" / "Show" / "Season 1"
        season.mkdir(parents=True)
        (season / "Show - S01E01.mkv").write_bytes(b"old")

        report = coordinator.run(
            [_move(r.source_path, r.destination_path, True) for r in self._episode_requests()]
        )

        assert report.completed_count == 3
        assert (season / "Show - S01E01.mkv").read_bytes() == b"episode 1"

    def test_cross_volume_move(self, coordinator, source_root, destination_root, monkeypatch):
        """Test a 10 MB move when rename fails across volumes."""
        data = os.urandom(10 * 1024 * 1024)
        (source_root / "film.mkv").write_bytes(data)

        def cross_device(src, dst):
            raise OSError(errno.EXDEV, "Invalid cross-device link")

        monkeypatch.setattr(executor_module.os, "rename", cross_device)

        report = coordinator.run([_move("film.mkv", "Movies/Film (2020)/Film (2020).mkv")])

        assert report.completed_count == 1
        assert report.outcomes[0].method == "copy"
        assert not (source_root / "film.mkv").exists()
        dest = destination_root / "Movies" / "Film (2020)" / "Film (2020).mkv"
        assert dest.read_bytes() == data

    def test_copy_batch_keeps_sources(self, coordinator, episodes):
        """Test that copy leaves sources and their folder in place."""
        requests = [_copy(r.source_path, r.destination_path) for r in self._episode_requests()]

        report = coordinator.run(requests)

        assert report.completed_count == 3
        assert len(list(episodes.iterdir())) == 3

    def test_invalid_source_does_not_abort(self, coordinator, source_root, destination_root):
        """Test that a rejected source fails alone and siblings continue."""
        (source_root / "ok.mkv").write_text("ok")

        report = coordinator.run(
            [_move("../media-other/secret.txt", "stolen.txt"), _move("ok.mkv", "ok.mkv")]
        )

        assert report.completed_count == 1
        assert report.errors == ["Invalid source: ../media-other/secret.txt"]
        assert (destination_root / "ok.mkv").exists()
        assert not (destination_root / "stolen.txt").exists()

    def test_zone_root_is_not_a_valid_source(self, coordinator):
        """Test that the source zone root itself cannot be transferred."""
        report = coordinator.run([_move("/", "everything")])
        assert report.errors == ["Invalid source: /"]

    @pytest.mark.parametrize("destination", ["", "/", "../..", "./."])
    def test_invalid_destination(self, coordinator, source_root, destination):
        """Test that destinations sanitizing to nothing are rejected."""
        (source_root / "a.mkv").write_text("a")

        report = coordinator.run([_move("a.mkv", destination)])

        assert report.failed_count == 1
        assert report.errors == [f"Invalid destination: {destination}"]
        assert (source_root / "a.mkv").exists()

    def test_destination_traversal_is_confined(
        self, coordinator, source_root, destination_root, tmp_path
    ):
        """Test that '..' in a destination cannot leave the destination zone."""
        (source_root / "a.mkv").write_text("a")

        report = coordinator.run([_move("a.mkv", "../../escape/a.mkv")])

        assert report.completed_count == 1
        assert (destination_root / "escape" / "a.mkv").exists()
        assert not (tmp_path / "escape").exists()

    def test_destination_symlink_escape(
        self, coordinator, source_root, destination_root, outside
    ):
        """Test that a symlink in the destination zone cannot redirect writes."""
        (source_root / "a.mkv").write_text("a")
        (destination_root / "link").symlink_to(outside, target_is_directory=True)

        report = coordinator.run([_move("a.mkv", "link/sub/a.mkv")])

        assert report.failed_count == 1
        assert report.errors[0].startswith("Invalid destination: link/sub/a.mkv")
        assert not (outside / "sub").exists()
        assert (source_root / "a.mkv").exists()

    def test_parent_directories_created_once(
        self, coordinator, episodes, destination_root, monkeypatch
    ):
        """Test that a shared destination parent is created only once per batch."""
        calls = []
        nested = []
        real_mkdir = Path.mkdir

        def counting_mkdir(self, *args, **kwargs):
            # parents=True recurses through Path.mkdir; count only top-level calls
            if not nested:
                calls.append(self)
            nested.append(self)
            try:
                return real_mkdir(self, *args, **kwargs)
            finally:
                nested.pop()

        monkeypatch.setattr(Path, "mkdir", counting_mkdir)

        coordinator.run(self._episode_requests())

        assert calls == [destination_root / "TV" / "Show" / "Season 1"]

    def test_cleanup_removes_emptied_directory_only(
        self, coordinator, source_root, destination_root
    ):
        """Test that an emptied source folder is removed and a non-empty sibling kept."""
        (source_root / "a").mkdir()
        (source_root / "b").mkdir()
        (source_root / "a" / "ep1.mkv").write_text("1")
        (source_root / "b" / "ep2.mkv").write_text("2")
        (source_root / "b" / "notes.txt").write_text("unrelated")

        report = coordinator.run([_move("a/ep1.mkv", "ep1.mkv"), _move("b/ep2.mkv", "ep2.mkv")])

        assert report.completed_count == 2
        assert not (source_root / "a").exists()
        assert (source_root / "b" / "notes.txt").exists()
        assert source_root.is_dir()

    def test_cleanup_deepest_first(self, coordinator, source_root):
        """Test that nested emptied folders are removed child before parent."""
        (source_root / "outer" / "inner").mkdir(parents=True)
        (source_root / "outer" / "inner" / "x.mkv").write_text("x")
        (source_root / "outer" / "y.mkv").write_text("y")

        coordinator.run([_move("outer/y.mkv", "y.mkv"), _move("outer/inner/x.mkv", "x.mkv")])

        assert not (source_root / "outer").exists()

    def test_cleanup_includes_failed_items(self, coordinator, source_root, destination_root):
        """Test that folders of validated-but-failed items are still considered."""
        (source_root / "done").mkdir()
        (source_root / "done" / "a.mkv").write_text("a")
        (source_root / "gone").mkdir()

        report = coordinator.run(
            [_move("done/a.mkv", "a.mkv"), _move("gone/missing.mkv", "missing.mkv")]
        )

        assert report.completed_count == 1
        assert report.failed_count == 1
        assert not (source_root / "done").exists()
        assert not (source_root / "gone").exists()

    def test_missing_source_creates_no_destination_folders(
        self, coordinator, source_root, destination_root
    ):
        """Test that a missing source fails before its destination parent is created."""
        report = coordinator.run([_move("gone.mkv", "New/Folder/gone.mkv")])

        assert report.errors == ["Source missing: gone.mkv"]
        assert report.outcomes[0].error_code == "FILESYSTEM"
        assert list(destination_root.iterdir()) == []

    def test_no_cleanup_when_nothing_succeeded(self, coordinator, source_root):
        """Test that cleanup only runs after at least one successful move."""
        (source_root / "empty").mkdir()

        coordinator.run([_move("empty/missing.mkv", "missing.mkv")])

        assert (source_root / "empty").is_dir()

    def test_cleanup_disabled(self, source_root, destination_root):
        """Test turning cleanup off."""
        coordinator = BatchCoordinator(source_root, destination_root, cleanup_empty_dirs=False)
        (source_root / "a").mkdir()
        (source_root / "a" / "x.mkv").write_text("x")

        coordinator.run([_move("a/x.mkv", "x.mkv")])

        assert (source_root / "a").is_dir()

    def test_unexpected_error_is_per_item(self, source_root, destination_root):
        """Test that an executor failure on one item does not stop the next."""
        (source_root / "a.mkv").write_text("a")
        (source_root / "b.mkv").write_text("b")
        executor = TransferExecutor()
        coordinator = BatchCoordinator(source_root, destination_root, executor=executor)
        original = executor._execute

        def flaky(request):
            if request.destination_path.endswith("a.mkv"):
                raise PermissionError(errno.EACCES, "Permission denied", request.source_path)
            return original(request)

        executor._execute = flaky

        report = coordinator.run([_move("a.mkv", "a.mkv"), _move("b.mkv", "b.mkv")])

        assert report.completed_count == 1
        assert report.errors == ["Failed: a.mkv: Permission denied"]

    def test_batch_request_input(self, coordinator, source_root, destination_root):
        """Test running a parsed BatchRequest."""
        (source_root / "a.mkv").write_text("a")
        batch = BatchRequest.parse(
            {"operation": "copy", "files": [{"sourcePath": "a.mkv", "destinationPath": "b.mkv"}]}
        )

        report = coordinator.run(batch)

        assert report.completed_count == 1
        assert (source_root / "a.mkv").exists()
        assert (destination_root / "b.mkv").exists()

    def test_empty_batch_rejected(self, coordinator):
        """Test that an empty request list is a fatal validation error."""
        with pytest.raises(ValidationError, match="files array is required"):
            coordinator.run([])

    def test_non_request_items_rejected(self, coordinator):
        """Test that malformed items are rejected before anything runs."""
        with pytest.raises(ValidationError):
            coordinator.run([{"sourcePath": "a", "destinationPath": "b"}])

    def test_missing_zone_root(self, source_root, tmp_path):
        """Test that a missing zone root is a configuration error."""
        coordinator = BatchCoordinator(source_root, tmp_path / "not-there")
        with pytest.raises(ConfigurationError):
            coordinator.run([_move("a", "b")])

    def test_journal_records_each_item(self, source_root, destination_root):
        """Test that every outcome is passed to the journal."""
        (source_root / "a.mkv").write_text("a")
        journal = MagicMock()
        coordinator = BatchCoordinator(source_root, destination_root, journal=journal)

        report = coordinator.run([_move("a.mkv", "a.mkv"), _move("missing", "missing")])

        assert journal.record.call_count == 2
        batch_ids = {call.args[0] for call in journal.record.call_args_list}
        assert batch_ids == {report.batch_id}
        first_request = journal.record.call_args_list[0].args[1]
        assert first_request.source_path == "a.mkv"

    def test_report_never_leaks_zone_roots(self, coordinator, source_root, destination_root):
        """Test that error strings are zone-relative."""
        (source_root / "a.mkv").write_text("a")
        (destination_root / "a.mkv").write_text("exists")

        report = coordinator.run(
            [_move("a.mkv", "a.mkv"), _move("missing.mkv", "m.mkv"), _move("../x", "x")]
        )

        for error in report.errors:
            assert str(source_root) not in error
            assert str(destination_root) not in error


class TestProgressEvents:
    """Tests for progress reporting through a channel."""

    @pytest.fixture
    def coordinator(self, source_root, destination_root):
        return BatchCoordinator(source_root, destination_root)

    def test_events_in_order(self, coordinator, source_root, destination_root):
        """Test that a progress event precedes each item and one terminal event ends the stream."""
        for name in ("a", "b", "c"):
            (source_root / f"{name}.mkv").write_text(name)
        (destination_root / "b.mkv").write_text("exists")
        channel = ProgressChannel(maxsize=16)

        coordinator.run(
            [_move(f"{n}.mkv", f"{n}.mkv") for n in ("a", "b", "c")], channel=channel
        )
        events = list(channel)

        assert [e.kind for e in events] == [
            EventKind.PROGRESS,
            EventKind.PROGRESS,
            EventKind.PROGRESS,
            EventKind.COMPLETE,
        ]
        assert [e.current for e in events[:3]] == [1, 2, 3]
        assert [e.current_file for e in events[:3]] == ["a.mkv", "b.mkv", "c.mkv"]
        # counts are "so far", before the item starts
        assert [(e.completed, e.failed) for e in events[:3]] == [(0, 0), (1, 0), (1, 1)]
        assert events[-1].completed == 2
        assert events[-1].failed == 1
        assert events[-1].errors == ("Already exists: b.mkv",)
        assert events[-1].message == "Completed with 1 error(s)"
        assert channel.closed

    def test_fatal_error_event(self, coordinator):
        """Test that a fatal request error produces a single error event."""
        channel = ProgressChannel()

        with pytest.raises(ValidationError):
            coordinator.run([], channel=channel)
        events = list(channel)

        assert len(events) == 1
        assert events[0].kind is EventKind.ERROR
        assert events[0].errors == ("files array is required",)
        assert events[0].message == "Operation failed"

    def test_configuration_error_event_counts_items(self, source_root, tmp_path):
        """Test that a rejected batch reports how many items it held."""
        coordinator = BatchCoordinator(source_root, tmp_path / "not-there")
        batch = BatchRequest.parse(
            {
                "operation": "move",
                "files": [
                    {"sourcePath": "a.mkv", "destinationPath": "a.mkv"},
                    {"sourcePath": "b.mkv", "destinationPath": "b.mkv"},
                ],
            }
        )
        channel = ProgressChannel()

        with pytest.raises(ConfigurationError):
            coordinator.run(batch, channel=channel)
        events = list(channel)

        assert [e.kind for e in events] == [EventKind.ERROR]
        assert events[0].total == 2
        assert events[0].failed == 2
        assert events[0].completed == 0

    def test_cancellation_finishes_current_item(self, source_root, destination_root):
        """Test that cancelling stops before the next item and leaves it untouched."""
        for name in ("a", "b", "c"):
            (source_root / f"{name}.mkv").write_text(name)
        token = CancellationToken()
        executor = TransferExecutor()
        original = executor.execute

        def execute_then_cancel(request):
            outcome = original(request)
            token.cancel()
            return outcome

        executor.execute = execute_then_cancel
        coordinator = BatchCoordinator(source_root, destination_root, executor=executor)
        channel = ProgressChannel()

        report = coordinator.run(
            [_move(f"{n}.mkv", f"{n}.mkv") for n in ("a", "b", "c")],
            channel=channel,
            cancel=token,
        )
        events = list(channel)

        assert report.cancelled
        assert report.completed_count == 1
        assert report.failed_count == 0
        assert (destination_root / "a.mkv").exists()
        assert (source_root / "b.mkv").exists()
        assert events[-1].kind is EventKind.COMPLETE
        assert events[-1].cancelled
        assert events[-1].current == 1


class TestBatchStream:
    """Tests for streaming a batch from a worker thread."""

    def test_stream_all_events(self, source_root, destination_root):
        """Test consuming a full stream."""
        for n in range(5):
            (source_root / f"{n}.mkv").write_text(str(n))
        coordinator = BatchCoordinator(source_root, destination_root, progress_buffer=2)

        stream = coordinator.stream([_move(f"{n}.mkv", f"{n}.mkv") for n in range(5)])
        events = list(stream)
        report = stream.join(timeout=10)

        assert len(events) == 6
        assert events[-1].kind is EventKind.COMPLETE
        assert report.completed_count == 5
        assert stream.error is None

    def test_early_disconnect_keeps_processing(self, source_root, destination_root):
        """Test that a consumer leaving early does not stop the batch."""
        for n in range(10):
            (source_root / f"{n}.mkv").write_text(str(n))
        coordinator = BatchCoordinator(source_root, destination_root, progress_buffer=1)

        stream = coordinator.stream([_move(f"{n}.mkv", f"{n}.mkv") for n in range(10)])
        for event in stream:
            assert event.current == 1
            break
        stream.close()
        report = stream.join(timeout=10)

        assert report is not None
        assert report.completed_count == 10
        assert all((destination_root / f"{n}.mkv").exists() for n in range(10))

    def test_stream_fatal_error(self, source_root, destination_root):
        """Test that a rejected batch streams one error event."""
        coordinator = BatchCoordinator(source_root, destination_root)

        stream = coordinator.stream([])
        events = list(stream)
        stream.join(timeout=10)

        assert [e.kind for e in events] == [EventKind.ERROR]
        assert isinstance(stream.error, ValidationError)
        assert stream.report is None


class TestFromConfig:
    """Tests for building a coordinator from configuration."""

    def test_from_environment(self, zone_env, source_root, destination_root):
        """Test that zone roots come from the environment."""
        config = SafeMoveConfig()
        coordinator = BatchCoordinator.from_config(config)
        assert coordinator.source_root == source_root
        assert coordinator.destination_root == destination_root

    def test_unset_zone_is_fatal(self, monkeypatch):
        """Test that an unset zone root raises ConfigurationError."""
        monkeypatch.delenv("DOWNLOAD_PATH", raising=False)
        monkeypatch.delenv("MEDIA_PATH", raising=False)
        with pytest.raises(ConfigurationError, match="DOWNLOAD_PATH"):
            BatchCoordinator.from_config(SafeMoveConfig())
