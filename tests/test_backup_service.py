"""Tests for backup, resume, restore and verify."""

import hashlib

import pytest

from blobstore.local_backend import LocalDirectoryBackend
from common.exceptions import (
    BackupIOError,
    ChecksumMismatchError,
    FileRecordNotFoundError,
    IncompleteBackup,
    ValidationError,
)
from common.types import FileStatus
from vault.catalog import MetadataCatalog
from vault.config import BackupSettings, RetrySettings, default_backends
from vault.services import BackupOrchestrator
from vault.services.backup_service import remote_key_for

MIB = 1024 * 1024


def corrupt(backend, key):
    data = bytearray(backend.get(key))
    data[len(data) // 2] ^= 0xFF
    backend.put(key, bytes(data))


@pytest.fixture
def flaky_backends(flaky_backend_cls):
    """Backends A, B, C where every put to B fails."""
    return [flaky_backend_cls("A"), flaky_backend_cls("B", fail_times=1000), flaky_backend_cls("C")]


@pytest.fixture
def failed_backup(settings_factory, catalog, flaky_backends, sample_file):
    """A backup of sample_file whose chunk 1 (on B) never uploaded."""
    orch = BackupOrchestrator(settings_factory(max_attempts=2), catalog=catalog, backends=flaky_backends)
    report = orch.run_backup(str(sample_file))
    yield orch, report
    orch.close()


class TestBackup:

    def test_25_mib_file_in_10_mib_chunks(self, settings_factory, catalog, backends, tmp_path):
        source = tmp_path / "big.bin"
        data = hashlib.sha256(b"seed").digest() * (25 * MIB // 32)
        source.write_bytes(data)

        with BackupOrchestrator(settings_factory(chunk_size=10 * MIB), catalog=catalog, backends=backends) as orch:
            report = orch.run_backup(str(source))

            assert report.status == FileStatus.COMPLETED
            assert report.chunk_count == 3
            chunks = catalog.list_chunks(report.file_id)
            assert [c.chunk_size for c in chunks] == [10 * MIB, 10 * MIB, 5 * MIB]
            assert [c.backend_name for c in chunks] == ["A", "B", "C"]
            assert catalog.get_file(report.file_id).status == FileStatus.COMPLETED

            restored = tmp_path / "restored.bin"
            result = orch.restore(report.file_id, str(restored))

        assert restored.read_bytes() == data
        assert result.bytes_written == len(data)
        assert result.sha256 == hashlib.sha256(data).hexdigest()

    def test_backup_returns_file_id(self, orchestrator, catalog, sample_file):
        file_id = orchestrator.backup(str(sample_file))
        record = catalog.get_file(file_id)
        assert record.status == FileStatus.COMPLETED
        assert record.file_size == sample_file.stat().st_size
        assert record.original_path == str(sample_file.resolve())

    def test_round_robin_placement_and_remote_keys(self, orchestrator, backends, sample_file):
        file_id = orchestrator.backup(str(sample_file))
        for index, backend in enumerate(backends):
            assert backend.list_keys() == [remote_key_for(file_id, index)]
        assert remote_key_for(file_id, 2) == f"file_{file_id}_chunk_2.enc"

    def test_blobs_are_encrypted(self, orchestrator, backends, sample_file):
        file_id = orchestrator.backup(str(sample_file))
        blob = backends[0].get(remote_key_for(file_id, 0))
        assert sample_file.read_bytes()[:64] not in blob

    def test_each_backup_gets_fresh_key_material(self, orchestrator, catalog, sample_file):
        first = catalog.get_file(orchestrator.backup(str(sample_file)))
        second = catalog.get_file(orchestrator.backup(str(sample_file)))
        assert first.encryption_key != second.encryption_key
        assert first.encryption_nonce_seed != second.encryption_nonce_seed

    def test_empty_file(self, orchestrator, catalog, tmp_path):
        source = tmp_path / "empty.bin"
        source.write_bytes(b"")

        report = orchestrator.run_backup(str(source))
        assert report.status == FileStatus.COMPLETED
        assert report.chunk_count == 0
        assert catalog.list_chunks(report.file_id) == []

        restored = tmp_path / "empty.out"
        orchestrator.restore(report.file_id, str(restored))
        assert restored.read_bytes() == b""

    def test_missing_source(self, orchestrator, catalog, tmp_path):
        with pytest.raises(BackupIOError):
            orchestrator.backup(str(tmp_path / "nope.bin"))
        assert catalog.list_files() == []

    def test_directory_source(self, orchestrator, tmp_path):
        with pytest.raises(BackupIOError):
            orchestrator.backup(str(tmp_path))

    def test_failed_chunk_marks_file_failed(self, failed_backup, catalog):
        _, report = failed_backup
        assert report.status == FileStatus.FAILED
        assert report.failed_indices == [1]
        assert report.failed_chunks[0].backend_name == "B"
        assert report.failed_chunks[0].attempts == 2
        assert catalog.get_file(report.file_id).status == FileStatus.FAILED
        assert catalog.uploaded_indices(report.file_id) == {0, 2}

    def test_local_directory_providers(self, tmp_path, sample_file):
        settings = BackupSettings(
            database_path=str(tmp_path / "catalog.db"),
            chunk_size_bytes=1024,
            retry=RetrySettings(backoff_base_seconds=0.0),
            backends=default_backends(str(tmp_path / "backup")),
        )
        with BackupOrchestrator(settings) as orch:
            file_id = orch.backup(str(sample_file))
            restored = tmp_path / "out.bin"
            orch.restore(file_id, str(restored))

        assert restored.read_bytes() == sample_file.read_bytes()
        gdrive = LocalDirectoryBackend("GoogleDrive", str(tmp_path / "backup" / "googledrive"))
        assert gdrive.list_keys() == [remote_key_for(file_id, 0)]


class TestResume:

    def test_resume_uploads_only_missing_chunks(self, failed_backup, flaky_backends, catalog, sample_file, tmp_path):
        orch, report = failed_backup
        a, b, c = flaky_backends
        b.fail_times = 0
        calls_before = (len(a.put_calls), len(c.put_calls))

        resumed = orch.resume(report.file_id)

        assert resumed.status == FileStatus.COMPLETED
        assert resumed.skipped_count == 2
        assert resumed.uploaded_count == 3
        assert (len(a.put_calls), len(c.put_calls)) == calls_before
        assert b.put_calls[-1] == remote_key_for(report.file_id, 1)
        assert catalog.get_file(report.file_id).status == FileStatus.COMPLETED

        restored = tmp_path / "restored.bin"
        orch.restore(report.file_id, str(restored))
        assert restored.read_bytes() == sample_file.read_bytes()

    def test_resume_after_restart(self, failed_backup, flaky_backends, settings_factory, sample_file, tmp_path):
        """A fresh catalog and orchestrator pick up a backup left with 2 of 3 chunks."""
        orch, report = failed_backup
        orch.close()
        a, b, c = flaky_backends
        b.fail_times = 0
        calls_before = (len(a.put_calls), len(c.put_calls))
        b_calls_before = len(b.put_calls)

        settings = settings_factory()
        reopened = MetadataCatalog(settings.database_path)
        assert reopened.uploaded_indices(report.file_id) == {0, 2}

        with BackupOrchestrator(settings, catalog=reopened, backends=flaky_backends) as restarted:
            resumed = restarted.resume(report.file_id)

            assert resumed.status == FileStatus.COMPLETED
            assert resumed.skipped_count == 2
            assert (len(a.put_calls), len(c.put_calls)) == calls_before
            assert b.put_calls[b_calls_before:] == [remote_key_for(report.file_id, 1)]
            assert reopened.get_file(report.file_id).status == FileStatus.COMPLETED

            restored = tmp_path / "restored.bin"
            restarted.restore(report.file_id, str(restored))
            assert restored.read_bytes() == sample_file.read_bytes()

    def test_run_backup_with_resume_file_id(self, failed_backup, flaky_backends):
        orch, report = failed_backup
        flaky_backends[1].fail_times = 0
        assert orch.run_backup("ignored", resume_file_id=report.file_id).status == FileStatus.COMPLETED

    def test_resume_completed_is_noop(self, orchestrator, backends, sample_file):
        file_id = orchestrator.backup(str(sample_file))
        report = orchestrator.resume(file_id)
        assert report.status == FileStatus.COMPLETED
        assert report.skipped_count == 3
        assert sum(len(b.list_keys()) for b in backends) == 3

    def test_resume_still_failing(self, failed_backup):
        orch, report = failed_backup
        again = orch.resume(report.file_id)
        assert again.status == FileStatus.FAILED
        assert again.failed_indices == [1]

    def test_resume_rejects_changed_source(self, failed_backup, sample_file):
        orch, report = failed_backup
        sample_file.write_bytes(b"different length")
        with pytest.raises(ValidationError):
            orch.resume(report.file_id)

    def test_resume_unknown_file(self, orchestrator):
        with pytest.raises(FileRecordNotFoundError):
            orchestrator.resume("unknown")


class TestRestore:

    def test_missing_blob(self, orchestrator, backends, sample_file, tmp_path):
        file_id = orchestrator.backup(str(sample_file))
        backends[1].delete(remote_key_for(file_id, 1))
        destination = tmp_path / "out.bin"

        with pytest.raises(IncompleteBackup) as exc_info:
            orchestrator.restore(file_id, str(destination))

        assert exc_info.value.missing_indices == [1]
        assert exc_info.value.missing_backends == {1: "B"}
        assert not destination.exists()
        assert list(tmp_path.glob("*.partial")) == []

    def test_all_missing_blobs_reported(self, orchestrator, backends, sample_file, tmp_path):
        file_id = orchestrator.backup(str(sample_file))
        backends[0].delete(remote_key_for(file_id, 0))
        backends[2].delete(remote_key_for(file_id, 2))

        with pytest.raises(IncompleteBackup) as exc_info:
            orchestrator.restore(file_id, str(tmp_path / "out.bin"))
        assert exc_info.value.missing_indices == [0, 2]
        assert exc_info.value.missing_backends == {0: "A", 2: "C"}

    def test_missing_chunk_rows(self, failed_backup, tmp_path):
        orch, report = failed_backup
        with pytest.raises(IncompleteBackup) as exc_info:
            orch.restore(report.file_id, str(tmp_path / "out.bin"))
        assert exc_info.value.missing_indices == [1]
        assert exc_info.value.missing_backends == {1: "B"}

    def test_unknown_backend(self, settings, catalog, orchestrator, backends, sample_file, tmp_path):
        file_id = orchestrator.backup(str(sample_file))
        with BackupOrchestrator(settings, catalog=catalog, backends=backends[:2]) as partial:
            with pytest.raises(IncompleteBackup) as exc_info:
                partial.restore(file_id, str(tmp_path / "out.bin"))
        assert exc_info.value.missing_backends == {2: "C"}

    def test_checksum_mismatch(self, orchestrator, backends, sample_file, tmp_path):
        file_id = orchestrator.backup(str(sample_file))
        corrupt(backends[0], remote_key_for(file_id, 0))
        destination = tmp_path / "out.bin"

        with pytest.raises(ChecksumMismatchError) as exc_info:
            orchestrator.restore(file_id, str(destination))

        assert exc_info.value.chunk_index == 0
        assert not destination.exists()

    def test_overwrites_existing_destination(self, orchestrator, sample_file, tmp_path):
        file_id = orchestrator.backup(str(sample_file))
        destination = tmp_path / "nested" / "out.bin"
        destination.parent.mkdir()
        destination.write_bytes(b"old")

        orchestrator.restore(file_id, str(destination))
        assert destination.read_bytes() == sample_file.read_bytes()

    def test_unknown_file(self, orchestrator, tmp_path):
        with pytest.raises(FileRecordNotFoundError):
            orchestrator.restore("unknown", str(tmp_path / "out.bin"))


class TestVerifyAndListing:

    def test_verify_ok(self, orchestrator, sample_file):
        file_id = orchestrator.backup(str(sample_file))
        report = orchestrator.verify(file_id)
        assert report.ok
        assert report.checked_count == 3

    def test_verify_reports_bad_chunks(self, orchestrator, backends, sample_file):
        file_id = orchestrator.backup(str(sample_file))
        corrupt(backends[0], remote_key_for(file_id, 0))
        backends[2].delete(remote_key_for(file_id, 2))

        report = orchestrator.verify(file_id)
        assert not report.ok
        assert report.bad_indices == [0, 2]
        assert [p.backend_name for p in report.problems] == ["A", "C"]

    def test_verify_failed_backup(self, failed_backup):
        orch, report = failed_backup
        assert orch.verify(report.file_id).bad_indices == [1]

    def test_describe(self, orchestrator, sample_file):
        file_id = orchestrator.backup(str(sample_file))
        summary = orchestrator.describe(file_id)
        assert summary.status == FileStatus.COMPLETED
        assert summary.uploaded_count == 3
        assert summary.placement == {"A": 1, "B": 1, "C": 1}

    def test_list_backups(self, orchestrator, sample_file):
        first = orchestrator.backup(str(sample_file))
        second = orchestrator.backup(str(sample_file))
        assert {s.file_id for s in orchestrator.list_backups()} == {first, second}
