"""
Service-level tests for the ingestion pipeline.

These run the real pipeline end to end: real files in a temporary directory,
real worker threads and the real ledger on disk. The watcher scenario uses
watchdog's polling observer so the test does not depend on inotify limits.
"""

import json
import os
import threading
import time

import pytest

pytest.importorskip("watchdog", reason="watchdog dependency is required for pipeline tests")

from app.models.schemas import ChangeEvent, ChangeKind, FileRecord  # noqa: E402
from app.utils.config import Settings  # noqa: E402
from app.utils.errors import WatchPathError  # noqa: E402
from domains.file_ledger.service import IngestionPipeline, PipelineState  # noqa: E402


def make_settings(tmp_path, **overrides) -> Settings:
    target = tmp_path / "watched"
    target.mkdir(exist_ok=True)
    values = {
        "target_directory": target,
        "storage_location": tmp_path / "ledger.json",
        "concurrency_level": 4,
        "use_polling": True,
        "poll_interval": 0.05,
    }
    values.update(overrides)
    return Settings(**values)


def wait_for_records(pipeline: IngestionPipeline, count: int, timeout: float = 10.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pipeline.pool.stats.snapshot()["recorded"] >= count:
            return
        time.sleep(0.05)


def test_concurrently_created_files_are_each_recorded_once(tmp_path):
    """Ten files created at once with four workers yield exactly ten records."""
    settings = make_settings(tmp_path)
    staging = tmp_path / "staging"
    staging.mkdir()

    sizes = {}
    for i in range(10):
        source = staging / f"file-{i}.dat"
        source.write_bytes(os.urandom(100 * (i + 1)))
        sizes[f"file-{i}.dat"] = source.stat().st_size

    pipeline = IngestionPipeline(settings)
    pipeline.start()
    assert pipeline.state is PipelineState.RUNNING

    target = pipeline.source.target
    barrier = threading.Barrier(10)

    def create(name: str) -> None:
        barrier.wait()
        # A hard link appears fully written in a single creation event.
        os.link(staging / name, target / name)

    creators = [threading.Thread(target=create, args=(name,)) for name in sizes]
    for creator in creators:
        creator.start()
    for creator in creators:
        creator.join()

    wait_for_records(pipeline, 10)
    assert pipeline.stop(timeout=10)
    assert pipeline.state is PipelineState.STOPPED

    ledger = json.loads(settings.storage_location.read_text())
    assert len(ledger) == 10
    assert {entry["path"]: entry["size"] for entry in ledger} == {
        str(target / name): size for name, size in sizes.items()
    }


def test_deleted_path_is_skipped_and_remaining_paths_processed(tmp_path, log_messages):
    settings = make_settings(tmp_path, concurrency_level=2)
    target = settings.target_directory
    keep = [target / f"keep-{i}.txt" for i in range(3)]
    for path in keep:
        path.write_text("content")
    doomed = target / "doomed.txt"
    doomed.write_text("short lived")
    doomed.unlink()

    pipeline = IngestionPipeline(settings)
    pipeline.start(watch=False)
    pipeline.submit(ChangeEvent(path=str(doomed), kind=ChangeKind.CREATED))
    for path in keep:
        pipeline.submit(ChangeEvent(path=str(path), kind=ChangeKind.CREATED))
    assert pipeline.stop(timeout=10)

    records = pipeline.store.load()
    assert sorted(r.path for r in records) == sorted(str(p) for p in keep)
    assert pipeline.pool.stats.skipped == 1
    assert any("Skipping" in m and str(doomed) in m for m in log_messages)


def test_deleted_path_leaves_existing_ledger_unchanged(tmp_path):
    settings = make_settings(tmp_path, concurrency_level=1)
    settings.storage_location.write_text(
        json.dumps([{"path": "/earlier/file", "size": 7}], indent=2) + "\n"
    )
    before = settings.storage_location.read_bytes()

    pipeline = IngestionPipeline(settings)
    pipeline.start(watch=False)
    pipeline.submit(
        ChangeEvent(path=str(settings.target_directory / "gone"), kind=ChangeKind.MODIFIED)
    )
    assert pipeline.stop(timeout=10)

    assert settings.storage_location.read_bytes() == before


def test_repeated_modifications_are_all_recorded(tmp_path):
    settings = make_settings(tmp_path, concurrency_level=1)
    path = settings.target_directory / "grows.log"

    pipeline = IngestionPipeline(settings)
    pipeline.start(watch=False)
    for count, size in enumerate((1, 5, 9), start=1):
        path.write_bytes(b"x" * size)
        pipeline.submit(ChangeEvent(path=str(path), kind=ChangeKind.MODIFIED))
        # Wait so each stat sees the size written above.
        wait_for_records(pipeline, count)
    pipeline.stop(timeout=10)

    assert pipeline.store.load() == [
        FileRecord(path=str(path), size=1),
        FileRecord(path=str(path), size=5),
        FileRecord(path=str(path), size=9),
    ]


def test_many_producers_with_small_queue_lose_nothing(tmp_path):
    settings = make_settings(tmp_path, concurrency_level=2)
    target = settings.target_directory
    paths = []
    for i in range(40):
        path = target / f"f{i}"
        path.write_bytes(b"y" * i)
        paths.append(path)

    pipeline = IngestionPipeline(settings)
    pipeline.start(watch=False)

    def produce(chunk) -> None:
        for path in chunk:
            pipeline.submit(ChangeEvent(path=str(path), kind=ChangeKind.CREATED))

    producers = [threading.Thread(target=produce, args=(paths[i::4],)) for i in range(4)]
    for producer in producers:
        producer.start()
    for producer in producers:
        producer.join()
    assert pipeline.stop(timeout=10)

    records = pipeline.store.load()
    assert len(records) == 40
    assert {(r.path, r.size) for r in records} == {(str(p), p.stat().st_size) for p in paths}


def test_corrupt_ledger_drops_records_without_overwriting(tmp_path, log_messages):
    settings = make_settings(tmp_path, concurrency_level=1)
    settings.storage_location.write_text("{ definitely not a ledger")
    path = settings.target_directory / "a.txt"
    path.write_text("a")

    pipeline = IngestionPipeline(settings)
    pipeline.start(watch=False)
    pipeline.submit(ChangeEvent(path=str(path), kind=ChangeKind.CREATED))
    assert pipeline.stop(timeout=10)

    assert settings.storage_location.read_text() == "{ definitely not a ledger"
    assert pipeline.pool.stats.failed == 1
    assert any("unreadable" in m for m in log_messages)


def test_undecodable_ledger_does_not_abort_startup(tmp_path, log_messages):
    settings = make_settings(tmp_path, concurrency_level=1)
    settings.storage_location.write_bytes(b"\xff\xfe[]")
    path = settings.target_directory / "a.txt"
    path.write_text("a")

    pipeline = IngestionPipeline(settings)
    pipeline.start(watch=False)
    assert pipeline.state is PipelineState.RUNNING

    pipeline.submit(ChangeEvent(path=str(path), kind=ChangeKind.CREATED))
    assert pipeline.stop(timeout=10)

    assert settings.storage_location.read_bytes() == b"\xff\xfe[]"
    assert pipeline.pool.stats.failed == 1
    assert any("unreadable" in m for m in log_messages)
    assert any("Dropping record" in m for m in log_messages)


def test_missing_target_directory_fails_start_and_releases_workers(tmp_path):
    settings = make_settings(tmp_path, target_directory=tmp_path / "nowhere")

    pipeline = IngestionPipeline(settings)
    with pytest.raises(WatchPathError):
        pipeline.start()

    assert pipeline.state is PipelineState.STOPPED
    assert pipeline.pool.alive == 0


def test_pipeline_as_context_manager(tmp_path):
    settings = make_settings(tmp_path)

    with IngestionPipeline(settings) as pipeline:
        assert pipeline.state is PipelineState.RUNNING

    assert pipeline.state is PipelineState.STOPPED
    assert pipeline.stop() is True
