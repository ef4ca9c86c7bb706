from pathlib import Path

from psd_autoexport.batch import BatchRunner
from psd_autoexport.core import ConversionService
from psd_autoexport.formats import ExportFormat
from psd_autoexport.models import TargetKind, WatchTarget

from conftest import build_config, fake_decoder, write_source


def build_runner(**overrides) -> BatchRunner:
    config = build_config(**overrides)
    return BatchRunner(config, ConversionService(config, decoder=fake_decoder))


def populate(root: Path) -> list[Path]:
    sources = [
        write_source(root / "a.psd"),
        write_source(root / "nested" / "b.PSD"),
        write_source(root / "nested" / "deeper" / "c.psd"),
    ]
    (root / "readme.txt").write_text("hello", encoding="utf-8")
    (root / "nested" / "sketch.png").write_bytes(b"png")
    return sources


def test_run_once_converts_only_matching_files(tmp_path: Path) -> None:
    sources = populate(tmp_path)
    runner = build_runner()

    results = runner.run_once(WatchTarget(tmp_path, TargetKind.DIRECTORY), ExportFormat.PNG)

    assert len(results) == 3
    assert all(result.succeeded for result in results)
    outputs = sorted(path for path in tmp_path.rglob("*.png") if path.name != "sketch.png")
    assert outputs == sorted(source.with_suffix(".png") for source in sources)
    assert not (tmp_path / "readme.png").exists()


def test_decode_failure_does_not_stop_the_batch(tmp_path: Path) -> None:
    populate(tmp_path)
    (tmp_path / "nested" / "broken.psd").write_text("garbage", encoding="utf-8")
    runner = build_runner()

    batch = runner.run_batch(WatchTarget(tmp_path, TargetKind.DIRECTORY))

    failures = [result for result in batch.results if not result.succeeded]
    assert len(batch.results) == 4
    assert [result.source_path.name for result in failures] == ["broken.psd"]
    assert batch.summary.total == 4
    assert batch.summary.successes == 3
    assert batch.summary.failures == 1
    assert batch.summary.errors == {"DECODE": 1}


def test_parallel_batch_keeps_traversal_order(tmp_path: Path) -> None:
    sources = populate(tmp_path)
    runner = build_runner(batch_parallelism=3)

    results = runner.run_once(WatchTarget(tmp_path, TargetKind.DIRECTORY), ExportFormat.JPG)

    assert [result.source_path for result in results] == sorted(sources)
    assert all(result.target_path.suffix == ".jpg" for result in results)


def test_single_file_target(tmp_path: Path) -> None:
    populate(tmp_path)
    runner = build_runner()

    results = runner.run_once(WatchTarget(tmp_path / "a.psd", TargetKind.FILE))

    assert [result.target_path for result in results] == [tmp_path / "a.png"]


def test_empty_directory_returns_no_results(tmp_path: Path) -> None:
    assert build_runner().run_once(WatchTarget(tmp_path, TargetKind.DIRECTORY)) == []


def test_dot_and_tilde_prefixed_documents_are_exported(tmp_path: Path) -> None:
    for name in ("~draft.psd", ".hidden.psd", "a.psd"):
        write_source(tmp_path / name)

    results = build_runner().run_once(WatchTarget(tmp_path, TargetKind.DIRECTORY))

    assert len(results) == 3
    assert all(result.succeeded for result in results)
    assert (tmp_path / "~draft.png").exists()
    assert (tmp_path / ".hidden.png").exists()
