from __future__ import annotations

import errno
from pathlib import Path

import pytest

from resize_kro import save_pipeline
from resize_kro.errors import SaveError
from resize_kro.models import ProcessedArtifact


def _artifact() -> ProcessedArtifact:
    return ProcessedArtifact(data=b"\xff\xd8jpeg-bytes", origin="resize", width=10, height=5)


def test_save_artifact_writes_file_atomically(tmp_path: Path) -> None:
    destination = tmp_path / "out.jpg"

    result = save_pipeline.save_artifact(_artifact(), destination)

    assert result.output_path == destination
    assert result.size_bytes == len(_artifact().data)
    assert destination.read_bytes() == _artifact().data
    assert list(tmp_path.glob("*.tmp")) == []


def test_save_artifact_overwrites_existing_file(tmp_path: Path) -> None:
    destination = tmp_path / "out.jpg"
    destination.write_bytes(b"old")

    save_pipeline.save_artifact(_artifact(), destination)

    assert destination.read_bytes() == _artifact().data


def test_save_artifact_into_directory_uses_default_name(tmp_path: Path) -> None:
    result = save_pipeline.save_artifact(_artifact(), tmp_path)
    assert result.output_path == tmp_path / "processed-image.jpg"


def test_save_artifact_missing_directory_raises_save_error(tmp_path: Path) -> None:
    destination = tmp_path / "missing" / "out.jpg"

    with pytest.raises(SaveError) as excinfo:
        save_pipeline.save_artifact(_artifact(), destination)

    assert excinfo.value.category == "not_found"
    assert excinfo.value.guidance
    assert not destination.exists()


@pytest.mark.parametrize(
    "error, category",
    [
        (PermissionError(errno.EACCES, "denied"), "permission_denied"),
        (FileNotFoundError(errno.ENOENT, "missing"), "not_found"),
        (OSError(errno.ENOSPC, "full"), "no_space"),
        (OSError(errno.EBUSY, "busy"), "unknown"),
        (ValueError("not an os error"), "unknown"),
    ],
)
def test_analyze_file_error_categories(error: BaseException, category: str) -> None:
    _code, actual, retryable, guidance = save_pipeline.analyze_file_error(error)
    assert actual == category
    assert retryable is False
    assert guidance


def test_build_temp_save_path_stays_in_same_directory(tmp_path: Path) -> None:
    target = tmp_path / "out.jpg"
    first = save_pipeline._build_temp_save_path(target)
    second = save_pipeline._build_temp_save_path(target)

    assert first.parent == target.parent
    assert first.name.startswith(".out.jpg.")
    assert first != second
