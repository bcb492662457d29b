from __future__ import annotations

import pytest

from querydesk.services.artifacts import format_file_size, save_artifact


@pytest.mark.parametrize(
    "size, expected",
    [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5 MB"),
        (3 * 1024**3, "3 GB"),
    ],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_save_artifact_creates_directory(tmp_path):
    target = tmp_path / "nested" / "downloads"

    path = save_artifact(b"%PDF", target, "exam.pdf")

    assert path == target / "exam.pdf"
    assert path.read_bytes() == b"%PDF"


def test_save_artifact_never_overwrites(tmp_path):
    first = save_artifact(b"one", tmp_path, "exam.pdf")
    second = save_artifact(b"two", tmp_path, "exam.pdf")

    assert first.read_bytes() == b"one"
    assert second.name == "exam (1).pdf"
    assert second.read_bytes() == b"two"


def test_save_artifact_strips_directories_from_name(tmp_path):
    path = save_artifact(b"x", tmp_path, "../../etc/exam.pdf")
    assert path.parent == tmp_path
