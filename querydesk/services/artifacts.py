from __future__ import annotations

from pathlib import Path

from loguru import logger

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size: int) -> str:
    """Render a byte count as ``0 Bytes``, ``1.5 KB``, ``2 MB``..."""
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {SIZE_UNITS[exponent]}"


def _available_path(directory: Path, file_name: str) -> Path:
    candidate = directory / file_name
    if not candidate.exists():
        return candidate
    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while True:
        candidate = directory / f"{stem} ({counter}){suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


def save_artifact(payload: bytes, directory: str | Path, file_name: str) -> Path:
    """Write a downloaded artifact without overwriting an existing file."""
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = _available_path(target_dir, Path(file_name).name or "artifact.bin")
    path.write_bytes(payload)
    logger.info(f"Saved artifact to {path} ({format_file_size(len(payload))})")
    return path
