"""Filesystem helpers for the local storage backend."""

import re
from pathlib import Path, PurePosixPath

from fastapi import UploadFile


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def ensure_directory(path: Path) -> None:
    """Create ``path`` and its parents if missing."""

    path.mkdir(parents=True, exist_ok=True)


def safe_filename(name: str) -> str:
    """Strip directories and unusual characters from a client-supplied name."""

    base = PurePosixPath(name.replace("\\", "/")).name
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._")
    return cleaned or "upload"


def normalize_key(key: str) -> str:
    """Turn a storage key into a relative POSIX path without ``..`` segments."""

    parts = [p for p in PurePosixPath(key.replace("\\", "/")).parts if p not in ("", ".", "..", "/")]
    return "/".join(parts)


async def read_upload(upload: UploadFile, max_bytes: int) -> bytes:
    """Read the whole upload, rejecting bodies over ``max_bytes``.

    ``UploadFile`` is an async file object; the content is read once and the
    cursor rewound so callers may read it again.
    """

    data = await upload.read()
    await upload.seek(0)
    if len(data) > max_bytes:
        raise ValueError(f"{upload.filename} exceeds the {max_bytes} byte upload limit")
    return data


def write_bytes(destination: Path, data: bytes) -> int:
    """Write ``data`` to ``destination``, returning the byte count."""

    ensure_directory(destination.parent)
    with destination.open("wb") as f:
        f.write(data)
    return len(data)


def remove_file(path: Path) -> bool:
    """Delete a file, returning False when it was already gone."""

    if not path.exists():
        return False
    path.unlink()
    return True
