"""
Deterministic archiving and content hashing.

Archiving the same content twice always yields the same bytes: entries are
sorted by relative path, timestamps are pinned to the zip epoch, permissions
are reduced to 0644 or 0755 and the creator system is fixed. The content
hash is the md5 of the final bytes, which is also what S3 checks on upload.
"""

import base64
import hashlib
import io
import logging
import os
import stat
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from stacklift.errors import AssetNotFound, AssetUnreadable

LOG = logging.getLogger(__name__)

ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
ZIP_EXTENSION = ".zip"
TEMPLATE_EXTENSION = ".yaml"

_UNIX = 3
_COMPRESS_LEVEL = 6


@dataclass(frozen=True)
class PackagedAsset:
    """
    Archive bytes ready for upload.

    The bytes are transient: they live only for the duration of a run.
    """

    content_hash: str
    data: bytes = field(repr=False)
    extension: str = ZIP_EXTENSION
    source: Path | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def content_md5(self) -> str:
        """Base64 md5 digest, as expected by the Content-MD5 header."""
        return base64.b64encode(bytes.fromhex(self.content_hash)).decode("ascii")

    @property
    def object_name(self) -> str:
        return f"{self.content_hash}{self.extension}"


def package_bytes(data: bytes, extension: str, source: Path | None = None) -> PackagedAsset:
    """Wrap already-serialized content as a PackagedAsset."""
    return PackagedAsset(
        content_hash=hashlib.md5(data).hexdigest(),
        data=data,
        extension=extension,
        source=source,
    )


def package_path(path: str | Path) -> PackagedAsset:
    """
    Archive a directory or a single file.

    Raises:
        AssetNotFound: If `path` doesn't exist
        AssetUnreadable: If `path` or anything below it can't be read
    """
    path = Path(path)
    if path.is_dir():
        return package_directory(path)
    if path.is_file():
        return package_file(path)
    if not path.exists():
        raise AssetNotFound(path, "no such file or directory")
    raise AssetUnreadable(path, "not a file or directory")


def package_directory(path: str | Path) -> PackagedAsset:
    """Archive every file below `path`, keyed by its POSIX relative path."""
    root = Path(path)
    if not root.is_dir():
        raise AssetNotFound(root, "no such directory")

    entries = sorted(
        (file_path.relative_to(root).as_posix(), file_path) for file_path in _walk(root)
    )
    asset = package_bytes(_archive(entries), ZIP_EXTENSION, root)
    LOG.debug("archived %s: %d file(s), %d bytes, md5 %s",
              root, len(entries), asset.size, asset.content_hash)
    return asset


def package_file(path: str | Path) -> PackagedAsset:
    """Archive a single file as a one-entry zip named after the file."""
    file_path = Path(path)
    if not file_path.is_file():
        raise AssetNotFound(file_path, "no such file")
    asset = package_bytes(_archive([(file_path.name, file_path)]), ZIP_EXTENSION, file_path)
    LOG.debug("archived %s: %d bytes, md5 %s", file_path, asset.size, asset.content_hash)
    return asset


def _walk(root: Path) -> list[Path]:
    def _raise(error: OSError) -> None:
        raise AssetUnreadable(error.filename or root, error.strerror or str(error)) from error

    files = []
    for dirpath, _, filenames in os.walk(root, onerror=_raise, followlinks=True):
        current = Path(dirpath)
        # A linked directory resolving to one of its own ancestors would recurse forever.
        real = os.path.realpath(current)
        if any(os.path.realpath(parent) == real for parent in current.parents):
            raise AssetUnreadable(current, "symbolic link loop")
        files.extend(current / name for name in filenames)
    return files


def _archive(entries: list[tuple[str, Path]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(
        buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=_COMPRESS_LEVEL
    ) as archive:
        for name, file_path in entries:
            try:
                data = file_path.read_bytes()
                mode = file_path.stat().st_mode
            except OSError as e:
                raise AssetUnreadable(file_path, e.strerror or str(e)) from e

            info = zipfile.ZipInfo(name, date_time=ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.create_system = _UNIX
            info.external_attr = (stat.S_IFREG | _normalized_mode(mode)) << 16
            archive.writestr(info, data)
    return buffer.getvalue()


def _normalized_mode(mode: int) -> int:
    return 0o755 if mode & stat.S_IXUSR else 0o644
