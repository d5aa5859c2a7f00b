"""
Asset packaging: deterministic archives, content-addressed uploads and the
pipeline tying them to template rewriting.
"""

from stacklift.packaging.archive import (
    PackagedAsset,
    package_bytes,
    package_directory,
    package_file,
    package_path,
)
from stacklift.packaging.pipeline import package_template
from stacklift.packaging.uploader import S3Uploader, UploadRecord, object_key

__all__ = [
    "PackagedAsset",
    "package_bytes",
    "package_directory",
    "package_file",
    "package_path",
    "S3Uploader",
    "UploadRecord",
    "object_key",
    "package_template",
]
