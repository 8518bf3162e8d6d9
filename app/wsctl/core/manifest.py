"""Manifest file I/O operations.

This module provides functions for parsing, loading, and saving manifest
documents in TOML format with validation using Pydantic models. Parsing is
a pure function of the document text so that it can be exercised without
touching the filesystem or any repository.
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

import tomli_w
from filelock import FileLock
from pydantic import ValidationError

from wsctl.models.manifest import Manifest

logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """Base exception for manifest-related errors."""


class ManifestNotFoundError(ManifestError):
    """Raised when a manifest file is not found."""


class ManifestParseError(ManifestError):
    """Raised when a manifest document cannot be parsed."""


class ManifestValidationError(ManifestError):
    """Raised when manifest content is invalid."""


def parse_manifest(content: str | bytes, source: str = "<memory>") -> Manifest:
    """Parse and validate a manifest document.

    Args:
        content: TOML document text.
        source: Where the document came from, used in error messages.

    Returns:
        Validated Manifest object.

    Raises:
        ManifestParseError: If the TOML syntax is invalid.
        ManifestValidationError: If the content doesn't match the schema.
    """
    text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ManifestParseError(f"Invalid TOML in {source}: {e}\n{text}") from e

    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestValidationError(f"Invalid manifest content in {source}: {e}") from e


def load_manifest(path: Path) -> Manifest:
    """Load and validate a manifest from a TOML file.

    Args:
        path: Path to the manifest file.

    Returns:
        Validated Manifest object.

    Raises:
        ManifestNotFoundError: If the manifest file doesn't exist.
        ManifestParseError: If the TOML syntax is invalid.
        ManifestValidationError: If the content doesn't match the schema.
    """
    if not path.is_file():
        raise ManifestNotFoundError(f"Manifest not found: {path}")

    try:
        content = path.read_bytes()
    except OSError as e:
        raise ManifestError(f"Failed to read manifest {path}: {e}") from e

    return parse_manifest(content, source=str(path))


def manifest_to_dict(manifest: Manifest) -> dict[str, Any]:
    """Convert a Manifest to a dictionary suitable for TOML serialization.

    Optional fields left at their defaults are omitted, empty sections
    are dropped, and the sections are always emitted in the same order.

    Args:
        manifest: The Manifest object to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    data: dict[str, Any] = {}
    for section in ("imports", "projects", "hosts", "tools"):
        entries = getattr(manifest, section)
        if entries:
            data[section] = [
                entry.model_dump(mode="json", exclude_defaults=True) for entry in entries
            ]
    return data


def dump_manifest(manifest: Manifest) -> str:
    """Serialize a manifest to TOML text.

    Args:
        manifest: The Manifest object to serialize.

    Returns:
        TOML document. Equal manifests always produce identical text.
    """
    return tomli_w.dumps(manifest_to_dict(manifest))


def write_atomic(path: Path, content: str) -> None:
    """Replace a file's content atomically.

    The content is written to a temporary file in the same directory
    which then replaces the destination with os.replace().

    Args:
        path: Destination file.
        content: Text to write.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            f.write(content)
        os.replace(tmp_path, path)
    except OSError:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise


def save_manifest(manifest: Manifest, path: Path, lock_path: Path | None = None) -> Path:
    """Save a manifest to a TOML file.

    The file is written atomically. When a lock path is given, the write
    happens while holding that process-level lock.

    Args:
        manifest: The Manifest object to save.
        path: Path to save the manifest.
        lock_path: Lock file guarding the manifest against concurrent writers.

    Returns:
        Path where the manifest was saved.

    Raises:
        ManifestError: If the file cannot be written.
    """
    content = dump_manifest(manifest)
    lock = FileLock(str(lock_path or path.with_name(path.name + ".lock")))
    try:
        with lock:
            write_atomic(path, content)
    except OSError as e:
        raise ManifestError(f"Failed to write manifest {path}: {e}") from e

    logger.debug("Wrote manifest %s", path)
    return path
