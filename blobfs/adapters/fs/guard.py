"""
Path containment guard.

Every caller-supplied identifier is resolved against the collection directory
before any filesystem access; anything that would land outside it (parent
segments, absolute paths, symlinked directories pointing elsewhere) is
rejected with PathViolationError.

Accepted identifiers come back in canonical form (``./a.txt`` and ``d//f``
become ``a.txt`` and ``d/f``), and that form is the one key the store, the
cache and callers see.
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import NamedTuple

from blobfs.adapters.fs.store import is_part_file
from blobfs.core.errors import BadRequestError, PathViolationError

logger = logging.getLogger(__name__)


class GuardedPath(NamedTuple):
    identifier: str
    path: Path


class PathGuard:
    def __init__(self, collection_dir: str | Path) -> None:
        self.collection_dir = Path(collection_dir)

    def check(self, identifier: str | None) -> GuardedPath:
        """
        Validate an identifier and return its canonical form and absolute path.

        The returned path is lexical (the final component is not
        dereferenced) so that removing a symlink removes the link itself.
        Resolving symlinks reads the filesystem; async callers run this in a
        worker thread.

        Raises:
            PathViolationError: If the identifier escapes the collection
            BadRequestError: If the identifier is not a string, or names a
                temporary write file
        """
        if identifier is not None and not isinstance(identifier, str):
            raise BadRequestError(
                f"Identifier must be a string, got {type(identifier).__name__}"
            )
        if not identifier or "\x00" in identifier:
            raise PathViolationError(identifier)

        if PurePosixPath(identifier).is_absolute() or PureWindowsPath(identifier).drive:
            self._reject(identifier, "absolute path")

        normalized = posixpath.normpath(identifier)
        if normalized in (".", "..") or normalized.startswith("../"):
            self._reject(identifier, "parent traversal")

        # Listing hides these names, so an entity stored under one would be unreachable.
        if is_part_file(posixpath.basename(normalized)):
            raise BadRequestError(
                f"Identifier uses the reserved temporary-file form: {identifier!r}",
                identifier=identifier,
            )

        base = self.collection_dir.resolve()
        lexical = base / normalized
        # Symlinks in any component are followed before comparing.
        resolved = lexical.resolve(strict=False)
        if resolved == base or base not in resolved.parents:
            self._reject(identifier, "resolves outside collection")

        return GuardedPath(normalized, lexical)

    def _reject(self, identifier: str, reason: str) -> None:
        logger.warning("Rejected identifier %r: %s", identifier, reason)
        raise PathViolationError(identifier)
