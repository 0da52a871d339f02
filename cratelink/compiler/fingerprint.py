"""Content fingerprints for dependencies without a recoverable identity.

A dependency whose filename does not follow the
``{prefix}{name}-{hash}-{vers}{suffix}`` convention still has to contribute
a hash to its users' crate metadata hash. Its file content is used
instead, so rebuilding it with different content changes the users' CMH.
"""
from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Optional


def compute_file_fingerprint(path: Path, width: Optional[int] = None) -> str:
    """Hex SHA-256 of a dependency file, optionally truncated to ``width``."""
    hasher = hashlib.sha256()
    hasher.update(b"DEP:")
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            hasher.update(chunk)
    digest = hasher.hexdigest()
    return digest[:width] if width else digest
