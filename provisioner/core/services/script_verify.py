"""
Remote script integrity verification.

Installer scripts are downloaded to a file, hash-checked, and only then
executed, replacing the unsafe ``curl | sh`` pattern.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# ``yes <answer> | sh install.sh`` feeds an endless stream; a bounded
# number of repeated answers covers every prompt an installer asks.
ANSWER_REPEAT = 32


def normalize_sha256(expected: str) -> str:
    """Strip an optional ``sha256:`` prefix and lowercase."""
    return expected.strip().removeprefix("sha256:").lower()


def sha256_file(path: Path) -> str:
    """Hex SHA256 of a file, read in chunks."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_sha256(path: Path, expected: str) -> str | None:
    """Check a downloaded file against its expected digest.

    Returns:
        None when the digest matches, otherwise an error message.
    """
    if not path.is_file():
        return f"Downloaded file not found: {path}"
    actual = sha256_file(path)
    want = normalize_sha256(expected)
    if actual != want:
        return (
            f"SHA256 mismatch for {path}\n"
            f"Expected: {want}\n"
            f"Got:      {actual}\n"
            f"The script may have been tampered with."
        )
    logger.debug("SHA256 verified for %s", path)
    return None


def answer_stream(answer: str | None) -> str | None:
    """stdin text answering every installer prompt with ``answer``."""
    if answer is None:
        return None
    return (str(answer) + "\n") * ANSWER_REPEAT

