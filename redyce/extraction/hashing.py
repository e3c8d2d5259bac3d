"""Content hashing for requirement deduplication."""

import hashlib
import re

HASH_LENGTH = 32

_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Lowercase, trim and collapse whitespace runs to a single space."""
    return _WHITESPACE.sub(" ", title.lower().strip())


def generate_requirement_hash(project_id: str, document_id: str, title: str) -> str:
    """Compute the dedup fingerprint of a requirement.

    Titles that differ only by case or whitespace share a fingerprint;
    rewordings do not.

    Args:
        project_id: Owning project.
        document_id: Source document.
        title: Requirement title as extracted.

    Returns:
        First 32 hex characters of the SHA-256 digest.
    """
    content = f"{project_id}|{document_id}|{normalize_title(title)}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:HASH_LENGTH]
