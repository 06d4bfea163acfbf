"""Deterministic cache key fingerprints."""

from __future__ import annotations

import hashlib
import re
from typing import Literal

from proxim8.core.caching.models import CacheKey

KeyStrategy = Literal["prefix", "hash"]

PROMPT_PREFIX_LENGTH = 20

_WHITESPACE = re.compile(r"\s+")


def compute_prompt_fingerprint(prompt: str, strategy: KeyStrategy = "prefix") -> str:
    """Fingerprint a prompt for use in a cache key.

    The 'prefix' strategy keys on the first 20 characters with each whitespace
    run replaced by '-', so prompts sharing an opening phrase share an entry.
    The 'hash' strategy keys on a SHA-256 digest of the whole prompt with
    whitespace collapsed.

    Args:
        prompt: User prompt
        strategy: 'prefix' or 'hash'

    Returns:
        Fingerprint string

    Example:
        >>> compute_prompt_fingerprint("infiltrate the tower at dawn")
        'infiltrate-the-tower'
    """
    if strategy == "hash":
        normalized = _WHITESPACE.sub(" ", prompt.strip())
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    if strategy == "prefix":
        return _WHITESPACE.sub("-", prompt[:PROMPT_PREFIX_LENGTH])
    raise ValueError(f"Unknown key strategy: {strategy}")


def create_cache_key(
    subject_id: str,
    prompt: str,
    *,
    namespace: str = "pipeline",
    strategy: KeyStrategy = "prefix",
) -> CacheKey:
    """Build the cache key for a (subject, prompt) pair.

    Example:
        >>> str(create_cache_key("nft-1", "infiltrate the tower"))
        'pipeline:nft-1:infiltrate-the-tower'
    """
    return CacheKey(
        namespace=namespace,
        subject_id=subject_id,
        prompt_fingerprint=compute_prompt_fingerprint(prompt, strategy),
    )
