# ============================================================================
# MODULE CONTEXT - CONTENT FINGERPRINT
# ============================================================================
# STATUS: Shared Service - HTTP cache validation
# PURPOSE: Strong ETags over serialized bodies and If-None-Match evaluation
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ContentFingerprint, CacheDecision
# DEPENDENCIES: hashlib, enum
# ============================================================================

"""
ContentFingerprint - ETag generation and conditional request handling.

The tag is a prefix of the SHA-256 digest of the exact bytes that would be
sent, so two requests that serialize to the same bytes always share a tag.
"""

import hashlib
from enum import Enum
from typing import Optional


class CacheDecision(str, Enum):
    NOT_MODIFIED = "not_modified"
    PROCEED = "proceed"


class ContentFingerprint:
    """
    Compute and compare entity tags.

    Args:
        length: Number of hex digits of the digest kept in the tag
    """

    def __init__(self, length: int = 32):
        self.length = length

    def fingerprint(self, body: bytes) -> str:
        """Return a quoted strong ETag for body."""
        digest = hashlib.sha256(body).hexdigest()[:self.length]
        return f'"{digest}"'

    def evaluate(self, tag: str, if_none_match: Optional[str]) -> CacheDecision:
        """
        Decide whether a GET can be answered with 304 Not Modified.

        If-None-Match uses weak comparison: a W/ prefix on either side is
        ignored. "*" matches any current representation.
        """
        if not if_none_match:
            return CacheDecision.PROCEED

        current = self._opaque(tag)
        for candidate in if_none_match.split(","):
            candidate = candidate.strip()
            if not candidate:
                continue
            if candidate == "*" or self._opaque(candidate) == current:
                return CacheDecision.NOT_MODIFIED
        return CacheDecision.PROCEED

    @staticmethod
    def _opaque(tag: str) -> str:
        tag = tag.strip()
        if tag.startswith("W/"):
            tag = tag[2:]
        return tag
