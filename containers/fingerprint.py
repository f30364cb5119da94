"""Ownership fingerprints for temporary containers.

A temporary container is recognised purely by its name. The name carries a
random seed byte plus a truncated SHA-1 over the seed and the container id, so
any process instance can re-verify ownership with no memory of having created
the container. Older name formats are kept as versioned rules so containers
named by earlier releases are still recognised and reaped.
"""

from __future__ import annotations

import hashlib
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass

from world_model.entities import Container

TEMP_PREFIX = "Temp "
CONTAINER_MARK = "%NEW_TEMP_CONTAINER%"


def sha1_hex(text: str) -> str:
    """Return the hex SHA-1 digest of a UTF-8 string."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def hash_concat(*parts: str) -> str:
    """Hash the concatenation of length-prefixed parts.

    Each part is encoded as ``<hex length>.<part>`` so that
    ``("ab", "c")`` and ``("a", "bc")`` never produce the same input.
    """
    data = "".join(f"{len(part):x}.{part}" for part in parts)
    return sha1_hex(data)


def generate_fingerprint(container_id: str) -> str:
    """Build a fresh ownership name for ``container_id``."""
    seed = secrets.token_bytes(1).hex()
    digest = hash_concat(seed, container_id)
    return TEMP_PREFIX + seed + digest[:6]


@dataclass(frozen=True)
class FingerprintRule:
    """One versioned name format."""

    version: str
    pattern: re.Pattern[str]
    verify: Callable[[re.Match[str], str], bool]

    def matches(self, name: str, container_id: str) -> bool:
        match = self.pattern.fullmatch(name)
        if match is None:
            return False
        return self.verify(match, container_id)


def _verify_v010(match: re.Match[str], container_id: str) -> bool:
    return match.group(1) == sha1_hex(container_id)[:8]


def _verify_v020(match: re.Match[str], container_id: str) -> bool:
    seed, digest = match.group(1), match.group(2)
    return digest == hash_concat(seed, container_id)[:6]


RULES: tuple[FingerprintRule, ...] = (
    FingerprintRule("0.1.0", re.compile(r"Temp ([0-9a-f]{8})"), _verify_v010),
    FingerprintRule("0.2.0", re.compile(r"Temp ([0-9a-f]{2})([0-9a-f]{6})"), _verify_v020),
)


def matching_rule(container: Container) -> str | None:
    """Return the version of the first rule that accepts ``container``."""
    name = container.display_name
    if not isinstance(name, str) or not name.startswith(TEMP_PREFIX):
        return None
    for rule in RULES:
        try:
            if rule.matches(name, container.id):
                return rule.version
        except (TypeError, ValueError):
            continue
    return None


def is_owned(container: Container) -> bool:
    """Whether the container's name proves it is a temporary container."""
    return matching_rule(container) is not None


def is_marked(container: Container) -> bool:
    """Whether the container asks to be turned into a temporary container."""
    return container.display_name == CONTAINER_MARK
