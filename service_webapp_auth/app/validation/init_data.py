"""
initData parsing and data-check-string construction.

Telegram signs the *decoded* launch parameters: each value is percent-decoded
exactly once with ``application/x-www-form-urlencoded`` rules (``+`` is a
space) before the data-check-string is built. Decoding a second time breaks
any value that legitimately contains ``%`` (a user named ``100%`` arrives as
``100%25`` inside the JSON and must stay ``100%`` after one decode).
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Tuple
from urllib.parse import parse_qsl

from shared.errors import MalformedPayload, MissingSignature

SIGNATURE_FIELD = "hash"
MAX_FIELDS = 64


@dataclass(frozen=True)
class CanonicalPayload:
    """initData split into the claimed signature and what it signs."""

    check_string: str = field(repr=False)
    claimed_hash: str
    fields: Mapping[str, str] = field(repr=False)


def parse_init_data(init_data: str) -> List[Tuple[str, str]]:
    """Split raw initData into ordered, decoded (key, value) pairs."""
    if not isinstance(init_data, str) or not init_data:
        raise MalformedPayload("initData must be a non-empty string")

    try:
        return parse_qsl(
            init_data,
            keep_blank_values=True,
            strict_parsing=True,
            errors="strict",
            max_num_fields=MAX_FIELDS,
        )
    except ValueError as e:
        # UnicodeDecodeError is a ValueError too
        raise MalformedPayload(
            "initData is not a valid query string",
            details={"reason": type(e).__name__}
        ) from e


def build_check_string(pairs: Iterable[Tuple[str, str]]) -> str:
    """Render pairs as sorted ``key=value`` lines.

    Python orders str by code point, which matches UTF-8 byte order.
    """
    return "\n".join(f"{key}={value}" for key, value in sorted(pairs, key=lambda pair: pair[0]))


def canonicalize(pairs: Iterable[Tuple[str, str]]) -> CanonicalPayload:
    """Remove ``hash`` from the pairs and build the data-check-string."""
    fields = {}
    claimed_hash = None

    for key, value in pairs:
        if key in fields or (key == SIGNATURE_FIELD and claimed_hash is not None):
            raise MalformedPayload("initData repeats a field", details={"field": key})
        if key == SIGNATURE_FIELD:
            claimed_hash = value
        else:
            fields[key] = value

    if not claimed_hash:
        raise MissingSignature()

    return CanonicalPayload(
        check_string=build_check_string(fields.items()),
        claimed_hash=claimed_hash,
        fields=fields,
    )
