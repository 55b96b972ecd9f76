"""Baggage header codec carrying the dynamic sampling context (DSC)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

BAGGAGE_HEADER = "baggage"
SENTRY_BAGGAGE_PREFIX = "sentry-"
MAX_BAGGAGE_STRING_LENGTH = 8192

# Keys of the DSC, in the order an owner emits them.
DSC_KEYS = (
    "environment",
    "release",
    "public_key",
    "trace_id",
    "sample_rate",
    "transaction",
    "sampled",
)


@dataclass
class Baggage:
    """
    A parsed baggage header.

    ``sentry_entries`` holds the DSC with the ``sentry-`` prefix stripped.
    ``third_party_entries`` holds every other entry decoded, and
    ``third_party_items`` the same entries exactly as they were received so
    that they can be re-emitted untouched.
    """

    sentry_entries: Dict[str, str] = field(default_factory=dict)
    third_party_entries: Dict[str, str] = field(default_factory=dict)
    third_party_items: List[str] = field(default_factory=list)

    @property
    def has_sentry_entries(self) -> bool:
        return bool(self.sentry_entries)

    def __bool__(self) -> bool:
        return bool(self.sentry_entries or self.third_party_items)

    @classmethod
    def from_dynamic_sampling_context(
        cls, dsc: Mapping[str, str], third_party_items: Optional[List[str]] = None
    ) -> "Baggage":
        baggage = cls(sentry_entries=dict(dsc))
        for item in third_party_items or []:
            decoded = _decode_item(item)
            if decoded is not None:
                baggage.third_party_entries[decoded[0]] = decoded[1]
                baggage.third_party_items.append(item)
        return baggage


def _decode_item(item: str) -> Optional[Tuple[str, str]]:
    if "=" not in item:
        return None
    key, value = item.split("=", 1)
    key = unquote(key.strip())
    if not key:
        return None
    # Drop W3C entry properties (";prop=x") from the decoded value.
    value = value.split(";", 1)[0]
    return key, unquote(value.strip())


def parse_baggage(header_value: Optional[str]) -> Baggage:
    """
    Parse a baggage header into sentry and third-party entries.

    Never raises: malformed items are skipped.
    """
    baggage = Baggage()
    if not header_value:
        return baggage

    for raw in header_value.split(","):
        item = raw.strip()
        if not item:
            continue
        decoded = _decode_item(item)
        if decoded is None:
            logger.debug("Skipping malformed baggage item %r", item)
            continue
        key, value = decoded
        if key.startswith(SENTRY_BAGGAGE_PREFIX):
            dsc_key = key[len(SENTRY_BAGGAGE_PREFIX):]
            if dsc_key:
                baggage.sentry_entries[dsc_key] = value
        else:
            baggage.third_party_entries[key] = value
            baggage.third_party_items.append(item)
    return baggage


def _encode_value(value: str) -> str:
    return quote(str(value), safe="!'()*")


def serialize_baggage(baggage: Baggage, include_third_party: bool = False) -> str:
    """
    Serialize baggage back to a header value.

    Sentry entries come first, prefixed and percent-encoded. Third-party items
    follow unchanged when ``include_third_party`` is set. Items that would push
    the header past MAX_BAGGAGE_STRING_LENGTH are dropped.
    """
    items: List[str] = [
        f"{SENTRY_BAGGAGE_PREFIX}{quote(key, safe='')}={_encode_value(value)}"
        for key, value in baggage.sentry_entries.items()
    ]
    if include_third_party:
        items.extend(baggage.third_party_items)

    result: List[str] = []
    length = 0
    for item in items:
        added = len(item) + (1 if result else 0)
        if length + added > MAX_BAGGAGE_STRING_LENGTH:
            logger.warning("Dropping baggage item %r: header would exceed %d characters", item, MAX_BAGGAGE_STRING_LENGTH)
            continue
        result.append(item)
        length += added
    return ",".join(result)


def merge_outgoing_baggage(existing_header: Optional[str], dsc: Mapping[str, str]) -> str:
    """
    Combine a request's existing baggage header with this trace's DSC.

    Third-party items already on the request are kept verbatim; any sentry
    items already on it are replaced by ``dsc``.
    """
    existing = parse_baggage(existing_header)
    merged = Baggage.from_dynamic_sampling_context(dsc, existing.third_party_items)
    return serialize_baggage(merged, include_third_party=True)
