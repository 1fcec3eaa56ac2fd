from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional, Protocol
import re

from nautica.services.category_profiles import normalize_text


UUID_PATTERN = re.compile(
    r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b",
    re.IGNORECASE,
)
ISO_DATE_PATTERN = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
PASSENGERS_PATTERN = re.compile(
    r"\b(\d{1,3})\s*(?:pessoas|pessoa|passageiros|passageiro|people|persons|passengers|guests)\b"
)

CONFIRM_VERBS = ["confirmar", "confirmo", "confirma", "confirme", "fechar", "confirm"]
BOOKING_WORDS = ["reserva", "reservas", "booking", "bookings"]
PAYMENT_WORDS = ["pagar", "pagamento", "pague", "pago", "pay", "payment"]


@dataclass
class DetectedIntent:
    """Structured signals pulled from the latest user message.

    This is keyword matching, not language understanding: unrecognised
    phrasing falls through to a plain conversational reply (false
    negatives), and incidental keywords can trigger an action prompt
    (false positives). Every action path re-validates its inputs.
    """

    # UUID-shaped token (boat id, or booking id on payment requests)
    entity_id: Optional[str] = None

    # Literal YYYY-MM-DD token, if it is a real calendar day
    requested_date: Optional[date] = None

    wants_confirmation: bool = False
    wants_payment: bool = False

    # Canonical boat type inferred from the category table
    category: Optional[str] = None

    passengers: Optional[int] = None

    debug: dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (
            self.entity_id
            or self.requested_date
            or self.wants_confirmation
            or self.wants_payment
            or self.category
        )


class IntentExtractor(Protocol):
    """Anything that turns chat text into a DetectedIntent."""

    def extract(self, text: str) -> DetectedIntent:
        ...


def _parse_iso_date(text: str) -> Optional[date]:
    for match in ISO_DATE_PATTERN.finditer(text):
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            # 2025-02-30 and friends: keep looking
            continue
    return None


def _keyword_search(keyword: str, text: str) -> Optional[re.Match]:
    # Whole words only: "pago" must not fire inside "pagode"
    return re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", text)


def _has_keyword(text: str, keywords: list[str]) -> bool:
    return any(_keyword_search(kw, text) for kw in keywords)


def _match_category(normalized: str, table: Mapping[str, str]) -> tuple[Optional[str], Optional[str]]:
    """Return (category, keyword) for the earliest keyword hit, longest on ties."""
    best: Optional[tuple[int, int, str, str]] = None
    for keyword, category in table.items():
        match = _keyword_search(keyword, normalized)
        if not match:
            continue
        candidate = (match.start(), -len(keyword), keyword, category)
        if best is None or candidate < best:
            best = candidate
    if best is None:
        return None, None
    return best[3], best[2]


class KeywordIntentExtractor:
    """Heuristic extractor driven by an injectable keyword→category table."""

    def __init__(self, category_table: Optional[Mapping[str, str]] = None):
        self.category_table: dict[str, str] = {
            normalize_text(k): v for k, v in (category_table or {}).items()
        }

    def extract(self, text: str) -> DetectedIntent:
        raw = text or ""
        normalized = normalize_text(raw)

        entity_match = UUID_PATTERN.search(raw)
        entity_id = entity_match.group(0).lower() if entity_match else None

        passengers: Optional[int] = None
        passengers_match = PASSENGERS_PATTERN.search(normalized)
        if passengers_match:
            passengers = int(passengers_match.group(1))

        # Strip ids and dates before keyword scans so hex digits in a UUID
        # cannot spell out a keyword.
        scan_text = ISO_DATE_PATTERN.sub(" ", UUID_PATTERN.sub(" ", normalized))

        wants_confirmation = _has_keyword(scan_text, CONFIRM_VERBS) and _has_keyword(scan_text, BOOKING_WORDS)
        wants_payment = _has_keyword(scan_text, PAYMENT_WORDS)

        category, keyword = _match_category(scan_text, self.category_table)

        return DetectedIntent(
            entity_id=entity_id,
            requested_date=_parse_iso_date(raw),
            wants_confirmation=wants_confirmation,
            wants_payment=wants_payment,
            category=category,
            passengers=passengers,
            debug={"category_keyword": keyword} if keyword else {},
        )


def extract_intent(text: str, category_table: Optional[Mapping[str, str]] = None) -> DetectedIntent:
    return KeywordIntentExtractor(category_table).extract(text)
