"""Keyword → boat category table loaded from a CSV file.

The table maps surface synonyms users type in chat ("lancha", "iate",
"jet ski") to canonical boat types. It lives outside the code so it can be
tuned, translated, or replaced by a classifier without touching callers.
The CSV is parsed once per path and cached in memory.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, Union
import csv
import logging
import re
import unicodedata

from nautica.models.boat import BoatType

logger = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped.lower()).strip()


@lru_cache(maxsize=8)
def _load_table(path: str) -> Dict[str, str]:
    csv_path = Path(path)
    if not csv_path.exists():
        # Fail soft: no category inference rather than a broken chat turn.
        logger.warning(f"⚠️ Boat category map not found at {csv_path}")
        return {}

    table: Dict[str, str] = {}
    with csv_path.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            keyword = normalize_text(row.get("keyword") or "")
            category = (row.get("category") or "").strip()
            if not keyword or not category:
                continue
            if category not in BoatType.ALL:
                logger.warning(f"Skipping unknown boat category '{category}' for keyword '{keyword}'")
                continue
            table[keyword] = category
    return table


def load_category_table(path: Union[str, Path]) -> Dict[str, str]:
    # Copy so callers cannot mutate the cached table.
    return dict(_load_table(str(path)))
