"""
shelters.py — Static emergency-shelter reference data, loaded once at start-up.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple

from safespot.hazards.models import ShelterRecord

logger = logging.getLogger(__name__)


def _parse_shelter(raw: Dict[str, Any]) -> ShelterRecord:
    return ShelterRecord(
        id=str(raw["id"]),
        name=str(raw["name"]),
        address=str(raw.get("address", "")),
        latitude=float(raw["latitude"]),
        longitude=float(raw["longitude"]),
        capacity=int(raw.get("capacity", 0)),
        type=str(raw.get("type", "general")),
    )


def load_shelters(path: str | Path) -> Tuple[ShelterRecord, ...]:
    """
    Read the shelter directory.

    A missing or unreadable file yields an empty set (nearest-shelter lookups
    then return nothing) rather than stopping the service. Individual
    malformed entries are skipped.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Shelter data unavailable at %s: %s", path, exc)
        return ()

    shelters = []
    for entry in raw if isinstance(raw, list) else []:
        try:
            shelters.append(_parse_shelter(entry))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed shelter entry %r: %s", entry, exc)

    logger.info("Loaded %d shelters from %s", len(shelters), path.name)
    return tuple(shelters)
