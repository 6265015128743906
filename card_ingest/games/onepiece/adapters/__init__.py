"""One Piece TCG site adapters."""

from __future__ import annotations

from typing import Dict

# Lazy-loaded adapter registry: name -> module.ClassName
ONEPIECE_ADAPTERS: Dict[str, str] = {
    "opecards": "card_ingest.games.onepiece.adapters.opecards.OpecardsAdapter",
}
