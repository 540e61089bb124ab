"""Reply templates for the messaging channel.

Portuguese (pt-BR) templates live in static/translations.json and are read
once, on first use. Keys use dot notation grouped by concern:
"receipt.*", "errors.*", "conversation.*", "onboarding.*", "fields.*".

Usage:
    from finsplit.services.localizer import t

    message = t("conversation.rejected")
    message = t("conversation.dashboard", link="https://finsplit.app/dashboard")
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TRANSLATIONS_PATH = Path(__file__).parent.parent / "static" / "translations.json"


@lru_cache(maxsize=1)
def load_translations(path: Path = TRANSLATIONS_PATH) -> dict[str, Any]:
    """Read the template file; an unreadable file yields an empty catalog."""
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.error("Failed to load translations from %s: %s", path, e)
        return {}


def _lookup(key: str) -> str | None:
    node: Any = load_translations()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


def t(key: str, **kwargs: Any) -> str:
    """Render the template for a key, substituting placeholders.

    Unknown keys render as the key itself so a missing template never
    blocks a reply. A placeholder missing from kwargs leaves the raw
    template in place.
    """
    template = _lookup(key)
    if template is None:
        logger.warning("Translation key not found: %s", key)
        return key

    if not kwargs:
        return template

    try:
        return template.format(**kwargs)
    except KeyError as e:
        logger.warning("Missing placeholder %s for key: %s", e, key)
        return template


__all__ = ["t", "load_translations", "TRANSLATIONS_PATH"]
