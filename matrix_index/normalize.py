"""Normalization helpers shared by ingestion, querying and classification."""

import json
import re
from typing import Iterable, List, Optional

from .logger import get_logger

logger = get_logger(__name__)

# Anything that is not a letter, a digit or one of the Matrix-ish markers
# (@user, #alias, server:port, +community) separates two tokens.
_TOKEN_SEPARATOR = re.compile(r"(?:[^\w@#:+]|_)+")

USER_SIGIL = "@"
DOMAIN_SEPARATOR = ":"


def tokenize(text: Optional[str]) -> List[str]:
    """Split text into lowercase word-like tokens, keeping their order."""
    if not text:
        return []
    return [part for part in _TOKEN_SEPARATOR.split(text.lower()) if part]


def encode_list(values: Iterable[str]) -> str:
    """Serialize a list-valued column."""
    return json.dumps(list(values), ensure_ascii=False)


def encode_item(value: str) -> str:
    """Serialize a single element exactly as it appears inside encode_list output."""
    return json.dumps(value, ensure_ascii=False)


def decode_list(raw: Optional[str], field: str = "list") -> List[str]:
    """Decode a list-valued column, degrading to an empty list on corruption."""
    if raw is None:
        return []
    try:
        values = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Could not decode stored {field} column, using empty list")
        return []
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        logger.warning(f"Stored {field} column is not a list of strings, using empty list")
        return []
    return values


def search_surface(tokens: Iterable[str]) -> str:
    """Join tokens into the space-framed string used for whole-token matching."""
    return " " + " ".join(token.lower() for token in tokens) + " "


def pad_token(token: str) -> str:
    """Frame a single token the same way search_surface frames each token."""
    return f" {token.strip().lower()} "


def normalize_term(term: Optional[str]) -> Optional[str]:
    """Trim and lowercase a free-text term; blank terms become None."""
    if term is None:
        return None
    needle = term.strip().lower()
    return needle or None


def user_localpart(user_id: Optional[str]) -> str:
    """Return the lowercase localpart of a Matrix user id ("@Alice:hs.org" -> "alice")."""
    if not user_id:
        return ""
    localpart = user_id.lower().split(DOMAIN_SEPARATOR, 1)[0]
    if localpart.startswith(USER_SIGIL):
        localpart = localpart[1:]
    return localpart


def fold(text: Optional[str]) -> str:
    """Case-fold text in Python so non-ASCII letters compare the same on every backend."""
    return (text or "").lower()


def search_text(body: Optional[str], sender: str, tags: Iterable[str], reactions: Iterable[str]) -> str:
    """Lowercased free-text haystack: body, sender, tags and reactions joined by spaces."""
    return fold(" ".join([body or "", sender or "", " ".join(tags), " ".join(reactions)]))
