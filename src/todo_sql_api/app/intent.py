"""Query preprocessing and keyword intent classification.

Both functions are heuristics: simple keyword rules, not an ML classifier.
"""

from __future__ import annotations

import re

from .models import Intent

ADD_KEYWORDS = ("add", "create", "new", "insert", "make")
DELETE_KEYWORDS = ("delete", "remove", "drop")
UPDATE_KEYWORDS = (
    "update",
    "edit",
    "change",
    "modify",
    "mark",
    "complete",
    "finish",
    "done",
    "set",
)
LIST_KEYWORDS = ("list", "show", "get", "find", "select", "display")


def preprocess(query: str) -> str:
    """Lowercase, drop punctuation, and collapse whitespace.

    Lossy on purpose: downstream matching is keyword-based. Applying it twice
    gives the same result as applying it once.
    """
    lowered = " ".join(query.lower().split())
    without_punctuation = re.sub(r"[^\w\s]", " ", lowered)
    return " ".join(without_punctuation.split())


def classify_intent(query: str) -> Intent:
    """Map preprocessed text to CREATE/READ/UPDATE/DELETE.

    Keyword sets overlap, so the order of checks decides the result. Display
    cues win first, then "mark/set ... done" phrases, then the single keyword
    sets. Anything unmatched is READ.
    """
    if any(cue in query for cue in ("show", "list", "display", "get")):
        return "READ"
    if "mark" in query and ("done" in query or "complete" in query):
        return "UPDATE"
    if "finish" in query or ("set" in query and "done" in query):
        return "UPDATE"
    if any(keyword in query for keyword in ADD_KEYWORDS):
        return "CREATE"
    if any(keyword in query for keyword in DELETE_KEYWORDS):
        return "DELETE"
    if any(keyword in query for keyword in UPDATE_KEYWORDS):
        return "UPDATE"
    if any(keyword in query for keyword in LIST_KEYWORDS):
        return "READ"
    return "READ"
