"""Ingredient name normalisation and ingredient/product match scoring."""

from __future__ import annotations

import re
from typing import List

EXACT_MATCH_SCORE = 1.0
CONTAINED_MATCH_SCORE = 0.9
PARTIAL_MATCH_CAP = 0.8

STOP_WORDS = frozenset(
    {"a", "an", "and", "for", "in", "of", "or", "the", "to", "with", "fresh", "large", "small", "medium"}
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def normalize_ingredient_name(name: str) -> str:
    """Lowercase, trim and collapse whitespace so trivial variations share a key."""
    return " ".join((name or "").lower().split())


def _singular(token: str) -> str:
    if len(token) <= 3 or token.endswith("ss"):
        return token
    if token.endswith("ies"):
        return token[:-3] + "y"
    if token.endswith("oes"):
        return token[:-2]
    if token.endswith("s"):
        return token[:-1]
    return token


def _all_tokens(text: str) -> List[str]:
    return [_singular(t) for t in _TOKEN_RE.findall((text or "").lower())]


def tokenize(text: str) -> List[str]:
    tokens = _all_tokens(text)
    significant = [t for t in tokens if t not in STOP_WORDS]
    # A name made only of stop words still has to be comparable.
    return significant or tokens


def _only_stop_words(tokens: List[str]) -> bool:
    return bool(tokens) and all(t in STOP_WORDS for t in tokens)


def calculate_confidence_score(ingredient_name: str, catalog_description: str) -> float:
    """Score in [0, 1] for how well a catalog description matches an ingredient.

    1.0 for the same text, 0.9 when every significant word of one side appears
    in the other, otherwise the share of shared words capped at 0.8, and 0.0
    when nothing is shared.
    """
    ingredient = normalize_ingredient_name(ingredient_name)
    description = normalize_ingredient_name(catalog_description)
    if not ingredient or not description:
        return 0.0
    if ingredient == description:
        return EXACT_MATCH_SCORE

    ingredient_tokens = tokenize(ingredient)
    description_tokens = tokenize(description)
    if _only_stop_words(ingredient_tokens) or _only_stop_words(description_tokens):
        # Overlap is counted over the same vocabulary on both sides.
        ingredient_tokens = _all_tokens(ingredient)
        description_tokens = _all_tokens(description)
    if not ingredient_tokens or not description_tokens:
        return 0.0
    if ingredient_tokens == description_tokens:
        return EXACT_MATCH_SCORE

    ingredient_set = set(ingredient_tokens)
    description_set = set(description_tokens)
    shared = ingredient_set & description_set
    if not shared:
        return 0.0
    if shared == ingredient_set or shared == description_set:
        return CONTAINED_MATCH_SCORE

    ratio = len(shared) / max(len(ingredient_set), len(description_set))
    return round(min(PARTIAL_MATCH_CAP, ratio), 4)
