"""
Name variation matching between API entities and database tables.

``variations`` expands a name into the spellings it is commonly written in
(plural/singular, camelCase/snake_case, with or without table prefixes) and
``best_match`` scores the closest pair of spellings from two names.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

_TABLE_PREFIXES = ("tbl_", "table_", "vw_", "view_")
_TABLE_SUFFIXES = ("_table", "_tbl", "_view", "_vw")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

SUBSTRING_SCORE = 0.8
FUZZY_MIN_RATIO = 0.7
FUZZY_SCALE = 0.9
# Substrings shorter than this ("id", "a") match almost anything.
MIN_SUBSTRING_LENGTH = 3
FIELD_MATCH_MIN = 0.7


@dataclass
class MatchResult:
    confidence: float
    pair: Optional[Tuple[str, str]] = None


@dataclass
class FieldMatch:
    api_field: str
    db_field: str
    confidence: float


def _camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def _number_forms(word: str) -> Set[str]:
    """Singular form of a plural word, or plural form of a singular one."""
    forms: Set[str] = set()
    if len(word) < 2:
        return forms
    if word.endswith("ies") and len(word) > 3:
        forms.add(word[:-3] + "y")
    elif word.endswith(("ses", "xes", "zes", "ches", "shes")):
        # "boxes" -> "box", but "courses" -> "course"
        forms.add(word[:-2])
        forms.add(word[:-1])
    elif word.endswith("s") and not word.endswith("ss"):
        forms.add(word[:-1])
    elif word.endswith("y") and word[-2] not in "aeiou":
        forms.add(word[:-1] + "ies")
    elif word.endswith(("s", "x", "z", "ch", "sh")):
        forms.add(word + "es")
    else:
        forms.add(word + "s")
    return forms


def _strip_affixes(name: str) -> str:
    for prefix in _TABLE_PREFIXES:
        if name.startswith(prefix) and len(name) > len(prefix):
            name = name[len(prefix):]
            break
    for suffix in _TABLE_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            name = name[:-len(suffix)]
            break
    return name


def variations(name: str) -> Set[str]:
    """All lower-case spellings ``name`` may appear as on either side of an API/DB boundary."""
    if not name or not name.strip():
        return set()
    base = name.strip()
    snake = _camel_to_snake(base)
    forms = {base.lower(), snake, snake.replace("_", "")}
    forms |= {_strip_affixes(form) for form in list(forms)}

    result: Set[str] = set()
    for form in forms:
        if not form:
            continue
        result.add(form)
        result |= _number_forms(form)
        if "_" in form:
            head, _, last = form.rpartition("_")
            for toggled in _number_forms(last):
                result.add(f"{head}_{toggled}")
                result.add(f"{head}{toggled}")
    return result


def levenshtein_distance(first: str, second: str) -> int:
    if first == second:
        return 0
    if not first:
        return len(second)
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(first: str, second: str) -> float:
    """Score a single pair of spellings."""
    if not first or not second:
        return 0.0
    if first == second:
        return 1.0
    shorter = min(len(first), len(second))
    if shorter >= MIN_SUBSTRING_LENGTH and (first in second or second in first):
        return SUBSTRING_SCORE
    ratio = 1.0 - levenshtein_distance(first, second) / max(len(first), len(second))
    if ratio > FUZZY_MIN_RATIO:
        return ratio * FUZZY_SCALE
    return 0.0


def best_match(first_variations: Iterable[str], second_variations: Iterable[str]) -> MatchResult:
    best = MatchResult(confidence=0.0)
    second = sorted(second_variations)
    for a in sorted(first_variations):
        for b in second:
            score = similarity(a, b)
            if score > best.confidence:
                best = MatchResult(confidence=score, pair=(a, b))
                if score == 1.0:
                    return best
    return best


def match_names(first: str, second: str) -> MatchResult:
    return best_match(variations(first), variations(second))


def correlate_fields(api_fields: Iterable[str], db_fields: Iterable[str]) -> List[FieldMatch]:
    """Pair each API field with its closest database column when they match above 0.7."""
    columns = list(db_fields)
    matches: List[FieldMatch] = []
    for api_field in api_fields:
        best: Optional[FieldMatch] = None
        for column in columns:
            result = match_names(api_field, column)
            if result.confidence > FIELD_MATCH_MIN and (best is None or result.confidence > best.confidence):
                best = FieldMatch(api_field=api_field, db_field=column, confidence=result.confidence)
        if best:
            matches.append(best)
    return matches
