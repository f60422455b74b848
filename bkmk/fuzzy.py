"""
Fuzzy subsequence matching.

A pattern matches a string when all of its characters appear in order,
ignoring case. Matches are scored so that hits at word starts, after
separators and in runs rank higher than scattered ones.
"""
from dataclasses import dataclass, field
from typing import List, Sequence

# Scoring weights
FIRST_CHAR_BONUS = 10
SEPARATOR_BONUS = 20
CAMEL_CASE_BONUS = 20
ADJACENT_BONUS = 5
LEADING_PENALTY = -5
MAX_LEADING_PENALTY = -15
UNMATCHED_PENALTY = -1

SEPARATORS = frozenset(" /-_.:\t")


@dataclass
class Match:
    """A matched item, its position in the input and its score."""
    index: int
    text: str
    score: int
    positions: List[int] = field(default_factory=list)


def _score(pattern: str, text: str) -> Match:
    """Score one candidate, or return a match with no positions when it fails."""
    lowered = text.lower()
    positions: List[int] = []
    start = 0
    for char in pattern.lower():
        found = lowered.find(char, start)
        if found < 0:
            return Match(index=-1, text=text, score=0)
        positions.append(found)
        start = found + 1

    score = 0
    previous = -2
    for pos in positions:
        if pos == 0:
            score += FIRST_CHAR_BONUS
        else:
            before = text[pos - 1]
            if before in SEPARATORS:
                score += SEPARATOR_BONUS
            elif before.islower() and text[pos].isupper():
                score += CAMEL_CASE_BONUS
        if pos == previous + 1:
            score += ADJACENT_BONUS
        previous = pos

    score += max(LEADING_PENALTY * positions[0], MAX_LEADING_PENALTY)
    score += UNMATCHED_PENALTY * (len(text) - len(positions))
    return Match(index=0, text=text, score=score, positions=positions)


def find(pattern: str, items: Sequence[str]) -> List[Match]:
    """
    Match a pattern against a list of strings.

    Args:
        pattern: Characters to look for, in order
        items: Candidate strings

    Returns:
        Matches sorted by descending score; equal scores keep input order.
        An empty pattern matches nothing.
    """
    if not pattern:
        return []

    matches = []
    for index, text in enumerate(items):
        match = _score(pattern, text)
        if match.positions:
            match.index = index
            matches.append(match)

    matches.sort(key=lambda m: -m.score)
    return matches
