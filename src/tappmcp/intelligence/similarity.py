#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
String Similarity Calculation Module
Edit-distance based fuzzy matching between command tokens and keywords
"""


def levenshtein_distance(a: str, b: str) -> int:
    """
    Minimum number of single-character insertions, deletions and
    substitutions turning a into b

    Args:
        a: First string
        b: Second string

    Returns:
        Edit distance
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    # Two-row dynamic programming over the shorter string
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current

    return previous[-1]


def normalized_similarity(a: str, b: str) -> float:
    """
    Edit similarity scaled to [0, 1]

    1 - distance / max(len(a), len(b)); two empty strings are identical.

    Args:
        a: First string
        b: Second string

    Returns:
        Similarity score (0.0 - 1.0)
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def match_score(token: str, keyword: str,
                exact_score: float = 1.0,
                substring_score: float = 0.8,
                similarity_floor: float = 0.6) -> float:
    """
    Score one (token, keyword) pair

    Exact equality beats substring containment in either direction, which
    beats edit similarity. Similarity only counts when strictly above the floor.

    Args:
        token: Normalized input token
        keyword: Keyword from the table
        exact_score: Score for equal strings
        substring_score: Score for containment
        similarity_floor: Minimum similarity to count as a match

    Returns:
        Pair score, 0.0 when the pair does not match
    """
    if not token or not keyword:
        return 0.0
    if token == keyword:
        return exact_score
    if token in keyword or keyword in token:
        return substring_score

    similarity = normalized_similarity(token, keyword)
    if similarity > similarity_floor:
        return similarity
    return 0.0
