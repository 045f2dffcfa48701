from __future__ import annotations

import dataclasses
import re
import types
import typing as t

from ai_util.response_parser import ProblemSuggestion

PROBLEM_URL_BASE = "https://leetcode.com/problems"


@dataclasses.dataclass(frozen=True)
class CatalogProblem:
    id: str
    title: str
    slug: str
    difficulty: str
    topic: str


_PROBLEMS = (
    CatalogProblem("1", "Two Sum", "two-sum", "easy", "arrays"),
    CatalogProblem("20", "Valid Parentheses", "valid-parentheses", "easy", "stack"),
    CatalogProblem("21", "Merge Two Sorted Lists", "merge-two-sorted-lists", "easy", "linked list"),
    CatalogProblem("121", "Best Time to Buy and Sell Stock", "best-time-to-buy-and-sell-stock", "easy", "arrays"),
    CatalogProblem("206", "Reverse Linked List", "reverse-linked-list", "easy", "linked list"),
    CatalogProblem("704", "Binary Search", "binary-search", "easy", "binary search"),
    CatalogProblem("3", "Longest Substring Without Repeating Characters",
                   "longest-substring-without-repeating-characters", "medium", "sliding window"),
    CatalogProblem("15", "3Sum", "3sum", "medium", "two pointers"),
    CatalogProblem("49", "Group Anagrams", "group-anagrams", "medium", "hash table"),
    CatalogProblem("200", "Number of Islands", "number-of-islands", "medium", "graphs"),
    CatalogProblem("322", "Coin Change", "coin-change", "medium", "dynamic programming"),
    CatalogProblem("347", "Top K Frequent Elements", "top-k-frequent-elements", "medium", "heap"),
    CatalogProblem("23", "Merge k Sorted Lists", "merge-k-sorted-lists", "hard", "heap"),
    CatalogProblem("42", "Trapping Rain Water", "trapping-rain-water", "hard", "two pointers"),
    CatalogProblem("76", "Minimum Window Substring", "minimum-window-substring", "hard", "sliding window"),
    CatalogProblem("124", "Binary Tree Maximum Path Sum", "binary-tree-maximum-path-sum", "hard", "trees"),
)

PROBLEMS_BY_ID: t.Mapping[str, CatalogProblem] = types.MappingProxyType({p.id: p for p in _PROBLEMS})
PROBLEMS_BY_TITLE: t.Mapping[str, CatalogProblem] = types.MappingProxyType(
    {p.title.lower(): p for p in _PROBLEMS}
)


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower())
    return slug.strip("-")


def problem_url(slug: str) -> str:
    return f"{PROBLEM_URL_BASE}/{slug}/"


def lookup(suggestion: ProblemSuggestion) -> CatalogProblem | None:
    if suggestion.id and suggestion.id in PROBLEMS_BY_ID:
        return PROBLEMS_BY_ID[suggestion.id]
    if suggestion.title:
        return PROBLEMS_BY_TITLE.get(suggestion.title.strip().lower())
    return None


def complete_suggestion(suggestion: ProblemSuggestion) -> ProblemSuggestion:
    """Backfill empty fields from the catalog and set ``url`` from the slug.

    Fields the model did provide are never overwritten. An unknown title
    without a slug gets one derived from the title.
    """
    known = lookup(suggestion)
    if known is not None:
        suggestion = dataclasses.replace(
            suggestion,
            id=suggestion.id or known.id,
            title=suggestion.title or known.title,
            topic=suggestion.topic or known.topic,
            difficulty=suggestion.difficulty or known.difficulty,
            url_slug=suggestion.url_slug or known.slug,
        )
    if not suggestion.url_slug and suggestion.title:
        suggestion = dataclasses.replace(suggestion, url_slug=slugify(suggestion.title))
    if suggestion.url_slug:
        suggestion = dataclasses.replace(suggestion, url=problem_url(suggestion.url_slug.strip("/")))
    return suggestion
