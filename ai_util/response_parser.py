from __future__ import annotations

import dataclasses
import re

_WHITESPACE_RE = re.compile(r"\s+")

REQUIRED_FIELDS = ("id", "title", "topic", "difficulty", "focus_area", "url_slug")


@dataclasses.dataclass
class ProblemSuggestion:
    id: str = ""
    title: str = ""
    topic: str = ""
    difficulty: str = ""
    focus_area: str = ""
    url_slug: str = ""
    url: str = ""

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]

    def to_dict(self) -> dict[str, str]:
        return dataclasses.asdict(self)


def normalize_key(raw: str) -> str:
    key = raw.strip().strip("*").strip()
    return _WHITESPACE_RE.sub("_", key.lower())


def parse_key_values(text: str) -> dict[str, str]:
    """Collect ``Key: Value`` lines into a dict keyed by normalized key.

    Lines without a colon are skipped. Later duplicates overwrite earlier ones.
    """
    pairs: dict[str, str] = {}
    for line in (text or "").splitlines():
        if ":" not in line:
            continue
        raw_key, raw_value = line.split(":", 1)
        key = normalize_key(raw_key)
        if not key:
            continue
        pairs[key] = raw_value.strip().strip("*").strip()
    return pairs


def parse_suggestion(text: str) -> ProblemSuggestion:
    pairs = parse_key_values(text)
    return ProblemSuggestion(
        id=pairs.get("problem_id", ""),
        title=pairs.get("problem_title", ""),
        topic=pairs.get("topic", ""),
        difficulty=pairs.get("difficulty", ""),
        focus_area=pairs.get("focus_area", ""),
        url_slug=pairs.get("url_slug", ""),
    )
