from __future__ import annotations

import re
import types
import typing as t

from ai_util.errors import MissingParameter, UnknownTemplate

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")

_TEMPLATES: dict[str, str] = {
    "expert_coding_mentor": (
        "As a {{coding_language}} expert with 20+ years of experience, analyze my performance based on the "
        "time taken to solve my last question: {{question}} in {{time}}. "
        "Time is the most crucial factor: if I take too long on an easy question, it indicates weakness in "
        "that topic, and I need more practice. "
        "The second weightage factor is my starting skill level ({{starting_difficulty}}), which should help "
        "determine my next question. "
        "Adjust difficulty naturally so I don't notice the increase, reinforcing weak logic by mixing concepts "
        "without repeating topics. "
        "Ensure my progress is smooth while covering all coding topics. Provide a structured response, and give "
        "me **one question at a time**. Do not give more than one question. \n\n"
        "**Question Name:**\n"
        "**Explanation:**\n"
        "**Example Input & Output:**\n"
        "**Difficulty Level:**\n"
        "**Topic:**\n"
        "**Recommendation:**\n"
    ),
    "next_problem": (
        "You are a LeetCode coach. I just solved \"{{last_problem}}\" ({{difficulty}}, topic: {{topic}}) "
        "in {{time_taken}} minutes. "
        "Suggest exactly one LeetCode problem I should solve next. "
        "Pick a real problem that exists on leetcode.com and give its official URL slug. "
        "Answer with these lines only, one per line, and nothing else:\n\n"
        "Problem ID: <number>\n"
        "Problem Title: <title>\n"
        "Topic: <topic>\n"
        "Difficulty: <easy|medium|hard>\n"
        "Focus Area: <what this problem practices>\n"
        "URL Slug: <slug>\n"
    ),
}

PROMPT_TEMPLATES: t.Mapping[str, str] = types.MappingProxyType(_TEMPLATES)


def available_templates() -> list[str]:
    return list(PROMPT_TEMPLATES.keys())


def placeholders(text: str) -> list[str]:
    seen: list[str] = []
    for name in PLACEHOLDER_RE.findall(text):
        if name not in seen:
            seen.append(name)
    return seen


def fill_placeholders(text: str, parameters: t.Mapping[str, t.Any]) -> str:
    """Replace every ``{{name}}`` occurrence in ``text`` with ``str(value)``.

    Raises ``MissingParameter`` when a placeholder has no matching parameter.
    """
    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in parameters:
            return str(parameters[name])
        return match.group(0)

    missing = [name for name in placeholders(text) if name not in parameters]
    if missing:
        raise MissingParameter(missing)
    return PLACEHOLDER_RE.sub(substitute, text)


def build_prompt(template: str, parameters: t.Mapping[str, t.Any]) -> str:
    if template not in PROMPT_TEMPLATES:
        raise UnknownTemplate(
            f"Invalid template. Available templates: {', '.join(available_templates())}"
        )
    return fill_placeholders(PROMPT_TEMPLATES[template], parameters)
