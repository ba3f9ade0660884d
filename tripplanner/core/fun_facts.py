"""
Destination fun facts shown alongside a planned trip.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from tripplanner.core.errors import NetworkError
from tripplanner.core.response_parser import extract_json_payload

logger = logging.getLogger(__name__)

MAX_FACTS = 3

DEFAULT_FACTS = [
    "This destination has unique cultural attractions waiting to be explored.",
    "Local cuisine is an important part of experiencing this destination.",
    "Consider learning a few basic phrases in the local language before your trip.",
]

_NUMBERED_LINE = re.compile(r"^\d+[\.\)]\s+")


def build_fun_facts_prompt(destination: str) -> str:
    return (
        f"Generate exactly 3 interesting and educational fun facts about {destination} "
        "as a travel destination.\n"
        "Each fact should be unique and provide valuable information for travelers.\n"
        "Format the response as a JSON array with exactly 3 facts, like this:\n"
        '["Fact 1", "Fact 2", "Fact 3"]\n'
        "Keep each fact to 1-2 sentences and make them engaging. "
        "Return ONLY the JSON array with no additional text."
    )


def extract_facts_from_text(text: str) -> list[str]:
    """Pull facts out of free text: numbered lines, quoted lines or plain sentences."""
    facts: list[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue

        match = _NUMBERED_LINE.match(line)
        if match:
            fact = line[match.end() :].strip()
        elif len(line) >= 2 and line.startswith('"') and line.endswith('"'):
            fact = line[1:-1].strip()
        elif ":" not in line and "{" not in line and "}" not in line and len(line) > 15:
            fact = line
        else:
            continue

        if fact:
            facts.append(fact)

    return facts[:MAX_FACTS]


def parse_fun_facts(text: str) -> list[str]:
    try:
        facts = json.loads(extract_json_payload(text, "[", "]"))
    except json.JSONDecodeError:
        facts = None

    if isinstance(facts, list) and facts and all(isinstance(f, str) for f in facts):
        return facts

    return extract_facts_from_text(text)


async def fetch_fun_facts(provider: Any, destination: str) -> list[str]:
    """
    Ask the generative-text service for facts about a destination.

    Falls back to the default facts on any failure; never raises.
    """
    if not destination:
        return []

    try:
        text = await provider.generate_async(build_fun_facts_prompt(destination))
    except NetworkError as e:
        logger.warning("[Planner] Error fetching fun facts: %s", e)
        return list(DEFAULT_FACTS)

    return parse_fun_facts(text) or list(DEFAULT_FACTS)
