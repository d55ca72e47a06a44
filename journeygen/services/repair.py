# journeygen/services/repair.py
"""
Parse, repair and validate the journal object returned by the model.

    parse_generated(raw)   -> ParseResult      strict json, then ONE repair retry
    validate_journal(data) -> ValidationResult field-level shape check + normalization
    build_journal(raw)     -> dict             both of the above, raising on failure

The model is told to return a Closing section and exactly five prompts per
section; neither is trusted. The closing section is repaired here, never
rejected. Prompt cardinality follows PROMPT_CARDINALITY_POLICY.
"""
from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from journeygen.errors import MalformedGeneration, UnexpectedShape
from journeygen.models import EntryType
from journeygen.services.prompts import PROMPTS_PER_SECTION
from journeygen.settings.config import settings

ENTRY_TYPES = {e.value for e in EntryType}
CLOSING = EntryType.closing.value

DEFAULT_CLOSING_SECTION = {
    "entryType": CLOSING,
    "title": "Closing",
    "content": "Thank you for completing this journal. Please use the prompts below to finalize your reflection.",
    "prompts": [
        {"text": "How do you feel now that you have explored this topic?"},
        {"text": "What is your main takeaway from this journal?"},
        {"text": "How will you apply these insights going forward?"},
        {"text": "Is there anything else you wish to reflect on before closing?"},
        {"text": "Submit your final thoughts when you're ready."},
    ],
}

FILLER_PROMPTS = (
    "What stands out to you most from this section?",
    "Where do you notice this showing up in your own life?",
    "What feelings come up as you reflect on this?",
    "What is one small step you could take this week?",
    "What would you like to remember from this section?",
)

_TRAILING_COMMA = re.compile(r",\s*([\]}])")


# ---------- parse / repair ----------

@dataclass
class ParseResult:
    value: Any = None
    error: Optional[str] = None
    repaired: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def strip_trailing_commas(raw: str) -> str:
    """',]' -> ']' and ',}' -> '}' (whitespace between allowed)."""
    return _TRAILING_COMMA.sub(r"\1", raw)


def parse_generated(raw: str) -> ParseResult:
    try:
        return ParseResult(value=json.loads(raw))
    except (TypeError, ValueError):
        pass
    try:
        return ParseResult(value=json.loads(strip_trailing_commas(raw or "")), repaired=True)
    except ValueError as e:
        return ParseResult(error=str(e), repaired=True)


# ---------- validation / normalization ----------

@dataclass
class ValidationResult:
    journal: Optional[dict] = None
    issues: list[str] = field(default_factory=list)
    closing_added: bool = False

    @property
    def ok(self) -> bool:
        return not self.issues and self.journal is not None


def _prompt_text(item) -> Optional[str]:
    if isinstance(item, str):
        return item
    if isinstance(item, dict) and isinstance(item.get("text"), str):
        return item["text"]
    return None


def normalize_section(entry: dict) -> dict:
    """Keep only the known section fields; prompts become [{"text": ...}]."""
    prompts = []
    for item in entry.get("prompts") or []:
        text = _prompt_text(item)
        if text is not None and text.strip():
            prompts.append({"text": text})
    content = entry.get("content")
    return {
        "entryType": entry["entryType"],
        "title": entry["title"],
        "content": content if isinstance(content, str) else "",
        "prompts": prompts,
    }


def fit_prompts(section: dict) -> dict:
    prompts = list(section["prompts"][:PROMPTS_PER_SECTION])
    fillers = (f for f in FILLER_PROMPTS if f not in {p["text"] for p in prompts})
    while len(prompts) < PROMPTS_PER_SECTION:
        prompts.append({"text": next(fillers, FILLER_PROMPTS[0])})
    return {**section, "prompts": prompts}


def ensure_closing(sections: list[dict]) -> tuple[list[dict], bool]:
    """
    Exactly one Closing entry, and it is last. Returns (sections, added).
    A misplaced Closing is moved to the end; extra Closings become Sections.
    """
    closing = None
    body: list[dict] = []
    for section in sections:
        if section["entryType"] != CLOSING:
            body.append(section)
        elif closing is None:
            closing = section
        else:
            body.append({**section, "entryType": EntryType.section.value})
    if closing is None:
        return body + [copy.deepcopy(DEFAULT_CLOSING_SECTION)], True
    return body + [closing], False


def validate_journal(data: Any, *, cardinality: Optional[str] = None) -> ValidationResult:
    cardinality = cardinality or settings.PROMPT_CARDINALITY_POLICY
    if not isinstance(data, dict):
        return ValidationResult(issues=[f"expected a JSON object, got {type(data).__name__}"])

    issues: list[str] = []
    for key in ("title", "description"):
        if not isinstance(data.get(key), str):
            issues.append(f"{key}: expected string")
    toc = data.get("tableOfContents")
    if not isinstance(toc, list):
        issues.append("tableOfContents: expected array")
        return ValidationResult(issues=issues)

    sections: list[dict] = []
    for idx, entry in enumerate(toc):
        where = f"tableOfContents[{idx}]"
        if not isinstance(entry, dict):
            issues.append(f"{where}: expected object")
            continue
        if entry.get("entryType") not in ENTRY_TYPES:
            issues.append(f"{where}.entryType: expected one of {sorted(ENTRY_TYPES)}")
            continue
        if not isinstance(entry.get("title"), str):
            issues.append(f"{where}.title: expected string")
            continue
        if entry.get("prompts") is not None and not isinstance(entry.get("prompts"), list):
            issues.append(f"{where}.prompts: expected array")
            continue
        sections.append(normalize_section(entry))

    if issues:
        return ValidationResult(issues=issues)

    sections, added = ensure_closing(sections)

    if cardinality == "reject":
        for idx, section in enumerate(sections):
            if len(section["prompts"]) != PROMPTS_PER_SECTION:
                issues.append(
                    f"tableOfContents[{idx}].prompts: expected {PROMPTS_PER_SECTION}, got {len(section['prompts'])}"
                )
        if issues:
            return ValidationResult(issues=issues)
    elif cardinality == "pad":
        sections = [fit_prompts(s) for s in sections]

    journal = {
        "title": data["title"],
        "description": data["description"],
        "tableOfContents": sections,
    }
    return ValidationResult(journal=journal, closing_added=added)


def build_journal(raw: str, *, cardinality: Optional[str] = None) -> dict:
    parsed = parse_generated(raw)
    if not parsed.ok:
        raise MalformedGeneration(f"Failed to parse generated journal: {parsed.error}", raw=raw)
    result = validate_journal(parsed.value, cardinality=cardinality)
    if not result.ok:
        raise UnexpectedShape("Unexpected response shape from generation.", issues=result.issues)
    return result.journal


__all__ = [
    "DEFAULT_CLOSING_SECTION",
    "ParseResult",
    "ValidationResult",
    "build_journal",
    "ensure_closing",
    "parse_generated",
    "strip_trailing_commas",
    "validate_journal",
]
