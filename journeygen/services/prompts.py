# journeygen/services/prompts.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from journeygen.services.context import AggregatedContext

NO_ANSWER = "[No answer provided]"
PROMPTS_PER_SECTION = 5


@dataclass(frozen=True)
class ComposedPrompt:
    system: str
    user: str


JOURNAL_INSTRUCTIONS = """You are a journal writer. Your task is to generate a complete guided journal based on the user's topic. The journal must include:

1. **title** (string)
2. **description** (string)
3. **tableOfContents** (array of sections). Each section must have:
   - entryType  ("Part", "Section", or "Closing")
   - title      (string)
   - content    (3-5 paragraphs of explanatory text)
   - prompts    (exactly 5 reflection prompts, each of the form {"text": "..."})

After all "Part" and "Section" entries, append a final section whose entryType is "Closing", containing wrap-up prompts.

**IMPORTANT**: Respond with _only_ the final JSON object - no extra commentary or markdown fences. Your reply must start with "{" and end with "}" and be valid JSON."""


REPORT_INSTRUCTIONS = (
    "You are a coach's assistant. Based on the guided journal below (which was created "
    "specifically for {name}), generate a personalized report with suggestions, insights, "
    "and next steps for the user. Include any relevant context from the knowledge bank and "
    "the client's background in your response."
)


def _preamble(context: AggregatedContext) -> str:
    parts: list[str] = []
    if context.text.strip():
        parts.append(context.text.strip())
    who = [f"Client Name: {context.client.name}"]
    if context.client.background:
        who.append(f"Client Background: {context.client.background}")
    parts.append("\n".join(who))
    return "\n\n".join(parts)


def compose_journal_prompt(context: AggregatedContext, topic: str) -> ComposedPrompt:
    system = f"{_preamble(context)}\n\n{JOURNAL_INSTRUCTIONS}"
    user = f'Generate a complete guided journal on the topic: "{topic.strip()}".'
    return ComposedPrompt(system=system, user=user)


def _prompt_text(prompt) -> str:
    if isinstance(prompt, dict):
        return str(prompt.get("text") or "")
    return str(prompt or "")


def render_journal_answers(
    table_of_contents: Sequence[dict],
    responses: Optional[Sequence] = None,
) -> str:
    """Every section with its prompts paired to the stored answer (or a placeholder)."""
    responses = list(responses or [])
    lines: list[str] = []
    for sec_idx, section in enumerate(table_of_contents or []):
        lines.append("---")
        lines.append(f"Section ({section.get('entryType')}): {section.get('title')}")
        lines.append(f"Content: {section.get('content') or ''}")
        lines.append("Prompts and answers:")
        answers = responses[sec_idx] if sec_idx < len(responses) and isinstance(responses[sec_idx], list) else []
        for p_idx, prompt in enumerate(section.get("prompts") or []):
            answer = answers[p_idx] if p_idx < len(answers) else None
            if not isinstance(answer, str) or not answer.strip():
                answer = NO_ANSWER
            lines.append(f"  Prompt {p_idx + 1}: {_prompt_text(prompt)}")
            lines.append(f"  Answer {p_idx + 1}: {answer}")
        lines.append("")
    return "\n".join(lines)


def compose_report_prompt(
    context: AggregatedContext,
    journal,
    responses: Optional[Sequence] = None,
) -> ComposedPrompt:
    name = context.client.name
    system = f"{_preamble(context)}\n\n{REPORT_INSTRUCTIONS.format(name=name)}"

    user = (
        f"Journal Title: {journal.title}\n"
        f"Journal Description: {journal.description}\n\n"
        f"{render_journal_answers(journal.table_of_contents, responses)}"
        f"---\nNow provide a cohesive report for {name}: highlight strengths, offer constructive "
        "feedback, and suggest next steps based on their background and their responses.\n\nReport:\n"
    )
    return ComposedPrompt(system=system, user=user)


__all__ = [
    "ComposedPrompt",
    "NO_ANSWER",
    "PROMPTS_PER_SECTION",
    "compose_journal_prompt",
    "compose_report_prompt",
    "render_journal_answers",
]
