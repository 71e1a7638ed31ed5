"""Prompt templates for the LLM relevance gate."""

import json

RELEVANCE_GATE_SYSTEM = """You decide whether retrieved local resources are relevant context for a task a user is writing.
Rules:
- Judge each candidate only against the task draft.
- A candidate is relevant only if it would clearly help complete the task.
- Shared generic words (e.g. "report", "notes", "file") are not enough.
- When unsure, mark the candidate as not relevant with low confidence.
Respond with JSON only."""

RELEVANCE_GATE_PROMPT = """Task draft:
{draft}

Candidates (JSON):
{candidates_json}

Return a JSON object of the form:
{{"verdicts": [{{"id": "<candidate id>", "isRelevant": true, "confidence": 0.0, "reason": "<short reason>"}}]}}
Include exactly one verdict per candidate. "confidence" is between 0.0 and 1.0."""


def format_candidates_block(candidates: list[dict]) -> str:
    """Compact JSON array of candidate summaries for the prompt."""
    return json.dumps(candidates, ensure_ascii=False, separators=(",", ":"))
