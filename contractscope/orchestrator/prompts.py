"""Fixed prompt texts for the map, single-request and consolidation calls."""
from __future__ import annotations

SYSTEM_PROMPT = (
    "You analyze legal contracts. Identify: unilateral termination, penalties, jurisdiction, risks. "
    "Give a complete answer in plain text, without emojis or markdown formatting."
)

SINGLE_REQUEST_INSTRUCTION = (
    "Analyze this complete contract. Identify unilateral termination clauses, penalties (with amounts), "
    "jurisdiction/arbitration and the main risks. Give a complete answer without emojis or markdown formatting."
)

FRAGMENT_INSTRUCTION = (
    "Analyze this fragment of the contract. Identify unilateral termination, penalties (with amounts), "
    "jurisdiction/arbitration and the main risks. Answer without emojis."
)

CONSOLIDATION_INSTRUCTION = (
    "Consolidate these fragments into one complete final report on: unilateral termination, penalties, "
    "jurisdiction and risks. Include every important detail without omitting information. "
    "Answer without emojis or markdown formatting."
)


def fragment_prompt(index: int, total: int, text: str) -> str:
    """Positional wrapper for one map-phase request."""
    return f"Part {index}/{total} of the contract:\n{text}\n\nInstruction: {FRAGMENT_INSTRUCTION}"


def single_request_prompt(text: str) -> str:
    return f"{SINGLE_REQUEST_INSTRUCTION}\n\n{text}"
