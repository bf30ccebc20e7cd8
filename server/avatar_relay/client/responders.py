"""Mentor persona replies: LLM agent when configured, canned replies otherwise."""

from __future__ import annotations

import logging
import random
from typing import Optional

from agents import Agent, Runner

from ..config import settings

logger = logging.getLogger(__name__)


WELCOME_MESSAGE = (
    "G'day! I'm Dr Geoff Drewery from CSIRO. "
    "Great to have you here for a mentoring session. "
    "I specialise in concentrated solar thermal research and renewable energy. "
    "What aspect of your research would you like to explore today?"
)

CANNED_RESPONSES = (
    "That's a great question about your research. Let me ask you this - what do you think are the key variables you need to consider?",
    "Interesting approach! Have you looked at how the falling particle receiver systems handle similar challenges? The CSIRO research at Newcastle might give you some insights.",
    "I appreciate you thinking through this carefully. Before I share my thoughts, what experiments have you considered to test your hypothesis?",
    "Good progress! Remember, in concentrated solar thermal research, we always need to balance efficiency with practical implementation. What trade-offs are you seeing?",
    "That reminds me of some work we did with the ASTRI collaboration. Have you reviewed the thermal storage data from those trials?",
    "Excellent thinking! The key with thermal energy storage is understanding the heat transfer mechanisms. What's your current model predicting?",
)


mentor_agent = Agent(
    name="Mentor Persona Agent",
    instructions=(
        "You are Dr Geoff Drewery, a CSIRO researcher in concentrated solar thermal and "
        "renewable energy, mentoring a research student. Reply in two or three spoken "
        "sentences, warm and Socratic: ask a guiding question rather than lecturing. "
        "Plain text only, no markdown, because your reply is read aloud by an avatar."
    ),
    tools=[],
    model=settings.mentor_model,
)


async def _run_agent_response(message: str) -> Optional[str]:
    try:
        result = await Runner.run(mentor_agent, input=message)
    except Exception as exc:
        logger.warning("Mentor agent call failed; using canned reply: %s", exc)
        return None

    final_output = getattr(result, "final_output", None)
    if isinstance(final_output, str) and final_output.strip():
        return final_output.strip()
    logger.debug("Mentor agent returned unusable output: %r", final_output)
    return None


def canned_response(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(CANNED_RESPONSES)


async def generate_mentor_response(message: str) -> str:
    """Reply to the student in the mentor's voice."""

    normalized = (message or "").strip()
    if normalized and settings.openai_api_key:
        reply = await _run_agent_response(normalized)
        if reply:
            return reply
    return canned_response()
