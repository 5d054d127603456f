"""
Prompt text sent to the live backend: system instruction per profile, the manual
response payload, and the context message replayed after a reconnection.
"""
from __future__ import annotations

from typing import Sequence

from earpiece.transcript.models import ConversationTurn, TranscriptionEntry

_PROFILE_INTROS = {
    "interview": (
        "You are an AI-powered interview assistant helping the user (the interviewee) answer "
        "questions from the interviewer in real time."
    ),
    "sales": "You are a sales call assistant helping the user respond to a prospect in real time.",
    "meeting": "You are a meeting assistant helping the user follow and contribute to a live meeting.",
    "presentation": "You are a presentation coach helping the user answer audience questions in real time.",
    "negotiation": "You are a negotiation assistant helping the user respond to the other party in real time.",
    "exam": "You are an exam assistant helping the user answer the question on screen.",
}

_RULES = """RULES:
- The transcript labels who spoke: "Interviewer" is the other party, "Interviewee" is the user.
- Only respond when explicitly asked for a response; otherwise just keep the conversation in mind.
- Answer the most recent question from the other party directly and concisely.
- Use markdown; put code in fenced blocks.
- If a screen capture is provided, use it as additional context."""

NO_CONTEXT_TEXT = (
    "No recent conversation context available. Please analyze the current screen content "
    "and provide assistance based on what you can see."
)

DEFAULT_SUFFIX = (
    "Based on the above conversation context and current screen capture analysis (if available), "
    "please provide a comprehensive and helpful response. Focus on answering the most recent "
    "question from the interviewer."
)

SCREENSHOT_SUFFIX = (
    "Help me on this page, give me the answer no bs, complete answer. So if its a code question, "
    "give me the approach in few bullet points, then the entire code. Also if theres anything else "
    "i need to know, tell me. If its a mcq question, give me the answer no bs, complete answer. "
    + DEFAULT_SUFFIX
)

RECONNECTION_PREFIX = "Till now all these questions were asked in the interview, answer the last one please:"


def build_system_prompt(profile: str = "interview", custom_prompt: str = "") -> str:
    """System instruction for a new live session. Unknown profiles fall back to interview."""
    intro = _PROFILE_INTROS.get(profile, _PROFILE_INTROS["interview"])
    parts = [intro, _RULES]
    custom = (custom_prompt or "").strip()
    if custom:
        parts.append(f"User-provided context:\n-----\n{custom}\n-----")
    return "\n\n".join(parts)


def build_manual_prompt(
    context_lines: Sequence[str],
    word_count: int,
    focus: Sequence[TranscriptionEntry],
    with_screenshot: bool = False,
) -> str:
    """
    Context block + most recent interviewer statement as focus + instructional suffix.
    Falls back to a screen-only request when there is no conversation at all.
    """
    message = ""
    if context_lines:
        message += f"Recent conversation context (last {word_count} words):\n" + "\n".join(context_lines) + "\n\n"
    if focus:
        message += f'Most recent question to focus on: "{focus[-1].text}"\n\n'
    if not message.strip():
        message = NO_CONTEXT_TEXT + "\n\n"
    return message + (SCREENSHOT_SUFFIX if with_screenshot else DEFAULT_SUFFIX)


def build_reconnection_context(
    turns: Sequence[ConversationTurn],
    recent: Sequence[TranscriptionEntry] = (),
) -> str | None:
    """
    Single message replaying earlier questions to a fresh session. Uses saved turns;
    with no saved turns, the recent transcript instead. None when there is nothing to send.
    """
    lines = [t.transcription for t in turns if t.transcription and t.transcription.strip()]
    if not lines:
        lines = [f"{e.speaker}: {e.text}" for e in recent]
    if not lines:
        return None
    return f"{RECONNECTION_PREFIX}\n\n" + "\n".join(lines)
