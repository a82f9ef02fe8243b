"""
VAPI assistant configuration for inbound calls.

The assistant-request webhook answers with a full assistant definition built
from the caller's user record and call settings.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_VOICE_ID = "d46abd1d-2d02-43e8-819f-51fb652c1c61"
TRANSCRIBER = {"model": "nova-2", "language": "en", "provider": "deepgram"}
MODEL_NAME = "gpt-4.1"
MODEL_PROVIDER = "openai"
VOICE_MODEL = "sonic-3"
VOICE_PROVIDER = "cartesia"
ASSISTANT_NAME = "eveokee"
FIRST_MESSAGE_MODE = "assistant-speaks-first-with-model-generated-message"
VOICEMAIL_MESSAGE = "Please call back when you're available."
END_CALL_MESSAGE = "Goodbye."
USER_NAME_FALLBACK = "there"
WEBHOOK_PATH = "/webhooks/vapi"

SYSTEM_PROMPT_TEMPLATE = """You are Evokee, a friendly, curious companion who helps the user notice meaningful moments in everyday life through short, natural conversation.

GOAL
Create an easy, human-feeling moment, not an interview. If a story or detail surfaces, great. If not, the small talk itself is enough.

STYLE & TONE
Warm, relaxed, gently playful, like a close friend checking in.
1-2 short sentences per turn.
Only one question per turn.
Stay concrete, casual and curious. Never analytical.
No summaries, advice, or interpretation.
If the user sounds low or tired, acknowledge lightly and keep it easy.

SESSION CONTEXT (don't speak this out loud)
- User name: {user_name}
- Local time: {local_time}
- Day of week: {day_of_week}

OPENING
Start conversationally. You're catching up, not running a check-in. Offer one gentle nudge toward reflection, open and pressure-free.
Examples:
"Hey, {user_name}, how's your day moving along so far?"
"Hi! Anything small from today that stuck in your mind a little?"
"Got a moment? What kind of day's it been for you?"

CONVERSATION FLOW
1. Identify one thread. When the user shares multiple things, pick one specific piece and confirm it with a neutral cue.
2. Build a simple picture first: purpose, who was involved, when, and how it unfolded.
3. Gauge engagement. If answers get short, shift gently to something else from the day.
4. Spot a small spark: a joke, a pause, a quick decision. Ask about that one instant.
5. Micro-scene focus. Encourage a single second in simple details.

ACKS & MIRRORING
Briefly acknowledge side notes, then return to the thread.
Mirror the user's exact terms. Don't re-ask known facts.

CALL TERMINATION
If you detect voicemail or an automated system, use hang_up immediately.
If the user asks to end or the chat feels complete, use hang_up to close.

DON'TS
Don't assume outcomes. Don't give advice or interpret. Don't summarize. No stacked questions.

OBJECTIVE
Help the user notice one tiny, real moment in their day, but only after understanding what actually happened."""

SUCCESS_EVALUATION_PROMPT = """Evaluate whether this call should generate a diary entry and music.
The call should NOT generate diary/music if:
- It's a voicemail (no real conversation)
- Very brief (< 15 seconds of actual conversation)
- User explicitly says they're "just testing" or testing the system
- Hurried pickup with no meaningful content
- Technical test calls with no personal content

The call SHOULD generate diary/music if:
- Actual conversation about the user's day
- Meaningful moments or experiences shared
- Substantive dialogue beyond greetings
- Personal reflections or events discussed

Respond with "true" if the call should generate diary/music, "false" otherwise."""

SUMMARY_PROMPT = """Based on the conversation transcript from this wellness check-in call, create a personal diary entry that:
- Captures the main thoughts, feelings, and experiences shared
- Writes in first person as if the user is writing their own diary
- Maintains an authentic, personal tone
- Focuses on emotional insights and meaningful moments
- Is concise but meaningful (200-400 words)
- Uses the same language as the conversation

Do not mention that this is from a call or conversation. Write as if the user is naturally reflecting on their day.

Format the summary as a diary entry that flows naturally and captures the essence of what was discussed.
Exception: if the call was a voicemail, return "Voicemail" and nothing else."""


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Invalid timezone: {tz_name}") from e


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def format_local_time(moment: datetime, tz_name: str) -> str:
    """Format *moment* in *tz_name*, e.g. ``Oct 28, 2025, 09:30 AM``."""
    local = _as_utc(moment).astimezone(_zone(tz_name))
    return f"{local:%b} {local.day}, {local:%Y, %I:%M %p}"


def day_of_week_label(moment: datetime, tz_name: str) -> str:
    """Weekday name in *tz_name*, or ``Weekend`` for Saturday and Sunday."""
    local = _as_utc(moment).astimezone(_zone(tz_name))
    if local.weekday() >= 5:
        return "Weekend"
    return f"{local:%A}"


def build_system_prompt(user_name: str, local_time: str, day_of_week: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        user_name=user_name,
        local_time=local_time,
        day_of_week=day_of_week,
    )


def build_assistant(
    user_name: Optional[str],
    tz_name: str,
    scheduled_for: datetime,
    webhook_url: str,
    credential_ids: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Assemble the assistant definition returned to VAPI for an inbound call."""
    system_prompt = build_system_prompt(
        user_name or USER_NAME_FALLBACK,
        format_local_time(scheduled_for, tz_name),
        day_of_week_label(scheduled_for, tz_name),
    )

    assistant: dict[str, Any] = {
        "transcriber": dict(TRANSCRIBER),
        "model": {
            "messages": [{"content": system_prompt, "role": "system"}],
            "model": MODEL_NAME,
            "provider": MODEL_PROVIDER,
            "tools": [{"type": "endCall", "function": {"name": "hang_up"}}],
        },
        "voice": {
            "voiceId": DEFAULT_VOICE_ID,
            "model": VOICE_MODEL,
            "provider": VOICE_PROVIDER,
        },
        "firstMessage": "",
        "firstMessageMode": FIRST_MESSAGE_MODE,
        "name": ASSISTANT_NAME,
        "voicemailMessage": VOICEMAIL_MESSAGE,
        "endCallMessage": END_CALL_MESSAGE,
        "server": {"url": webhook_url},
        "serverMessages": ["end-of-call-report"],
        "analysisPlan": {
            "successEvaluationPlan": {
                "rubric": "PassFail",
                "messages": [
                    {"role": "system", "content": SUCCESS_EVALUATION_PROMPT},
                    {"role": "user", "content": "Here is the transcript:\n\n{{transcript}}\n\n"},
                    {
                        "role": "user",
                        "content": (
                            "Here was the system prompt of the call:\n\n{{systemPrompt}}\n\n. "
                            "Here is the ended reason of the call:\n\n{{endedReason}}\n\n"
                        ),
                    },
                ],
                "enabled": True,
                "timeoutSeconds": 30,
            },
            "summaryPlan": {
                "messages": [
                    {"role": "system", "content": SUMMARY_PROMPT},
                    {"role": "user", "content": "Here is the transcript:\n\n{{transcript}}\n\n"},
                ],
            },
        },
    }

    if credential_ids:
        assistant["credentialIds"] = list(credential_ids)
    return assistant


def webhook_url_for(site_url: str) -> str:
    return f"{site_url.rstrip('/')}{WEBHOOK_PATH}"
