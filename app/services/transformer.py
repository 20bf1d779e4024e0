"""Turn a plain reminder body into the playful text that actually gets sent."""

from __future__ import annotations

import random

FUN_PREFIXES = (
    "Hey superstar! Remember to",
    "Psst... Future you will thank you for remembering to",
    "Knock knock! Who's there? It's your reminder to",
    "BEEP BOOP. HUMAN MUST",
    "Your friendly neighborhood AI says:",
    "Drop everything and",
    "This is your conscience speaking. Please",
    "Breaking news: You need to",
    "Alert! Alert! Time to",
    "*taps microphone* Attention please:",
)

FUN_SUFFIXES = (
    ". Don't mess this up!",
    ". You've got this!",
    ". No pressure, but... tick tock!",
    ". Your future self is already thanking you.",
    ". Failure is not an option (just kidding, it totally is).",
    ". This message will self-destruct in 5...4...3... Just kidding!",
    ". Achievement unlocked: Responsible Adult!",
    ". Gold star for you if you do this!",
    ". The universe is counting on you.",
    ". Your pet would be so proud.",
)

_rng = random.Random()


def transform(body: str, rng: random.Random | None = None) -> str:
    """Wrap ``body`` in a random prefix/suffix.

    Everything after the first character of ``body`` appears verbatim in the
    result, so the reminder text can always be read back out of it.
    """
    if not body or not body.strip():
        raise ValueError("body must be a non-empty string")
    rng = rng or _rng
    prefix = rng.choice(FUN_PREFIXES)
    suffix = rng.choice(FUN_SUFFIXES)
    # Lower-case the first letter so it reads on from the prefix
    formatted = body[0].lower() + body[1:]
    return f"{prefix} {formatted}{suffix}"
