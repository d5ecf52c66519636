"""Content checks for generated scripts and the deterministic rewrite used when they fail."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .models import Script

CTA_VERBS: tuple[str, ...] = ("follow", "subscribe", "learn", "save")
MIN_WORD_COUNT = 130
MAX_WORD_COUNT = 190
MAX_HOOK_WORDS = 16
MAX_DURATION_SEC = 60

_CTA_PATTERN = re.compile(r"\b(?:" + "|".join(CTA_VERBS) + r")\b", re.IGNORECASE)


@dataclass(slots=True)
class QualityReport:
    ok: bool
    issues: list[str] = field(default_factory=list)


def count_words(text: str) -> int:
    return len(text.split())


def script_word_count(script: Script) -> int:
    return count_words(f"{script.hook} {script.body} {script.cta}")


def has_cta_verb(cta: str) -> bool:
    return bool(_CTA_PATTERN.search(cta))


def validate_script(script: Script) -> QualityReport:
    """Check length, hook, duration and call-to-action constraints."""

    issues: list[str] = []
    word_count = script_word_count(script)
    if not MIN_WORD_COUNT <= word_count <= MAX_WORD_COUNT:
        issues.append(
            f"word count must be between {MIN_WORD_COUNT} and {MAX_WORD_COUNT} words (got {word_count})"
        )

    hook_words = count_words(script.hook)
    if hook_words > MAX_HOOK_WORDS:
        issues.append(f"hook must be {MAX_HOOK_WORDS} words or fewer (got {hook_words})")

    if script.duration_sec_target > MAX_DURATION_SEC:
        issues.append(
            f"duration must be {MAX_DURATION_SEC} seconds or fewer (got {script.duration_sec_target})"
        )

    if not script.cta.strip():
        issues.append("cta must be non-empty")
    elif not has_cta_verb(script.cta):
        issues.append(f"cta must include a call-to-action verb ({', '.join(CTA_VERBS)})")

    return QualityReport(ok=not issues, issues=issues)


def fixup_script(script: Script, issues: list[str]) -> Script:
    """Return ``script`` unchanged when clean, else a compliant rewrite on the same topic.

    Topic and niche are cut to a few words inside the generated copy so the
    rewrite stays inside the word range whatever the client configured.
    """

    if not issues:
        return script

    topic = _limit_words(script.topic, 8) or "This topic"
    niche = _limit_words(script.niche, 3) or "everyday"
    hook = _limit_words(f"{topic} made simple for {niche} creators.", MAX_HOOK_WORDS)
    body = " ".join(
        [
            f"{topic} matters in {niche} because clear fundamentals help people make better "
            "decisions quickly and avoid expensive mistakes early.",
            "Start by defining one practical goal, then choose one signal that proves progress "
            "so your process stays grounded and measurable.",
            "Next, break the topic into small actions your audience can repeat this week, even "
            "with limited time, tools, or prior experience.",
            f"Use a {script.tone} explanation style with concrete examples so abstract ideas "
            "become memorable, useful, and easy to apply immediately.",
            "Keep each step focused on outcomes, remove unnecessary jargon, and connect every "
            "point to real situations your viewers recognize daily.",
            "Close by summarizing the key takeaway in one line so the lesson feels complete and "
            "your audience knows exactly what to do next.",
        ]
    )
    cta = f"Follow and save this short to learn more {niche} lessons on {topic}."

    return script.model_copy(
        update={
            "hook": hook,
            "body": body,
            "cta": cta,
            "duration_sec_target": min(script.duration_sec_target, MAX_DURATION_SEC),
            "title_suggestions": [
                f"{script.topic}: Fast {script.niche} Breakdown",
                f"{script.topic} Explained in Under a Minute",
                f"How {script.topic} Works ({script.niche} Edition)",
            ],
            "description": (
                f"{script.topic} in plain language for {script.niche} audiences with a "
                f"{script.tone} tone. #Shorts #{''.join(script.niche.split())}"
            ),
            "tags": _build_tags(script),
        }
    )


def ensure_quality(script: Script) -> tuple[Script, QualityReport]:
    """Validate and, when needed, rewrite ``script``; the report describes the input."""

    report = validate_script(script)
    return fixup_script(script, report.issues), report


def _limit_words(text: str, max_words: int) -> str:
    return " ".join(text.split()[:max_words])


def _build_tags(script: Script) -> list[str]:
    candidates = [
        "shorts",
        "youtube shorts",
        script.topic.lower(),
        script.niche.lower(),
        script.tone,
        script.language.lower(),
        "learn fast",
    ]
    return list(dict.fromkeys(tag for tag in candidates if tag))


__all__ = [
    "CTA_VERBS",
    "MAX_DURATION_SEC",
    "MAX_HOOK_WORDS",
    "MAX_WORD_COUNT",
    "MIN_WORD_COUNT",
    "QualityReport",
    "count_words",
    "ensure_quality",
    "fixup_script",
    "has_cta_verb",
    "script_word_count",
    "validate_script",
]
