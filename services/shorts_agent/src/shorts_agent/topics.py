"""Daily topic selection."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .clients import ClientProfile
from .exceptions import NoTopicsError

_CALENDAR_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

FALLBACK_TOPICS: dict[str, tuple[str, ...]] = {
    "tech": (
        "AI tools that save an hour a day",
        "How edge computing changes mobile apps",
        "Zero-trust security in plain English",
        "Modern API versioning strategies",
        "Web performance wins with small tweaks",
        "How recommendation systems really work",
        "Practical prompt engineering for teams",
        "Low-code vs full-code: when to choose each",
        "Feature flags for safer releases",
        "What product analytics should measure first",
        "The real cost of technical debt",
        "How to evaluate SaaS tools quickly",
        "Data privacy basics for non-lawyers",
        "Event-driven architecture explained simply",
        "A beginner guide to GraphQL tradeoffs",
        "Building reliable search experiences",
        "How caching improves user experience",
        "Accessibility fixes with highest impact",
        "What makes a great developer onboarding flow",
        "How to choose between SQL and NoSQL",
        "A practical intro to vector databases",
        "When to use serverless functions",
        "Observability signals that matter most",
        "How to reduce cloud costs without risk",
        "Designing for offline-first mobile apps",
        "Secure secret management for small teams",
        "The anatomy of a resilient webhook system",
        "How to run effective technical postmortems",
        "Microservices or monolith: a decision guide",
        "Using CI pipelines to catch regressions early",
    ),
    "devops": (
        "CI/CD pipeline stages every team needs",
        "Blue-green deployments without downtime",
        "Canary releases for safer production changes",
        "Infrastructure as code: first principles",
        "Kubernetes readiness vs liveness probes",
        "SRE error budgets explained simply",
        "How to build actionable alerting rules",
        "Incident response roles and responsibilities",
        "Postmortems that improve systems",
        "Secrets management in cloud-native stacks",
        "GitOps workflows for multi-env delivery",
        "Container image hardening checklist",
        "Practical log retention strategies",
        "How to baseline service-level indicators",
        "Disaster recovery drills that actually help",
        "Cost optimization for persistent workloads",
        "Autoscaling pitfalls and fixes",
        "Progressive delivery with feature gates",
        "Monitoring queue health in distributed systems",
        "How to choose a deployment orchestration tool",
        "Managing multi-region failover confidence",
        "Reliable backups for stateful services",
        "How to prevent config drift at scale",
        "Build artifact provenance and supply-chain trust",
        "Optimizing build times in monorepos",
        "Creating golden paths for developer platforms",
        "Network policies for Kubernetes security",
        "Runbooks that reduce on-call stress",
        "Service dependency mapping techniques",
        "Capacity planning with historical metrics",
    ),
    "finance": (
        "How compound interest builds long-term wealth",
        "Budgeting with a zero-based framework",
        "Emergency funds: how much is enough?",
        "Credit score factors you can improve now",
        "Index funds vs active funds explained",
        "Dollar-cost averaging for volatile markets",
        "How inflation impacts your savings plan",
        "Common investing mistakes beginners make",
        "Risk tolerance and portfolio allocation basics",
        "What to know before opening a brokerage account",
        "Debt snowball vs debt avalanche methods",
        "Understanding ETFs in simple terms",
        "How to evaluate expense ratios quickly",
        "Building a monthly cash-flow dashboard",
        "Retirement account options by employment type",
        "Tax-loss harvesting basics for investors",
        "How to set realistic financial goals",
        "Sinking funds for irregular expenses",
        "What diversification actually protects against",
        "Short-term vs long-term investing mindset",
        "How to automate healthy money habits",
        "Reading company earnings as a beginner",
        "Behavioral biases that hurt investment returns",
        "Understanding bond ladders for stability",
        "Planning for big purchases without panic",
        "How to compare mortgage options wisely",
        "Side-income ideas and tax considerations",
        "Protecting your finances from fraud",
        "Building net worth with deliberate systems",
        "Simple portfolio rebalancing strategies",
    ),
}


def fnv1a_32(text: str) -> int:
    """32-bit FNV-1a over the UTF-16 code units of ``text``."""

    value = 0x811C9DC5
    data = text.encode("utf-16-le")
    for index in range(0, len(data), 2):
        value ^= data[index] | (data[index + 1] << 8)
        value = (value * 0x01000193) & 0xFFFFFFFF
    return value


def seeded_pick(seed: str, n: int) -> int:
    if n <= 0:
        return 0
    return fnv1a_32(seed) % n


def day_of_year(day: date) -> int:
    return day.timetuple().tm_yday


def today_in_timezone(tz: str, now: Optional[datetime] = None) -> date:
    """Calendar date in ``tz`` at ``now`` (defaults to the current time)."""

    moment = now or datetime.now(tz=timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz)).date()


def fallback_topics(niche: str) -> tuple[str, ...]:
    normalized = niche.lower()
    if "devops" in normalized:
        return FALLBACK_TOPICS["devops"]
    if "finance" in normalized:
        return FALLBACK_TOPICS["finance"]
    return FALLBACK_TOPICS["tech"]


def _calendar_entry(entry: str) -> Optional[tuple[str, str]]:
    candidate, sep, rest = entry.partition("|")
    if not sep or not _CALENDAR_DATE.match(candidate.strip()):
        return None
    topic = rest.strip()
    if not topic:
        return None
    return candidate.strip(), topic


def select_topic(client: ClientProfile, day: date) -> str:
    """Pick the topic for ``day`` according to the client's selection mode.

    A bank without a non-blank entry falls back to the niche list unless the
    client opted out, in which case ``NoTopicsError`` is raised.
    """

    bank = [topic for topic in client.topic_bank if topic.strip()]
    if not bank:
        if not client.use_fallback_topics:
            raise NoTopicsError(f"No topics configured for client {client.id}")
        bank = list(fallback_topics(client.niche))

    mode = client.topic_selection_mode
    if mode == "random":
        return bank[seeded_pick(f"{client.id}:{day.isoformat()}", len(bank))]
    if mode == "calendar":
        day_key = day.isoformat()
        plain: list[str] = []
        for entry in bank:
            dated = _calendar_entry(entry)
            if dated is None:
                plain.append(entry)
            elif dated[0] == day_key:
                return dated[1]
        if plain:
            return plain[day_of_year(day) % len(plain)]
    return bank[day_of_year(day) % len(bank)]


__all__ = [
    "FALLBACK_TOPICS",
    "day_of_year",
    "fallback_topics",
    "fnv1a_32",
    "seeded_pick",
    "select_topic",
    "today_in_timezone",
]
