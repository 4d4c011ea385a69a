from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from types import MappingProxyType

from trafik_monitor.models import Deviation, ReasonCode, ReasonPriority

UNKNOWN_REASON = "Unknown reason"
DEFAULT_TIER = 1

# Highest tier first; the first tier with a matching keyword wins.
TIER_KEYWORDS: tuple[tuple[int, tuple[str, ...]], ...] = (
    (5, ("inställt", "cancelled", "ställs in", "framställt")),
    (
        4,
        (
            "försenat",
            "delayed",
            "tågkö",
            "fordonsfel",
            "obeh",
            "sjukdom",
            "växelfel",
            "signalfel",
            "elfel",
            "brofel",
            "spårfel",
            "urspårat",
        ),
    ),
    (3, ("spårändrat", "plattform", "buss ersätter", "buss", "ändrad väg", "extrabuss")),
    (2, ("nästa avgång", "kort tåg", "direkttåg", "extratåg", "dubbeltåg", "prel")),
)


def classify_description(description: str) -> int:
    text = (description or "").lower()
    for tier, keywords in TIER_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return tier
    return DEFAULT_TIER


def build_reason_priorities(catalog: Iterable[ReasonCode] | None) -> Mapping[str, ReasonPriority]:
    """Classify a reason-code catalog into a read-only code -> priority map.

    A missing or empty catalog yields an empty map, which the resolver reads
    as "every code is tier 1".
    """
    priorities: dict[str, ReasonPriority] = {}
    for reason in catalog or ():
        description = reason.description
        priorities[reason.code] = ReasonPriority(
            code=reason.code,
            tier=classify_description(description),
            description=description or "Unknown",
        )
    return MappingProxyType(priorities)


def _unique(texts: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    rows: list[str] = []
    for text in texts:
        value = (text or "").strip()
        if not value or value in seen:
            continue
        seen.add(value)
        rows.append(value)
    return rows


def filter_deviation_reasons(
    deviations: Iterable[Deviation],
    priorities: Mapping[str, ReasonPriority],
) -> list[str]:
    seen: set[str] = set()
    ranked: list[tuple[str, int]] = []
    for deviation in deviations:
        description = (deviation.description or "").strip()
        if not description or description in seen:
            continue
        seen.add(description)
        priority = priorities.get(deviation.code) if deviation.code else None
        ranked.append((description, priority.tier if priority else DEFAULT_TIER))

    if not ranked:
        return []

    top_tier = max(tier for _, tier in ranked)
    if top_tier == DEFAULT_TIER:
        # Nothing is classified, so keep every reason.
        return [description for description, _ in ranked]
    return [description for description, tier in ranked if tier == top_tier]


def resolve_deviation_reason(
    deviations: Iterable[Deviation],
    priorities: Mapping[str, ReasonPriority],
) -> str:
    reasons = filter_deviation_reasons(deviations, priorities)
    if not reasons:
        return UNKNOWN_REASON
    return "; ".join(reasons)


def append_other_information(reason: str, other_information: Iterable[str]) -> str:
    extra = _unique(other_information)
    if not extra:
        return reason
    if reason == UNKNOWN_REASON:
        return "; ".join(extra)
    return "; ".join([reason, *extra])


def resolve_delay_reason(
    deviations: Iterable[Deviation],
    other_information: Iterable[str],
    priorities: Mapping[str, ReasonPriority],
) -> str:
    return append_other_information(resolve_deviation_reason(deviations, priorities), other_information)


class ReasonPriorityCache:
    """Holds the current reason-priority snapshot and when it was built.

    ``replace`` builds a complete new map before swapping the reference, so a
    computation that already took ``snapshot()`` keeps reading the old one.
    """

    def __init__(self) -> None:
        self._priorities: Mapping[str, ReasonPriority] = MappingProxyType({})
        self.built_at: datetime | None = None

    def snapshot(self) -> Mapping[str, ReasonPriority]:
        return self._priorities

    def replace(self, catalog: Iterable[ReasonCode] | None, built_at: datetime | None = None) -> int:
        priorities = build_reason_priorities(catalog)
        self._priorities = priorities
        self.built_at = built_at or datetime.now().astimezone()
        return len(priorities)

    def is_empty(self) -> bool:
        return not self._priorities
