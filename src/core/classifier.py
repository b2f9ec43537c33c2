"""Broadcast classification logic (core domain).

Decides, for one tenant, whether each candidate broadcaster should have an
announcement in the primary channel, keep only its override announcements,
or be suppressed.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from core.models import LiveBroadcastInfo, Snapshot, TenantWatchConfig


class Classification(enum.Enum):
    REPORT_PRIMARY = "report_primary"
    REPORT_OVERRIDE_ONLY = "report_override_only"
    SUPPRESSED = "suppressed"


class SuppressReason(enum.Enum):
    BLOCKED = "blocked"
    OFFLINE = "offline"
    NOT_FOLLOWED = "not_followed"


@dataclass(frozen=True)
class Verdict:
    """Classification for one broadcaster, with the live broadcast if any."""

    broadcaster_id: str
    kind: Classification
    reason: Optional[SuppressReason] = None
    broadcast: Optional[LiveBroadcastInfo] = None

    @property
    def reportable(self) -> bool:
        return self.kind is not Classification.SUPPRESSED


def compile_keywords(keywords: Iterable[str]) -> Optional[re.Pattern]:
    """Compile required keywords into one case-insensitive whole-word pattern.

    Boundaries are "not a word character" rather than ``\\b`` so keywords that
    start or end with punctuation (``Any%``) still match. Returns None when
    there are no keywords, meaning every title qualifies.
    """

    cleaned = [keyword for keyword in keywords if keyword]
    if not cleaned:
        return None
    alternatives = "|".join(re.escape(keyword) for keyword in cleaned)
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)


def title_has_keyword(title: str, pattern: Optional[re.Pattern]) -> bool:
    return pattern is None or pattern.search(title) is not None


def candidate_broadcasters(config: TenantWatchConfig, snapshot: Snapshot) -> set[str]:
    """Return every broadcaster id this tenant has to decide about."""

    candidates = set(config.followed_broadcaster_ids)
    candidates.update(config.override_records.keys())
    candidates.update(config.primary_records.keys())
    candidates.update(config.temporarily_blocked_ids)
    for category_id in config.followed_category_ids:
        for broadcast in snapshot.by_category.get(category_id, ()):
            candidates.add(broadcast.broadcaster_id)
    return candidates


def classify(config: TenantWatchConfig, snapshot: Snapshot) -> dict[str, Verdict]:
    """Classify every candidate broadcaster for one tenant.

    Decision order (first match wins):
    - live and blocked (permanently or for this stream) -> suppressed
    - not live -> suppressed
    - followed individually -> primary, whatever the category or title
    - followed category with a keyword in the title (if any are set) -> primary
    - already has an override announcement -> override only
    - otherwise -> suppressed
    """

    blocked = config.blocked_ids | config.temporarily_blocked_ids
    followed = config.followed_broadcaster_ids
    followed_categories = config.followed_category_ids
    keyword_pattern = compile_keywords(config.required_keywords)

    verdicts: dict[str, Verdict] = {}
    for broadcaster_id in candidate_broadcasters(config, snapshot):
        broadcast = snapshot.get(broadcaster_id)
        if broadcast is not None and broadcaster_id in blocked:
            verdict = Verdict(broadcaster_id, Classification.SUPPRESSED, SuppressReason.BLOCKED, broadcast)
        elif broadcast is None:
            verdict = Verdict(broadcaster_id, Classification.SUPPRESSED, SuppressReason.OFFLINE)
        elif broadcaster_id in followed:
            verdict = Verdict(broadcaster_id, Classification.REPORT_PRIMARY, broadcast=broadcast)
        elif broadcast.category_id in followed_categories and title_has_keyword(broadcast.title, keyword_pattern):
            verdict = Verdict(broadcaster_id, Classification.REPORT_PRIMARY, broadcast=broadcast)
        elif config.override_records.get(broadcaster_id):
            verdict = Verdict(broadcaster_id, Classification.REPORT_OVERRIDE_ONLY, broadcast=broadcast)
        else:
            verdict = Verdict(broadcaster_id, Classification.SUPPRESSED, SuppressReason.NOT_FOLLOWED, broadcast)
        verdicts[broadcaster_id] = verdict
    return verdicts
