"""
Interval and scope value types for license grants.

Everything here is pure: frozen dataclasses plus free functions, so the
conflict detector can be tested without touching the database.

A license term is stored as calendar dates where `end` is inclusive
(end-of-day). Internally the term is the half-open range
`[start, end + 1 day)`, which is what `overlaps` compares.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, FrozenSet, Optional, Tuple

GLOBAL = 'GLOBAL'

MEDIA_CHANNELS = ('digital', 'print', 'broadcast', 'ooh')
PLACEMENTS = ('social', 'website', 'email', 'paid_ads', 'packaging')


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @property
    def end_exclusive(self) -> date:
        return self.end + timedelta(days=1)

    @property
    def duration_days(self) -> int:
        return (self.end - self.start).days

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end_exclusive

    def __str__(self):
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


@dataclass(frozen=True)
class MediaScope:
    digital: bool = False
    print: bool = False
    broadcast: bool = False
    ooh: bool = False

    def enabled(self) -> Tuple[str, ...]:
        return tuple(name for name in MEDIA_CHANNELS if getattr(self, name))


@dataclass(frozen=True)
class PlacementScope:
    social: bool = False
    website: bool = False
    email: bool = False
    paid_ads: bool = False
    packaging: bool = False

    def enabled(self) -> Tuple[str, ...]:
        return tuple(name for name in PLACEMENTS if getattr(self, name))


@dataclass(frozen=True)
class CutdownScope:
    allow_edits: bool = False
    max_duration: Optional[int] = None
    aspect_ratios: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AttributionScope:
    required: bool = False
    format: str = ''


@dataclass(frozen=True)
class LicenseScope:
    """Usage scope granted by a single license."""

    media: MediaScope = field(default_factory=MediaScope)
    placement: PlacementScope = field(default_factory=PlacementScope)
    territories: FrozenSet[str] = frozenset()
    exclusivity_category: Optional[str] = None
    competitors: FrozenSet[str] = frozenset()
    cutdowns: CutdownScope = field(default_factory=CutdownScope)
    attribution: AttributionScope = field(default_factory=AttributionScope)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'LicenseScope':
        """
        Build a scope from its stored JSON shape.

        Territory codes are upper-cased and competitor ids are stringified so
        that brand primary keys compare equal regardless of JSON type.
        """
        data = data or {}
        media = data.get('media') or {}
        placement = data.get('placement') or {}
        geographic = data.get('geographic') or {}
        exclusivity = data.get('exclusivity') or {}
        cutdowns = data.get('cutdowns') or {}
        attribution = data.get('attribution') or {}

        category = (exclusivity.get('category') or '').strip() or None

        return cls(
            media=MediaScope(**{name: bool(media.get(name, False)) for name in MEDIA_CHANNELS}),
            placement=PlacementScope(**{name: bool(placement.get(name, False)) for name in PLACEMENTS}),
            territories=frozenset(
                str(code).strip().upper() for code in geographic.get('territories') or []
            ),
            exclusivity_category=category,
            competitors=frozenset(str(c) for c in exclusivity.get('competitors') or []),
            cutdowns=CutdownScope(
                allow_edits=bool(cutdowns.get('allow_edits', False)),
                max_duration=cutdowns.get('max_duration'),
                aspect_ratios=tuple(cutdowns.get('aspect_ratios') or ()),
            ),
            attribution=AttributionScope(
                required=bool(attribution.get('required', False)),
                format=attribution.get('format') or '',
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'media': {name: getattr(self.media, name) for name in MEDIA_CHANNELS},
            'placement': {name: getattr(self.placement, name) for name in PLACEMENTS},
            'geographic': {'territories': sorted(self.territories)},
            'exclusivity': {
                'category': self.exclusivity_category,
                'competitors': sorted(self.competitors),
            },
            'cutdowns': {
                'allow_edits': self.cutdowns.allow_edits,
                'max_duration': self.cutdowns.max_duration,
                'aspect_ratios': list(self.cutdowns.aspect_ratios),
            },
            'attribution': {
                'required': self.attribution.required,
                'format': self.attribution.format,
            },
        }

    @property
    def is_global(self) -> bool:
        return GLOBAL in self.territories


def overlaps(a: DateRange, b: DateRange) -> bool:
    """Half-open overlap: a.start < b.end and b.start < a.end."""
    return a.start < b.end_exclusive and b.start < a.end_exclusive


def territories_intersect(a, b) -> FrozenSet[str]:
    """
    Territories shared by two territory sets.

    GLOBAL intersects every concrete territory and GLOBAL itself, so a global
    grant against a concrete set yields that concrete set, and two global
    grants yield {GLOBAL}.
    """
    a = frozenset(a)
    b = frozenset(b)
    a_global = GLOBAL in a
    b_global = GLOBAL in b

    if a_global and b_global:
        return frozenset({GLOBAL})
    if a_global:
        return b
    if b_global:
        return a
    return a & b


def _same_category(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.strip().casefold() == b.strip().casefold()


def competitor_blocked(candidate, existing) -> bool:
    """
    True if either party excludes the other's brand under a shared category.

    Both arguments only need `brand_id` and `scope` attributes, so license
    snapshots and candidate drafts can be passed interchangeably.
    """
    if not _same_category(candidate.scope.exclusivity_category, existing.scope.exclusivity_category):
        return False
    candidate_brand = str(candidate.brand_id)
    existing_brand = str(existing.brand_id)
    return (
        existing_brand in candidate.scope.competitors
        or candidate_brand in existing.scope.competitors
    )
