"""Facility text parsing, requirement extraction and requirement matching."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ..models import AggregatedFacilityProfile, Facility, Location, ParsedFacility

SCREEN_SIZE_RE = re.compile(r"(\d+)[\"\s]*(inch|\"|')?", re.IGNORECASE)
REQUIREMENT_NUMBER_RE = re.compile(r"(\d+)")

CAPACITY_PATTERNS = [
    re.compile(r"(\d+)\s*people", re.IGNORECASE),
    re.compile(r"(\d+)\s*person", re.IGNORECASE),
    re.compile(r"for\s+(\d+)", re.IGNORECASE),
    re.compile(r"capacity\s+(?:of\s+)?(\d+)", re.IGNORECASE),
    re.compile(r"space\s+for\s+(\d+)", re.IGNORECASE),
    re.compile(r"seats?\s+(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s*seats?", re.IGNORECASE),
]

AIR_RE = re.compile(r"\bair\b|\bac\b|climate|conditioning")


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _keywords(*keywords: str) -> Callable[[str], bool]:
    return lambda text: _contains_any(text, keywords)


def _mentions_air(text: str) -> bool:
    # Whole words only, so "chair" and "space" do not count
    return bool(AIR_RE.search(text))


# Query predicate -> canonical requirement term, in output order
REQUIREMENT_TERMS: list[tuple[Callable[[str], bool], str]] = [
    (_keywords("screen", "monitor", "display"), "screen"),
    (_keywords("adjustable", "standing", "sit-stand", "height"), "adjustable"),
    (_keywords("video", "conference", "zoom", "teams"), "video"),
    (_keywords("whiteboard", "board"), "board"),
    (_keywords("accessible", "wheelchair", "disabled"), "accessible"),
    (_mentions_air, "air"),
    (_keywords("wifi", "wi-fi", "wireless", "internet"), "wifi"),
    (_keywords("phone", "telephone"), "phone"),
    (_keywords("power", "plug", "socket", "charging", "outlet"), "power"),
    (_keywords("desk",), "desk"),
    (_keywords("mechanical",), "mechanical"),
    (_keywords("electric",), "electric"),
    (_keywords("tv", "television"), "tv"),
]


# --- Classification rules ---------------------------------------------------

def _screen(text: str, facility: Facility) -> ParsedFacility:
    match = SCREEN_SIZE_RE.search(text)
    size = int(match.group(1)) if match else 0
    return ParsedFacility(
        type="screen",
        category="technology",
        attributes={"size": size, "has_screen": True},
        original_text=text,
    )


def _desk(text: str, facility: Facility) -> ParsedFacility:
    lower = text.lower()
    if _contains_any(lower, ("electric", "motorized")):
        mechanism = "electric"
    elif _contains_any(lower, ("mechanical", "manual")):
        mechanism = "mechanical"
    else:
        mechanism = "fixed"
    return ParsedFacility(
        type="desk",
        category="furniture",
        attributes={
            "adjustable": _contains_any(lower, ("adjustable", "standing", "sit-stand")),
            "mechanism": mechanism,
        },
        original_text=text,
    )


def _flag(type_: str, category: str, attribute: str) -> Callable[[str, Facility], ParsedFacility]:
    def build(text: str, facility: Facility) -> ParsedFacility:
        return ParsedFacility(
            type=type_, category=category, attributes={attribute: True}, original_text=text
        )
    return build


# First matching rule wins; order is significant
FACILITY_RULES: list[tuple[tuple[str, ...], Callable[[str, Facility], ParsedFacility]]] = [
    (("screen", "monitor", "display"), _screen),
    (("desk",), _desk),
    (("video", "conference", "tv"), _flag("video_conference", "technology", "has_video_conference")),
    (("whiteboard", "board"), _flag("whiteboard", "furniture", "has_whiteboard")),
    (("phone", "speaker"), _flag("phone", "technology", "has_phone")),
    (("accessible", "wheelchair", "disabled"), _flag("accessibility", "accessibility", "is_accessible")),
    (("air con", "air-con", "ac", "climate"), _flag("climate_control", "comfort", "has_air_conditioning")),
    (("wifi", "wi-fi", "wireless", "network"), _flag("network", "connectivity", "has_wifi")),
    (("power", "socket", "plug", "charging"), _flag("power", "connectivity", "has_power_outlets")),
]


# --- Match results ----------------------------------------------------------

@dataclass
class FacilityMatch:
    """Result of matching requirements against an aggregated profile."""

    matches: bool
    score: float
    details: list[str] = field(default_factory=list)


@dataclass
class SimpleFacilityMatch:
    """Result of plain substring matching against facility labels."""

    matches: bool
    score: float
    matched_facilities: list[str] = field(default_factory=list)


@dataclass
class _Check:
    triggered: Callable[[str], bool]
    evaluate: Callable[[str, AggregatedFacilityProfile], tuple[bool, str]]


def _check_adjustable(req: str, profile: AggregatedFacilityProfile) -> tuple[bool, str]:
    if not profile.adjustable:
        return False, "✗ No adjustable desk"
    for wanted in ("mechanical", "electric"):
        if wanted in req and profile.mechanism != wanted:
            return False, f"✗ Adjustable desk is {profile.mechanism or 'unknown'}, not {wanted}"
    if profile.mechanism:
        return True, f"✓ Adjustable desk ({profile.mechanism})"
    return True, "✓ Adjustable desk"


def _check_screen(req: str, profile: AggregatedFacilityProfile) -> tuple[bool, str]:
    if not profile.has_screen:
        return False, "✗ No screen"
    size_match = REQUIREMENT_NUMBER_RE.search(req)
    if size_match:
        wanted = int(size_match.group(1))
        actual = profile.screen_size or 0
        if actual >= wanted:
            return True, f'✓ Screen {actual}" (needs {wanted}")'
        return False, f'✗ Screen too small ({actual}" < {wanted}")'
    if profile.screen_size:
        return True, f'✓ Screen ({profile.screen_size}")'
    return True, "✓ Screen"


def _check_tv(req: str, profile: AggregatedFacilityProfile) -> tuple[bool, str]:
    if profile.has_screen or profile.has_video_conference:
        return True, "✓ TV"
    return False, "✗ No TV"


def _check_flag(attribute: str, label: str) -> Callable[[str, AggregatedFacilityProfile], tuple[bool, str]]:
    def evaluate(req: str, profile: AggregatedFacilityProfile) -> tuple[bool, str]:
        if getattr(profile, attribute):
            return True, f"✓ {label}"
        return False, f"✗ No {label.lower()}"
    return evaluate


# Evaluated in order; one requirement may trigger several checks
REQUIREMENT_CHECKS: list[_Check] = [
    _Check(_keywords("adjustable", "standing", "sit-stand", "height", "mechanical", "electric"), _check_adjustable),
    _Check(_keywords("screen", "monitor", "display"), _check_screen),
    _Check(_keywords("video", "conference", "zoom", "teams"),
           _check_flag("has_video_conference", "Video conferencing")),
    _Check(_keywords("tv", "television"), _check_tv),
    _Check(_keywords("whiteboard", "board"), _check_flag("has_whiteboard", "Whiteboard")),
    _Check(_keywords("accessible", "wheelchair", "disabled", "accessibility"),
           _check_flag("is_accessible", "Accessible")),
    _Check(_mentions_air, _check_flag("has_air_conditioning", "Air conditioning")),
    _Check(_keywords("wifi", "wi-fi", "wireless", "network", "internet"), _check_flag("has_wifi", "WiFi")),
    _Check(_keywords("phone", "telephone", "speaker"), _check_flag("has_phone", "Phone")),
    _Check(_keywords("power", "plug", "socket", "charging", "outlet"),
           _check_flag("has_power_outlets", "Power outlets")),
]


class FacilityTextParser:
    """Parses facility labels and free-text queries, and scores locations."""

    def parse_facility(self, facility: Facility) -> ParsedFacility:
        text = facility.display_text
        lower = text.lower()
        for keywords, build in FACILITY_RULES:
            if _contains_any(lower, keywords):
                return build(text, facility)
        return ParsedFacility(
            type="other",
            category=facility.category or "other",
            attributes={"text": text},
            original_text=text,
        )

    def parse_facilities(
        self, facilities: list[Facility]
    ) -> tuple[list[ParsedFacility], AggregatedFacilityProfile]:
        parsed = [self.parse_facility(f) for f in facilities]
        profile = AggregatedFacilityProfile()
        for item in parsed:
            _fold_into(profile, item.attributes)
        return parsed, profile

    def match_aggregated(
        self, facilities: list[Facility], requirements: list[str]
    ) -> FacilityMatch:
        """Check each requirement against the folded facility profile.

        An empty requirement list scores 0 (but still "matches"); see
        match_simple for the variant that scores it 1.
        """
        _, profile = self.parse_facilities(facilities)
        texts = [f.display_text.lower() for f in facilities]
        details: list[str] = []
        matched = 0

        for requirement in requirements:
            req = requirement.lower().strip()
            outcomes = []
            for check in REQUIREMENT_CHECKS:
                if not check.triggered(req):
                    continue
                ok, detail = check.evaluate(req, profile)
                outcomes.append(ok)
                details.append(detail)

            if not outcomes:
                ok = any(req in text for text in texts)
                details.append(f"✓ Has {requirement}" if ok else f"✗ No facility matching '{requirement}'")
                outcomes.append(ok)

            if all(outcomes):
                matched += 1

        score = matched / len(requirements) if requirements else 0
        return FacilityMatch(
            matches=matched == len(requirements),
            score=score,
            details=details,
        )

    def match_simple(
        self, facilities: list[Facility], requirements: list[str]
    ) -> SimpleFacilityMatch:
        """Substring-match requirements against facility labels."""
        if not requirements:
            return SimpleFacilityMatch(matches=True, score=1, matched_facilities=[])

        matched_facilities: list[str] = []
        matched_count = 0
        for requirement in requirements:
            req = requirement.lower().strip()
            hit = next((f for f in facilities if req in f.display_text.lower()), None)
            if hit is None:
                continue
            matched_count += 1
            if hit.display_text not in matched_facilities:
                matched_facilities.append(hit.display_text)

        return SimpleFacilityMatch(
            matches=matched_count == len(requirements),
            score=matched_count / len(requirements),
            matched_facilities=matched_facilities,
        )

    def extract_requirements(self, query: str) -> list[str]:
        lower = query.lower()
        requirements: list[str] = []
        for mentions, term in REQUIREMENT_TERMS:
            if mentions(lower) and term not in requirements:
                requirements.append(term)
        return requirements

    def extract_capacity(self, query: str) -> int | None:
        for pattern in CAPACITY_PATTERNS:
            match = pattern.search(query)
            if match:
                return int(match.group(1))
        return None

    def extract_unique_facilities(self, locations: Iterable[Location]) -> list[str]:
        unique = {
            f.display_text
            for loc in locations
            for f in loc.facilities or []
            if f.display_text
        }
        return sorted(unique)


def _fold_into(profile: AggregatedFacilityProfile, attributes: dict[str, Any]) -> None:
    for key, value in attributes.items():
        if key == "size":
            if isinstance(value, int) and value > 0:
                profile.screen_size = max(profile.screen_size or 0, value)
        elif key == "mechanism":
            if value and not profile.mechanism:
                profile.mechanism = value
        elif value is True and hasattr(profile, key):
            setattr(profile, key, True)
