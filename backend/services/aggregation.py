"""
Aggregation layer for reporting views

Counts, rates and top-N breakdowns computed over a ScopedCases value, i.e.
over what the Scoping Engine let the requesting actor see. Passing a raw
collection is a programming error and raises TypeError.
"""
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
import enum
import logging

from services.case_lifecycle import CaseStatus, RESOLVED_STATUSES
from services.scoping import ScopedCases

logger = logging.getLogger(__name__)

UNSPECIFIED = "unspecified"
TREND_MONTHS = 12

# (label, lower bound, upper bound inclusive); None means open-ended
AGE_BANDS: List[Tuple[str, int, Optional[int]]] = [
    ("0-14", 0, 14),
    ("15-24", 15, 24),
    ("25-34", 25, 34),
    ("35-44", 35, 44),
    ("45-54", 45, 54),
    ("55+", 55, None),
]


class Dimension(str, enum.Enum):
    violence_type = "violence_type"
    age_bucket = "age_bucket"
    region = "region"
    commune = "commune"
    relationship = "relationship"
    marital_status = "marital_status"
    disability = "disability"
    victim_gender = "victim_gender"
    perpetrator_gender = "perpetrator_gender"
    status = "status"
    agent = "agent"
    services = "services"
    month = "month"


@dataclass
class BreakdownItem:
    label: str
    count: int
    percentage: float
    resolved: Optional[int] = None


@dataclass
class CaseSummary:
    total: int
    by_status: Dict[str, int] = field(default_factory=dict)
    resolved: int = 0
    pending: int = 0
    resolution_rate: float = 0.0


# ============================================================================
# HELPERS
# ============================================================================

def _require_scoped(cases) -> ScopedCases:
    if not isinstance(cases, ScopedCases):
        raise TypeError("aggregation only accepts the Scoping Engine's output (ScopedCases)")
    return cases


def _percentage(count: int, total: int) -> float:
    return round(count / total * 100, 1) if total else 0.0


def _label(value) -> str:
    if value is None:
        return UNSPECIFIED
    text = str(value).strip()
    return text or UNSPECIFIED


def age_bucket(age) -> Optional[str]:
    """Band label for an age, None when the age is missing or not a number"""
    try:
        years = int(str(age).strip())
    except (TypeError, ValueError):
        return None
    if years < 0:
        return None
    for label, low, high in AGE_BANDS:
        if years >= low and (high is None or years <= high):
            return label
    return None


def submission_month(case) -> Optional[str]:
    moment = case.submitted_at or case.created_at
    if not isinstance(moment, datetime):
        return None
    return moment.strftime("%Y-%m")


def _is_resolved(case) -> bool:
    return CaseStatus.parse(case.status) in RESOLVED_STATUSES


_SINGLE_VALUE_KEYS: Dict[Dimension, Callable] = {
    Dimension.violence_type: lambda c: c.violence_type,
    Dimension.region: lambda c: c.victim_region,
    Dimension.commune: lambda c: c.victim_commune,
    Dimension.relationship: lambda c: c.relationship_to_victim,
    Dimension.marital_status: lambda c: c.victim_marital_status,
    Dimension.disability: lambda c: c.victim_disability,
    Dimension.victim_gender: lambda c: c.victim_gender,
    Dimension.perpetrator_gender: lambda c: c.perpetrator_gender,
    Dimension.status: lambda c: c.status,
    Dimension.agent: lambda c: c.agent_name or c.agent_id,
}


def _ranked(counts: Counter, total: int, top: Optional[int]) -> List[BreakdownItem]:
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    if top:
        ordered = ordered[:top]
    return [BreakdownItem(label, count, _percentage(count, total)) for label, count in ordered]


# ============================================================================
# BREAKDOWNS
# ============================================================================

def _age_breakdown(cases: ScopedCases) -> List[BreakdownItem]:
    counts = Counter()
    for case in cases:
        bucket = age_bucket(case.victim_age)
        if bucket is not None:
            counts[bucket] += 1
    total = len(cases)
    return [BreakdownItem(label, counts[label], _percentage(counts[label], total)) for label, _, _ in AGE_BANDS]


def _month_trend(cases: ScopedCases, top: Optional[int]) -> List[BreakdownItem]:
    totals: Dict[str, int] = defaultdict(int)
    resolved: Dict[str, int] = defaultdict(int)
    for case in cases:
        month = submission_month(case)
        if month is None:
            continue
        totals[month] += 1
        if _is_resolved(case):
            resolved[month] += 1
    months = sorted(totals)[-(top or TREND_MONTHS):]
    total = len(cases)
    return [
        BreakdownItem(month, totals[month], _percentage(totals[month], total), resolved=resolved[month])
        for month in months
    ]


def _services_breakdown(cases: ScopedCases, top: Optional[int]) -> List[BreakdownItem]:
    counts = Counter()
    for case in cases:
        for service in set(case.services_provided or []):
            counts[_label(service)] += 1
    return _ranked(counts, len(cases), top)


def aggregate(cases: ScopedCases, dimension, top: Optional[int] = None) -> List[BreakdownItem]:
    """
    Ordered breakdown of scoped cases along one dimension

    Age buckets come back in band order with every band present, months in
    chronological order (last `top` or 12), everything else by count
    descending then label. Percentages are shares of the scoped case count.
    """
    cases = _require_scoped(cases)
    dimension = Dimension(dimension)

    if dimension == Dimension.age_bucket:
        return _age_breakdown(cases)
    if dimension == Dimension.month:
        return _month_trend(cases, top)
    if dimension == Dimension.services:
        return _services_breakdown(cases, top)

    key = _SINGLE_VALUE_KEYS[dimension]
    counts = Counter(_label(key(case)) for case in cases)
    return _ranked(counts, len(cases), top)


def resolution_rate(cases: ScopedCases) -> float:
    """completed / total over the scoped set, as a percentage"""
    cases = _require_scoped(cases)
    return _percentage(sum(1 for c in cases if _is_resolved(c)), len(cases))


def summarize(cases: ScopedCases) -> CaseSummary:
    cases = _require_scoped(cases)
    by_status = {status.value: 0 for status in CaseStatus}
    for case in cases:
        status = CaseStatus.parse(case.status)
        if status is None:
            logger.warning(f"Case {case.case_id} carries unknown status {case.status!r}")
            continue
        by_status[status.value] += 1

    resolved = sum(by_status[s.value] for s in RESOLVED_STATUSES)
    return CaseSummary(
        total=len(cases),
        by_status=by_status,
        resolved=resolved,
        pending=by_status[CaseStatus.pending.value],
        resolution_rate=_percentage(resolved, len(cases)),
    )
