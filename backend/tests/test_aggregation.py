"""
Tests for the aggregation layer
"""
from datetime import datetime
import uuid

import pytest

from models import Case
from models_auth import Actor, UserRole
from services.aggregation import (
    AGE_BANDS,
    UNSPECIFIED,
    Dimension,
    aggregate,
    age_bucket,
    resolution_rate,
    summarize,
)
from services.scoping import visible_cases

ADMIN = Actor(id="admin", role=UserRole.admin, region="Dakar")
SUPER = Actor(id="super", role=UserRole.super_admin, region=None)


def case(status="pending", region="Dakar", age=None, violence=None, month=1, services=None):
    return Case(
        case_id=uuid.uuid4(),
        agent_id="agent",
        victim_region=region,
        status=status,
        victim_age=age,
        violence_type=violence,
        services_provided=services,
        submitted_at=datetime(2025, month, 15),
        created_at=datetime(2025, month, 15),
    )


@pytest.mark.parametrize("age,band", [
    (0, "0-14"), (14, "0-14"), (15, "15-24"), (24, "15-24"), (25, "25-34"),
    (44, "35-44"), (54, "45-54"), (55, "55+"), (99, "55+"),
    (None, None), ("abc", None), (-3, None), ("31", "25-34"),
])
def test_age_bucket(age, band):
    assert age_bucket(age) == band


def test_rejects_unscoped_input():
    with pytest.raises(TypeError):
        aggregate([case()], Dimension.violence_type)
    with pytest.raises(TypeError):
        resolution_rate([case()])


def test_resolution_rate_counts_completed_only():
    scoped = visible_cases(SUPER, [
        case("completed"), case("completed"), case("archived"), case("open"),
    ])
    assert resolution_rate(scoped) == 50.0


def test_empty_scope_has_zero_rate():
    assert resolution_rate(visible_cases(SUPER, [])) == 0.0


def test_aggregation_only_sees_scoped_records():
    cases = [case(region="Dakar", violence="Harcèlement"), case(region="Thiès", violence="Harcèlement")]
    items = aggregate(visible_cases(ADMIN, cases), Dimension.violence_type)
    assert [(i.label, i.count) for i in items] == [("Harcèlement", 1)]


def test_count_ordering_and_unspecified_bucket():
    scoped = visible_cases(SUPER, [
        case(violence="B"), case(violence="A"), case(violence="A"), case(violence=None), case(violence="B"),
    ])
    items = aggregate(scoped, "violence_type")
    assert [(i.label, i.count) for i in items] == [("A", 2), ("B", 2), (UNSPECIFIED, 1)]
    assert items[0].percentage == 40.0
    assert [i.label for i in aggregate(scoped, "violence_type", top=1)] == ["A"]


def test_age_breakdown_keeps_band_order():
    scoped = visible_cases(SUPER, [case(age=30), case(age=70), case(age=None)])
    items = aggregate(scoped, Dimension.age_bucket)
    assert [i.label for i in items] == [label for label, _, _ in AGE_BANDS]
    counts = {i.label: i.count for i in items}
    assert counts["25-34"] == 1
    assert counts["55+"] == 1
    assert sum(counts.values()) == 2


def test_month_trend_is_chronological_with_resolved():
    scoped = visible_cases(SUPER, [
        case("completed", month=3), case(month=1), case("open", month=3), case("completed", month=2),
    ])
    items = aggregate(scoped, Dimension.month)
    assert [i.label for i in items] == ["2025-01", "2025-02", "2025-03"]
    assert [(i.count, i.resolved) for i in items] == [(1, 0), (1, 1), (2, 1)]


def test_services_counted_once_per_case():
    scoped = visible_cases(SUPER, [
        case(services=["Soins médicaux", "Soins médicaux", "Assistance juridique"]),
        case(services=["Soins médicaux"]),
        case(services=None),
    ])
    items = aggregate(scoped, Dimension.services)
    assert [(i.label, i.count) for i in items] == [("Soins médicaux", 2), ("Assistance juridique", 1)]


def test_summary():
    scoped = visible_cases(SUPER, [case("pending"), case("completed"), case("archived"), case("follow-up")])
    summary = summarize(scoped)
    assert summary.total == 4
    assert summary.pending == 1
    assert summary.resolved == 1
    assert summary.by_status["follow-up"] == 1
    assert summary.resolution_rate == 25.0
