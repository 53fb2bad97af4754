# =============================================
# File: tests/test_projections.py
# =============================================
from fakes import AUTHENTIC_PAYLOAD, FLAGGED_PAYLOAD
from dawaverify.services import projections as pj
from dawaverify.services.records import AnalysisPayload


def _rec(payload, locale):
    return AnalysisPayload.model_validate(payload).to_record(locale)


def _three():
    return (
        _rec(FLAGGED_PAYLOAD, "Lahore"),
        _rec(AUTHENTIC_PAYLOAD, "Karachi"),
        _rec(FLAGGED_PAYLOAD, "Lahore"),
    )


def test_split_by_flag_floors_authentic_on_empty():
    assert pj.split_by_flag(()) == {"authentic": 1, "flagged": 0}


def test_split_by_flag_two_flagged_one_authentic():
    assert pj.split_by_flag(_three()) == {"authentic": 1, "flagged": 2}


def test_split_floor_only_applies_when_authentic_is_zero():
    recs = (_rec(FLAGGED_PAYLOAD, "Lahore"), _rec(FLAGGED_PAYLOAD, "Karachi"))
    assert pj.split_by_flag(recs) == {"authentic": 1, "flagged": 2}
    # the underlying counts are untouched by the floor
    assert pj.count_all(recs) - pj.count_flagged(recs) == 0


def test_counts_and_locales():
    recs = _three()
    assert pj.count_all(recs) == 3
    assert pj.count_flagged(recs) == 2
    assert pj.distinct_locales(recs) == ["Lahore", "Karachi"]
    assert pj.group_by_locale(recs) == {"Lahore": 2, "Karachi": 1}


def test_views_bundle_projections():
    recs = _three()
    citizen = pj.citizen_view(recs, recent=2)
    assert citizen["verified"] == 3
    assert len(citizen["recent"]) == 2
    assert "subjectName" in citizen["recent"][0]

    inspector = pj.inspector_view(recs)
    assert inspector["totalScans"] == 3
    assert inspector["fakeAlerts"] == 2
    assert inspector["activeCities"] == 2
    assert inspector["byLocale"] == [{"name": "Lahore", "count": 2}, {"name": "Karachi", "count": 1}]
