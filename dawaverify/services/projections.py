# =============================================
# File: dawaverify/services/projections.py
# Purpose: Read-only aggregations over a history snapshot for the two dashboards
# =============================================
from __future__ import annotations
from typing import Any, Dict, List, Sequence

from dawaverify.services.records import VerificationRecord

Records = Sequence[VerificationRecord]

def count_all(records: Records) -> int:
    return len(records)

def count_flagged(records: Records) -> int:
    return sum(1 for r in records if r.is_flagged)

def distinct_locales(records: Records) -> List[str]:
    """Locales in first-seen order (newest record first)."""
    return list(dict.fromkeys(r.locale for r in records))

def group_by_locale(records: Records) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for r in records:
        counts[r.locale] = counts.get(r.locale, 0) + 1
    return counts

def split_by_flag(records: Records) -> Dict[str, int]:
    """
    Authentic vs. flagged counts for the citizen pie chart.
    The authentic bucket shows at least 1 so an empty chart still renders;
    this floor is display-only and never feeds back into stored data.
    """
    flagged = count_flagged(records)
    authentic = len(records) - flagged
    return {"authentic": authentic or 1, "flagged": flagged}

def citizen_view(records: Records, recent: int = 5) -> Dict[str, Any]:
    return {
        "verified": count_all(records),
        "split": split_by_flag(records),
        "recent": [r.model_dump(by_alias=True) for r in list(records)[:recent]],
    }

def inspector_view(records: Records) -> Dict[str, Any]:
    by_locale = group_by_locale(records)
    return {
        "totalScans": count_all(records),
        "fakeAlerts": count_flagged(records),
        "activeCities": len(distinct_locales(records)),
        "byLocale": [{"name": k, "count": v} for k, v in by_locale.items()],
        "reports": [r.model_dump(by_alias=True) for r in records],
    }
