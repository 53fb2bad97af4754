# =============================================
# File: dawaverify/services/roles.py
# Purpose: Role -> available views (citizen cabinet vs. inspector dashboard)
# =============================================
from __future__ import annotations
from enum import Enum
from typing import Dict, FrozenSet, Tuple

class Role(str, Enum):
    CITIZEN = "citizen"
    INSPECTOR = "inspector"

_CAPABILITIES: Dict[Role, Tuple[str, ...]] = {
    Role.CITIZEN: ("overview", "scan", "cabinet"),
    Role.INSPECTOR: ("markets", "analytics", "policy"),
}

def capabilities(role: Role) -> FrozenSet[str]:
    return frozenset(_CAPABILITIES[role])

def landing_view(role: Role) -> str:
    return _CAPABILITIES[role][0]

def toggle(role: Role) -> Tuple[Role, str]:
    """Switch role; returns the new role and the view it lands on."""
    other = Role.INSPECTOR if role is Role.CITIZEN else Role.CITIZEN
    return other, landing_view(other)
