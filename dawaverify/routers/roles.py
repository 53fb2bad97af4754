# dawaverify/routers/roles.py
from __future__ import annotations
from typing import Any, Dict

from fastapi import APIRouter

from dawaverify.services.roles import Role, capabilities, landing_view, toggle

router = APIRouter()

@router.get("/roles/{role}")
def get_role(role: Role) -> Dict[str, Any]:
    """Views available to a role; both roles read the same history."""
    other, other_landing = toggle(role)
    return {
        "role": role.value,
        "views": sorted(capabilities(role)),
        "landing": landing_view(role),
        "toggle": {"role": other.value, "landing": other_landing},
    }
