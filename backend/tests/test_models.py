# Overview: Pytest coverage for the movement kind enum and model serialization.

import pytest

from pharmastock.exceptions import ValidationError
from pharmastock.models import ADJUSTMENT_TYPES, MovementType
from pharmastock.permissions import DEFAULT_ROLE_PERMISSIONS, PERMISSION_DEFINITIONS, role_has_permission


def test_movement_kinds_are_closed():
    assert {k.value for k in MovementType} == {"sale", "purchase", "adjustment", "expired", "damaged"}


@pytest.mark.parametrize("kind", list(MovementType))
def test_every_kind_has_a_sign(kind):
    """Only purchases add stock."""
    if kind is MovementType.PURCHASE:
        assert kind.signed(4) == 4
        assert kind not in ADJUSTMENT_TYPES
    elif kind is MovementType.SALE:
        assert kind.signed(4) == -4
        assert kind not in ADJUSTMENT_TYPES
    else:
        assert kind.signed(4) == -4
        assert kind in ADJUSTMENT_TYPES


def test_parse_is_case_insensitive():
    assert MovementType.parse(" Expired ") is MovementType.EXPIRED


def test_parse_rejects_free_text():
    with pytest.raises(ValidationError) as exc_info:
        MovementType.parse("return")
    assert exc_info.value.field == "type"


@pytest.mark.parametrize("role,permission,allowed", [
    ("cashier", "CREATE_SALE", True),
    ("cashier", "RECEIVE_INVENTORY", False),
    ("cashier", "ADJUST_INVENTORY", False),
    ("pharmacist", "ADJUST_INVENTORY", True),
    ("pharmacist", "DELETE_MEDICATIONS", False),
    ("admin", "DELETE_MEDICATIONS", True),
    ("super_admin", "DELETE_MEDICATIONS", True),
    (None, "VIEW_INVENTORY", False),
])
def test_role_permissions(role, permission, allowed):
    assert role_has_permission(role, permission) is allowed


def test_role_map_uses_defined_permissions():
    defined = {code for code, _ in PERMISSION_DEFINITIONS}
    for role, codes in DEFAULT_ROLE_PERMISSIONS.items():
        assert set(codes) <= defined, role
