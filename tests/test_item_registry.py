"""
Tests: reviewable item type registry.
"""

import pytest

from audit_portal.core.exceptions import NotFoundError, ValidationError
from audit_portal.models.review import ITEM_TYPES
from audit_portal.services.item_registry import (
    ItemType,
    get_handler,
    register_item_fetcher,
)


def test_every_item_type_has_a_handler():
    assert {t.value for t in ItemType} == set(ITEM_TYPES)
    for tag in ITEM_TYPES:
        assert get_handler(tag).item_type.value == tag


def test_parse_rejects_unknown_tag_and_lists_valid_ones():
    with pytest.raises(ValidationError) as exc_info:
        ItemType.parse("spreadsheet")
    assert exc_info.value.details["itemType"] == "spreadsheet"
    assert "procedure" in exc_info.value.details["validTypes"]


class TestValidateId:
    def test_strips_and_returns_id(self):
        assert get_handler("kyc").validate_id("  kyc-7 ") == "kyc-7"

    @pytest.mark.parametrize("bad", [None, "", "   "])
    def test_empty_id_is_rejected(self, bad):
        with pytest.raises(ValidationError):
            get_handler("kyc").validate_id(bad)

    def test_overlong_id_is_rejected(self):
        with pytest.raises(ValidationError):
            get_handler("pbc").validate_id("x" * 65)
        assert get_handler("pbc").validate_id("x" * 64) == "x" * 64


class TestFetchers:
    def test_without_fetcher_every_id_is_accepted(self):
        handler = get_handler("procedure")
        assert handler.fetch("proc-1") is None
        handler.ensure_exists("proc-1")

    def test_registered_fetcher_gates_existence(self):
        known = {"proc-1": {"title": "Cash count"}}
        register_item_fetcher("procedure", known.get)
        handler = get_handler(ItemType.PROCEDURE)

        assert handler.fetch("proc-1") == {"title": "Cash count"}
        handler.ensure_exists("proc-1")
        with pytest.raises(NotFoundError) as exc_info:
            handler.ensure_exists("proc-404")
        assert exc_info.value.resource == "Procedure"
