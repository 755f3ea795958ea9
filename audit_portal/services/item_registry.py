"""
Reviewable item registry.

Each ItemType variant carries its own handler: a display label, an id
validation hook and an optional fetch hook.  The reviewable items
themselves live outside the review core; a host application plugs in a
fetcher per type with ``register_item_fetcher`` so submissions for items
that do not exist are refused.

Usage:
    from audit_portal.services.item_registry import ItemType, get_handler

    item_type = ItemType.parse("procedure")
    handler = get_handler(item_type)
    handler.validate_id("proc-1")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from audit_portal.core.exceptions import NotFoundError, ValidationError
from audit_portal.models.review import ITEM_TYPES

MAX_ITEM_ID_LENGTH = 64


class ItemType(str, Enum):
    PROCEDURE = "procedure"
    PLANNING_PROCEDURE = "planning-procedure"
    DOCUMENT_REQUEST = "document-request"
    CHECKLIST_ITEM = "checklist-item"
    PBC = "pbc"
    KYC = "kyc"
    ISQM_DOCUMENT = "isqm-document"
    WORKING_PAPER = "working-paper"

    @classmethod
    def parse(cls, value: str | None) -> ItemType:
        """Return the member for ``value`` or raise ValidationError."""
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                "Invalid item type",
                details={"itemType": value, "validTypes": list(ITEM_TYPES)},
            ) from None


@dataclass
class ItemTypeHandler:
    """Per-type hooks for a reviewable item."""

    item_type: ItemType
    label: str
    fetcher: Callable[[str], object | None] | None = field(default=None, repr=False)

    def validate_id(self, item_id: str | None) -> str:
        """Normalise and validate an item id; raise ValidationError if unusable."""
        value = (str(item_id) if item_id is not None else "").strip()
        if not value:
            raise ValidationError("itemId is required", details={"itemId": item_id})
        if len(value) > MAX_ITEM_ID_LENGTH:
            raise ValidationError(
                f"itemId must be at most {MAX_ITEM_ID_LENGTH} characters",
                details={"itemId": value[:MAX_ITEM_ID_LENGTH]},
            )
        return value

    def fetch(self, item_id: str):
        """Return the underlying item, or None when no fetcher is registered."""
        if self.fetcher is None:
            return None
        return self.fetcher(item_id)

    def ensure_exists(self, item_id: str) -> None:
        """Raise NotFoundError when a registered fetcher cannot find the item."""
        if self.fetcher is None:
            return
        if self.fetcher(item_id) is None:
            raise NotFoundError(resource=self.label, resource_id=item_id)


_HANDLERS: dict[ItemType, ItemTypeHandler] = {
    ItemType.PROCEDURE: ItemTypeHandler(ItemType.PROCEDURE, "Procedure"),
    ItemType.PLANNING_PROCEDURE: ItemTypeHandler(ItemType.PLANNING_PROCEDURE, "Planning Procedure"),
    ItemType.DOCUMENT_REQUEST: ItemTypeHandler(ItemType.DOCUMENT_REQUEST, "Document Request"),
    ItemType.CHECKLIST_ITEM: ItemTypeHandler(ItemType.CHECKLIST_ITEM, "Checklist Item"),
    ItemType.PBC: ItemTypeHandler(ItemType.PBC, "PBC"),
    ItemType.KYC: ItemTypeHandler(ItemType.KYC, "KYC"),
    ItemType.ISQM_DOCUMENT: ItemTypeHandler(ItemType.ISQM_DOCUMENT, "ISQM Supporting Document"),
    ItemType.WORKING_PAPER: ItemTypeHandler(ItemType.WORKING_PAPER, "Working Paper"),
}


def get_handler(item_type: ItemType | str) -> ItemTypeHandler:
    if not isinstance(item_type, ItemType):
        item_type = ItemType.parse(item_type)
    return _HANDLERS[item_type]


def register_item_fetcher(item_type: ItemType | str, fetcher: Callable[[str], object | None] | None) -> None:
    """Install (or clear, with None) the fetch hook for one item type."""
    get_handler(item_type).fetcher = fetcher


def clear_item_fetchers() -> None:
    for handler in _HANDLERS.values():
        handler.fetcher = None
