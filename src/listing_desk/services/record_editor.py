"""
Record editor (the add/edit listing dialog).

Keeps a mutable draft of one listing, decides which widget edits each field,
and submits the draft as an insert or a keyed update.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..api.client import ListingStoreClient, ListingStoreError
from ..models.listing import (
    PROPERTY_ID,
    FieldDescriptor,
    FieldKind,
    next_property_id,
    numeric_id,
    validate_record,
)


LOGGER = logging.getLogger(__name__)


class Widget(Enum):
    READONLY = "readonly"
    SELECT = "select"
    STEPPER = "stepper"
    TEXTAREA = "textarea"
    TEXT = "text"


_WIDGETS = {
    FieldKind.ID: Widget.READONLY,
    FieldKind.ENUM: Widget.SELECT,
    FieldKind.NUMBER: Widget.STEPPER,
    FieldKind.LONG_TEXT: Widget.TEXTAREA,
}


class RecordEditor:
    def __init__(self, fields: List[FieldDescriptor]):
        self.fields = list(fields)
        self._by_name = {f.name: f for f in self.fields}
        self.draft: Dict[str, Any] = {}
        self.editing: Optional[Dict[str, Any]] = None
        self.is_open = False

    @property
    def is_create(self) -> bool:
        return self.editing is None

    def widget_for(self, name: str) -> Widget:
        """Exact field-name lookup; names outside the configured list get a text input."""
        descriptor = self._by_name.get(name)
        if descriptor is None:
            return Widget.TEXT
        return _WIDGETS.get(descriptor.kind, Widget.TEXT)

    def form_fields(self) -> List[Dict[str, Any]]:
        """Descriptor + widget + current draft value, in configured order."""
        rows = []
        for descriptor in self.fields:
            data = descriptor.to_dict()
            data["widget"] = self.widget_for(descriptor.name).value
            data["value"] = self.draft.get(descriptor.name, descriptor.default)
            rows.append(data)
        return rows

    # ----- lifecycle -----

    def open_create(self, existing: Optional[Iterable[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Start a new draft from the defaults; the next id is prefilled when the rows are given."""
        self.editing = None
        self.draft = {f.name: f.default for f in self.fields if f.default is not None}
        if existing is not None:
            self.draft[PROPERTY_ID] = next_property_id(existing)
        self.is_open = True
        return self.draft

    def open_edit(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self.editing = dict(record)
        self.draft = dict(record)
        self.is_open = True
        return self.draft

    def close(self) -> None:
        self.is_open = False
        self.editing = None
        self.draft = {}

    # ----- editing -----

    def set_value(self, name: str, value: Any) -> None:
        if name == PROPERTY_ID and not self.is_create:
            raise ValueError("Property ID cannot be changed")
        self.draft[name] = value

    def apply(self, values: Dict[str, Any]) -> None:
        """Copy submitted form values into the draft; the key of an edited row is left as it is."""
        for name, value in values.items():
            if name == PROPERTY_ID and not self.is_create:
                continue
            self.set_value(name, value)

    def step(self, name: str, delta: int = 1) -> Any:
        """Stepper +/- for area fields; never below zero."""
        current = numeric_id(self.draft.get(name))
        value = max(0, current + delta)
        self.draft[name] = int(value) if float(value).is_integer() else value
        return self.draft[name]

    def apply_paste(self, row_text: str) -> Dict[str, Any]:
        """
        Fill the draft from a spreadsheet row copied as tab-separated text.

        Cells map positionally onto the configured field order; Property ID
        and empty cells are skipped.
        """
        if not row_text or not row_text.strip():
            return {}
        values = row_text.rstrip("\r\n").split("\t")
        parsed: Dict[str, Any] = {}
        for descriptor, value in zip(self.fields, values):
            if descriptor.name == PROPERTY_ID or not value.strip():
                continue
            parsed[descriptor.name] = value.strip()
        self.draft.update(parsed)
        return parsed

    # ----- submit -----

    def submit(self, store: ListingStoreClient) -> Dict[str, Any]:
        """
        Validate the draft and send it as an insert or an update.

        Store errors propagate unchanged and leave the editor open so the
        caller can show the message and let the user retry.
        """
        # Unconfigured columns of the loaded row (e.g. created_at) are not editable
        loaded = self.editing or {}
        draft = {k: v for k, v in self.draft.items() if k in self._by_name or k not in loaded}
        record = validate_record(draft, self.fields, partial=not self.is_create)
        if self.is_create:
            saved = store.create(record)
        else:
            property_id = self.editing.get(PROPERTY_ID)
            record.pop(PROPERTY_ID, None)
            rows = store.update(property_id, record)
            if not rows:
                raise ListingStoreError(f"Listing {property_id} not found", status_code=404)
            saved = rows[0]
        LOGGER.info("%s listing %s", "created" if self.is_create else "updated", saved.get(PROPERTY_ID))
        self.close()
        return saved
