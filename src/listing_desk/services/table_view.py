"""
Listing table view state.

Holds the fetched rows plus everything the dashboard table controls:
free-text search, per-column filters, single-column sort, pagination and
row selection. One class covers both the paged table (page_size set) and
the infinite card list (page_size None).
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from ..models.listing import PROPERTY_ID, as_text, numeric_id


LOGGER = logging.getLogger(__name__)

ASC = "asc"
DESC = "desc"


class ViewState(Enum):
    LOADING = "loading"
    LOADED = "loaded"
    EMPTY = "empty"
    FILTERED_EMPTY = "filtered-empty"


def _matches(value: Any, needle: str) -> bool:
    return needle in as_text(value).lower()


def record_matches(record: Dict[str, Any], search: str = "", filters: Optional[Dict[str, str]] = None) -> bool:
    """Search hits any field; every non-empty column filter must hit its column.

    Text is matched as typed, spaces included; only the empty string means no search.
    """
    needle = (search or "").lower()
    if needle and not any(_matches(value, needle) for value in record.values()):
        return False
    for column, text in (filters or {}).items():
        term = (text or "").lower()
        if term and not _matches(record.get(column), term):
            return False
    return True


def sort_key(column: str):
    if column == PROPERTY_ID:
        return lambda record: numeric_id(record.get(column))
    return lambda record: as_text(record.get(column)).lower()


def sort_records(records: Iterable[Dict[str, Any]], column: Optional[str], direction: str = ASC) -> List[Dict[str, Any]]:
    """Stable sort; equal keys keep their original order in either direction."""
    rows = list(records)
    if not column:
        return rows
    return sorted(rows, key=sort_key(column), reverse=(direction == DESC))


class TableView:
    def __init__(self, page_size: Optional[int] = None, sort_column: Optional[str] = PROPERTY_ID, sort_direction: str = ASC):
        self.records: Optional[List[Dict[str, Any]]] = None
        self.search = ""
        self.filters: Dict[str, str] = {}
        self.sort_column = sort_column
        self.sort_direction = sort_direction
        self.page_size = page_size if page_size and page_size > 0 else None
        self.page = 1
        self.selected: Set[Any] = set()

    # ----- data -----

    def set_records(self, records: Iterable[Dict[str, Any]]) -> None:
        """Replace the rows after a fetch; drops selections that no longer exist."""
        self.records = list(records)
        ids = {r.get(PROPERTY_ID) for r in self.records}
        self.selected &= ids
        self._clamp_page()
        LOGGER.debug("table view loaded %d rows", len(self.records))

    @property
    def state(self) -> ViewState:
        if self.records is None:
            return ViewState.LOADING
        if not self.records:
            return ViewState.EMPTY
        if not self.filtered():
            return ViewState.FILTERED_EMPTY
        return ViewState.LOADED

    @property
    def columns(self) -> List[str]:
        """Column names in first-seen order across the rows."""
        seen: Dict[str, None] = {}
        for record in self.records or []:
            for key in record:
                seen.setdefault(key, None)
        return list(seen)

    # ----- search / filter / sort -----

    def set_search(self, text: str) -> None:
        self.search = text or ""
        self.page = 1

    def set_filter(self, column: str, text: str) -> None:
        if text:
            self.filters[column] = text
        else:
            self.filters.pop(column, None)
        self.page = 1

    def clear_filters(self) -> None:
        self.search = ""
        self.filters.clear()
        self.page = 1

    def set_sort(self, column: Optional[str], direction: str = ASC) -> None:
        if direction not in (ASC, DESC):
            raise ValueError(f"sort direction must be '{ASC}' or '{DESC}'")
        self.sort_column = column
        self.sort_direction = direction

    def toggle_sort(self, column: str) -> None:
        """Same column flips direction; a new column starts ascending."""
        if column == self.sort_column:
            self.sort_direction = DESC if self.sort_direction == ASC else ASC
        else:
            self.sort_column = column
            self.sort_direction = ASC

    def filtered(self) -> List[Dict[str, Any]]:
        rows = [r for r in self.records or [] if record_matches(r, self.search, self.filters)]
        return sort_records(rows, self.sort_column, self.sort_direction)

    # ----- pagination -----

    @property
    def page_count(self) -> int:
        if not self.page_size:
            return 1
        return max(1, math.ceil(len(self.filtered()) / self.page_size))

    def _clamp_page(self) -> None:
        self.page = min(max(1, self.page), self.page_count)

    def set_page(self, page: int) -> None:
        self.page = page
        self._clamp_page()

    def visible_rows(self) -> List[Dict[str, Any]]:
        rows = self.filtered()
        if not self.page_size:
            return rows
        self._clamp_page()
        start = (self.page - 1) * self.page_size
        return rows[start:start + self.page_size]

    # ----- selection -----

    def _row_id(self, property_id: Any) -> Any:
        # Ids arrive as text from query strings; "5" selects the row keyed 5
        wanted = as_text(property_id)
        for record in self.records or []:
            if as_text(record.get(PROPERTY_ID)) == wanted:
                return record.get(PROPERTY_ID)
        return property_id

    def select(self, property_id: Any, checked: bool = True) -> None:
        key = self._row_id(property_id)
        if checked:
            self.selected.add(key)
        else:
            self.selected.discard(key)

    def select_all(self, checked: bool = True) -> None:
        """Select (or clear) the rows that pass the current filters, not the whole table."""
        if checked:
            self.selected = {r.get(PROPERTY_ID) for r in self.filtered()}
        else:
            self.selected = set()

    @property
    def all_selected(self) -> bool:
        rows = self.filtered()
        return bool(rows) and all(r.get(PROPERTY_ID) in self.selected for r in rows)

    def selected_records(self) -> List[Dict[str, Any]]:
        return [r for r in self.records or [] if r.get(PROPERTY_ID) in self.selected]

    # ----- summary -----

    def counts(self) -> Dict[str, int]:
        return {"showing": len(self.filtered()), "total": len(self.records or [])}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "rows": self.visible_rows(),
            "columns": self.columns,
            "counts": self.counts(),
            "sort": {"column": self.sort_column, "direction": self.sort_direction},
            "page": self.page,
            "page_count": self.page_count,
            "page_size": self.page_size,
            "selected": sorted(self.selected, key=numeric_id),
        }
