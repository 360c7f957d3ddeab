"""Bulk-mode selection state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence, TypeVar

from .models import Record

R = TypeVar("R", bound=Record)


@dataclass
class SelectionState:
    """Selected record ids for bulk operations.

    Ids may go stale when the view or the underlying records change;
    ``selected_records`` drops ids that no longer resolve.
    """

    selection_mode: bool = False
    selected_ids: set[str] = field(default_factory=set)

    def enable_selection_mode(self) -> None:
        self.selection_mode = True

    def disable_selection_mode(self) -> None:
        """Leave bulk mode; the selection is always dropped with it."""
        self.selection_mode = False
        self.selected_ids = set()

    def toggle_selection_mode(self) -> None:
        if self.selection_mode:
            self.disable_selection_mode()
        else:
            self.enable_selection_mode()

    def toggle(self, record_id: str) -> None:
        if record_id in self.selected_ids:
            self.selected_ids.discard(record_id)
        else:
            self.selected_ids.add(record_id)

    def select_all(self, view: Iterable[Record]) -> None:
        """Replace the selection with exactly the ids in *view*."""
        self.selected_ids = {r.id for r in view}

    def clear(self) -> None:
        self.selected_ids = set()

    def is_selected(self, record_id: str) -> bool:
        return record_id in self.selected_ids

    @property
    def selected_count(self) -> int:
        return len(self.selected_ids)

    def are_all_selected(self, view: Sequence[Record]) -> bool:
        """True when *view* is non-empty and every record in it is selected."""
        return bool(view) and all(r.id in self.selected_ids for r in view)

    def selected_records(self, records: Iterable[R]) -> list[R]:
        """Resolve the selection against *records*, in their order."""
        return [r for r in records if r.id in self.selected_ids]
