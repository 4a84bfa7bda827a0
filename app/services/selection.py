# app/services/selection.py
#
# Row selection for the transactions table.
# Plain click toggles one row, ctrl/cmd-click toggles too but keeps the rest,
# shift-click selects everything between the last clicked row and this one.

from typing import List, Optional, Sequence, Set


class SelectionState:
    """Selected transaction ids plus the anchor row for shift-range selection."""

    def __init__(self) -> None:
        self.selected: Set[str] = set()
        self.last_index: Optional[int] = None

    def click(self, index: int, ids: Sequence[str], shift: bool = False, ctrl: bool = False) -> Set[str]:
        """
        Handle a click on row `index` of the currently displayed `ids`.
        Returns the new selection.
        """
        if not 0 <= index < len(ids):
            raise IndexError(f"Row {index} out of range")

        if shift and self.last_index is not None and self.last_index < len(ids):
            start, end = sorted((self.last_index, index))
            self.selected.update(ids[start:end + 1])
        else:
            # ctrl and plain clicks both toggle the single row
            row_id = ids[index]
            if row_id in self.selected:
                self.selected.discard(row_id)
            else:
                self.selected.add(row_id)

        self.last_index = index
        return set(self.selected)

    def toggle_all(self, ids: Sequence[str]) -> Set[str]:
        if ids and all(i in self.selected for i in ids):
            self.selected.difference_update(ids)
        else:
            self.selected.update(ids)
        return set(self.selected)

    def clear(self) -> None:
        self.selected.clear()
        self.last_index = None

    def selected_in_order(self, ids: Sequence[str]) -> List[str]:
        return [i for i in ids if i in self.selected]
