"""A view that filters, joins and orders the rows of one or more tables.

Each underlying table is reached through a :class:`View`.  The where view
numbers its columns across all joined tables. Numbering starts with the
columns of the last view given and ends with those of the first.  Each
result row remembers one row position per underlying table.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from .expr import (
    ColumnRef,
    Evaluator,
    JoinTable,
    ResolvedColumn,
    find_column,
    order_tables,
    resolve_condition,
)
from .types import ColumnType, MsiError, ResultError


@dataclass(frozen=True)
class ColumnInfo:
    """Name, type word and owning table of a column."""

    name: str
    type: int
    temporary: bool = False
    table: str = ""


class View(ABC):
    """A source of rows with integer-valued columns numbered from 1."""

    @abstractmethod
    def fetch_int(self, row, col):
        """Return the raw integer stored at ``row`` and column ``col``."""

    @abstractmethod
    def fetch_stream(self, row, col):
        """Return the stream stored at ``row`` and column ``col``."""

    @abstractmethod
    def set_row(self, row, values, mask):
        """Store the values whose column bits are set in ``mask``."""

    @abstractmethod
    def delete_row(self, row):
        """Remove a row."""

    @abstractmethod
    def execute(self, params=None):
        """Load the rows so they can be read."""

    @abstractmethod
    def close(self):
        """Release what :meth:`execute` loaded."""

    @abstractmethod
    def row_count(self):
        """Return the number of rows; valid after :meth:`execute`."""

    @abstractmethod
    def column_count(self):
        """Return the number of columns."""

    @abstractmethod
    def column_info(self, n):
        """Return the :class:`ColumnInfo` of column ``n``."""


def _failed(message: str) -> MsiError:
    return MsiError(ResultError.FUNCTION_FAILED, message)


class WhereView(View):
    """Rows of a join of ``views`` that satisfy ``cond``.

    ``string_lookup`` maps a string id stored in a string column to its text.
    """

    def __init__(self, views: Iterable[View], cond, string_lookup: Callable[[int], str | None]):
        self._tables: list[JoinTable] = []
        self._col_count = 0
        for index, view in enumerate(views):
            table = JoinTable(view=view, col_count=view.column_count(), table_index=index)
            self._col_count += table.col_count
            self._tables.insert(0, table)
        self._string_lookup = string_lookup
        self._rows: list[tuple[int, ...]] | None = None
        self._order: list[ResolvedColumn] | None = None
        self._cond = resolve_condition(cond, self._tables) if cond is not None else None

    def _require_tables(self) -> None:
        if not self._tables:
            raise _failed("no tables in view")

    def _find_row(self, row: int) -> tuple[int, ...]:
        rows = self._rows or []
        if row < 0 or row >= len(rows):
            raise IndexError(f"row {row} out of range")
        return rows[row]

    def _find_table(self, col: int) -> tuple[JoinTable, int]:
        if col < 1 or col > self._col_count:
            raise _failed(f"column {col} out of range")
        for table in self._tables:
            if col <= table.col_count:
                return table, col
            col -= table.col_count
        raise _failed(f"column {col} out of range")

    def row_count(self):
        self._require_tables()
        if self._rows is None:
            raise _failed("view has not been executed")
        return len(self._rows)

    def column_count(self):
        self._require_tables()
        return self._col_count

    def fetch_int(self, row, col):
        self._require_tables()
        rows = self._find_row(row)
        table, local = self._find_table(col)
        return table.view.fetch_int(rows[table.table_index], local)

    def fetch_stream(self, row, col):
        self._require_tables()
        rows = self._find_row(row)
        table, local = self._find_table(col)
        return table.view.fetch_stream(rows[table.table_index], local)

    def set_row(self, row, values: Sequence[Any], mask):
        """Update the masked columns of a result row; key columns cannot change.

        ``values[i]`` holds the value of column ``i + 1``; missing values are null.
        """
        self._require_tables()
        rows = self._find_row(row)
        if mask >= 1 << self._col_count:
            raise MsiError(ResultError.INVALID_PARAMETER, f"mask {mask:#x} too wide")

        for n in range(1, self._col_count + 1):
            if mask & (1 << (n - 1)) and self.column_info(n).type & ColumnType.KEY:
                raise _failed(f"column {n} is part of the key")

        values = list(values)
        values.extend([None] * (self._col_count - len(values)))
        offset = 0
        for table in self._tables:
            width = table.col_count
            reduced_mask = (mask >> offset) & ((1 << width) - 1)
            if reduced_mask:
                reduced = values[offset:offset + width]
                table.view.set_row(rows[table.table_index], reduced, reduced_mask)
            offset += width

    def delete_row(self, row):
        self._require_tables()
        rows = self._find_row(row)
        if len(self._tables) > 1:
            raise MsiError(ResultError.CALL_NOT_IMPLEMENTED, "cannot delete from a join")
        self._tables[0].view.delete_row(rows[0])

    def execute(self, params=None):
        """Select the matching row combinations, ordered by the sort columns."""
        self._require_tables()
        self._rows = []

        for table in self._tables:
            table.view.execute(None)
            table.row_count = table.view.row_count()
            # each table must have at least one row
            if table.row_count == 0:
                return

        ordered = order_tables(self._cond, self._tables)
        evaluator = Evaluator(self._string_lookup, params)
        positions: list[int | None] = [None] * len(self._tables)
        found: list[tuple[int, ...]] = []
        self._scan(evaluator, ordered, 0, positions, found)
        found.sort(key=self._sort_key)
        self._rows = found

    def _scan(self, evaluator: Evaluator, ordered: list[JoinTable], depth: int,
              positions: list[int | None], found: list[tuple[int, ...]]) -> None:
        table = ordered[depth]
        last = depth + 1 == len(ordered)
        for row in range(table.row_count):
            positions[table.table_index] = row
            value, complete = evaluator.evaluate(self._cond, positions)
            if not value:
                continue
            if not last:
                self._scan(evaluator, ordered, depth + 1, positions, found)
            elif complete:
                found.append(tuple(positions))
        positions[table.table_index] = None

    def _sort_key(self, rows: tuple[int, ...]) -> tuple[int, ...]:
        keys = tuple(
            column.table.view.fetch_int(rows[column.table.table_index], column.column)
            for column in self._order or ()
        )
        return keys + rows

    def close(self):
        self._require_tables()
        for table in self._tables:
            table.view.close()

    def column_info(self, n):
        self._require_tables()
        table, local = self._find_table(n)
        return table.view.column_info(local)

    def find_matching_rows(self, col, val) -> Iterator[int]:
        """Return an iterator over the result rows whose column ``col`` holds ``val``."""
        self._require_tables()
        if col < 1 or col > self._col_count:
            raise MsiError(ResultError.INVALID_PARAMETER, f"column {col} out of range")
        return self._matching(col, val)

    def _matching(self, col: int, val: int) -> Iterator[int]:
        for row in range(len(self._rows or [])):
            try:
                value = self.fetch_int(row, col)
            except (MsiError, IndexError):
                continue
            if value == val:
                yield row

    def sort(self, columns: Iterable[ColumnRef]):
        """Order the results of later executions by ``columns``."""
        self._require_tables()
        columns = list(columns)
        if not columns:
            return
        self._order = [find_column(self._tables, ref.column, ref.table) for ref in columns]