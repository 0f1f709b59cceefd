"""Condition expressions for joined table queries.

A condition arrives from the parser as a tree of :class:`Complex`,
:class:`Unary`, :class:`ColumnRef`, :class:`IntValue`, :class:`StringValue`
and :class:`Wildcard` nodes.  :func:`resolve_condition` binds column
references to the tables of a join.  It turns string comparisons into
:class:`StringCompare` nodes. :class:`Evaluator` then computes the condition
for one combination of rows.

A join fixes its tables one at a time.  A row position of ``None`` means that
table has no row yet.  A condition that depends on such a table is reported
as not complete, unless the other side of an AND or OR already decides it.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Union

from .types import NULL_INT, ColumnType, MsiError, ResultError


class Op(IntEnum):
    """Operators of a condition."""

    EQ = 1
    AND = 2
    OR = 3
    GT = 4
    LT = 5
    LE = 6
    GE = 7
    NE = 8
    ISNULL = 9
    NOTNULL = 10


class ColumnKind(Enum):
    """How the raw value of a resolved column is interpreted."""

    NUMBER = "number"
    NUMBER32 = "number32"
    STRING = "string"


@dataclass(eq=False)
class JoinTable:
    """One table taking part in a join."""

    view: Any
    col_count: int
    table_index: int
    row_count: int = 0


@dataclass(frozen=True)
class ColumnRef:
    """A column named in a condition, not yet bound to a table."""

    column: str
    table: str | None = None


@dataclass(frozen=True)
class ResolvedColumn:
    """A column bound to a joined table; ``column`` counts from 1."""

    table: JoinTable
    column: int
    kind: ColumnKind


@dataclass(frozen=True)
class Complex:
    """A binary operation on two sub-expressions."""

    op: Op
    left: Any
    right: Any


@dataclass(frozen=True)
class StringCompare:
    """An equality or inequality test between strings."""

    op: Op
    left: Any
    right: Any


@dataclass(frozen=True)
class Unary:
    """IS NULL or IS NOT NULL applied to a column."""

    op: Op
    operand: Any


@dataclass(frozen=True)
class IntValue:
    """An integer literal."""

    value: int


@dataclass(frozen=True)
class StringValue:
    """A string literal."""

    value: str


@dataclass(frozen=True)
class Wildcard:
    """A ``?`` placeholder, filled from the parameters in order."""


Expr = Union[
    ColumnRef, ResolvedColumn, Complex, StringCompare, Unary, IntValue, StringValue, Wildcard
]

_CONST_EXPR = 1
_JOIN_TO_CONST_EXPR = 0x10000
_INT_TEXT = re.compile(r"-?[0-9]+")


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


_NULL = _to_int32(NULL_INT)


def _kind_for_type(column_type: int) -> ColumnKind:
    if column_type & ColumnType.STRING:
        return ColumnKind.STRING
    if column_type & 0xFF == 4:
        return ColumnKind.NUMBER32
    return ColumnKind.NUMBER


def find_column(tables, column, table=None):
    """Bind a column name, optionally qualified by a table name, to a joined table.

    Raises MsiError(BAD_QUERY_SYNTAX) when no table has such a column.
    """
    for join in tables:
        if table is not None and join.view.column_info(1).table != table:
            continue
        for index in range(1, join.col_count + 1):
            info = join.view.column_info(index)
            if info.name == column:
                return ResolvedColumn(join, index, _kind_for_type(info.type))
    where = f"{table}.{column}" if table is not None else column
    raise MsiError(ResultError.BAD_QUERY_SYNTAX, f"couldn't find column {where}")


def _is_string_operand(node) -> bool:
    return isinstance(node, StringValue) or (
        isinstance(node, ResolvedColumn) and node.kind is ColumnKind.STRING
    )


def _verify(cond, tables) -> tuple[Any, bool]:
    if isinstance(cond, ColumnRef):
        try:
            return find_column(tables, cond.column, cond.table), True
        except MsiError:
            return cond, False
    if isinstance(cond, Complex):
        left, valid = _verify(cond.left, tables)
        if not valid:
            return cond, False
        right, valid = _verify(cond.right, tables)
        if _is_string_operand(left) or _is_string_operand(right):
            if cond.op not in (Op.EQ, Op.NE):
                raise MsiError(
                    ResultError.INVALID_PARAMETER,
                    f"operator {cond.op.name} cannot compare strings",
                )
            return StringCompare(cond.op, left, right), valid
        return Complex(cond.op, left, right), valid
    if isinstance(cond, Unary):
        if not isinstance(cond.operand, ColumnRef):
            raise MsiError(ResultError.INVALID_PARAMETER, "unary operator needs a column")
        operand, valid = _verify(cond.operand, tables)
        return Unary(cond.op, operand), valid
    if isinstance(cond, (IntValue, StringValue, Wildcard)):
        return cond, True
    return cond, False


def resolve_condition(cond, tables):
    """Return a copy of ``cond`` with its columns bound to ``tables``.

    Raises MsiError(INVALID_PARAMETER) for an operator that cannot apply to
    its operands and MsiError(FUNCTION_FAILED) for an unknown column or an
    unusable node.
    """
    resolved, valid = _verify(cond, list(tables))
    if not valid:
        raise MsiError(ResultError.FUNCTION_FAILED, "invalid condition")
    return resolved


def order_tables(cond, tables):
    """Order joined tables so that those the condition restricts come first."""
    ordered: list[JoinTable] = []
    last_used: JoinTable | None = None

    def add(table):
        if table is not None and table not in ordered:
            ordered.append(table)

    def check(expr, process_joins: bool) -> int:
        nonlocal last_used
        if isinstance(expr, (Wildcard, StringValue, IntValue)):
            return 0
        if isinstance(expr, ResolvedColumn):
            if expr.table in ordered:
                return _JOIN_TO_CONST_EXPR
            last_used = expr.table
            return _CONST_EXPR
        if isinstance(expr, (Complex, StringCompare)):
            res = check(expr.right, process_joins)
            res += check(expr.left, process_joins)
        elif isinstance(expr, Unary):
            res = check(expr.operand, process_joins)
        else:
            raise MsiError(ResultError.FUNCTION_FAILED, f"unknown expression {expr!r}")
        if res == 0:
            return 0
        if res == _CONST_EXPR:
            add(last_used)
        if process_joins and res == _JOIN_TO_CONST_EXPR + _CONST_EXPR:
            add(last_used)
        return res

    if cond is not None:
        for process_joins in (False, True):
            last_used = None
            check(cond, process_joins)

    for table in tables:
        add(table)
    return ordered


class Evaluator:
    """Evaluates a resolved condition against a combination of rows.

    ``string_lookup`` maps a string id to its text.  ``params`` supply the
    values of the wildcards, in the order they appear.
    """

    def __init__(self, string_lookup: Callable[[int], str | None], params=None):
        self.string_lookup = string_lookup
        self.params: Sequence[Any] = list(params) if params is not None else []
        self._param_index = 0

    def evaluate(self, cond, rows):
        """Return ``(value, complete)`` for ``cond`` with the given row positions.

        ``rows`` holds one row position per table index, ``None`` for a table
        with no row chosen yet.  ``complete`` is False when the value depends
        on such a table.
        """
        self._param_index = 0
        return self._eval(cond, rows)

    def _next_param(self):
        self._param_index += 1
        index = self._param_index - 1
        return self.params[index] if index < len(self.params) else None

    def _param_int(self) -> int:
        value = self._next_param()
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return _to_int32(value)
        if isinstance(value, str) and _INT_TEXT.fullmatch(value):
            return _to_int32(int(value))
        return _NULL

    def _param_str(self) -> str | None:
        value = self._next_param()
        return value if isinstance(value, str) else None

    @staticmethod
    def _fetch(column: ResolvedColumn, rows) -> tuple[int, bool]:
        row = rows[column.table.table_index]
        if row is None:
            return 1, False
        return column.table.view.fetch_int(row, column.column), True

    def _eval(self, cond, rows) -> tuple[int, bool]:
        if cond is None:
            return 1, True
        if isinstance(cond, ResolvedColumn):
            raw, complete = self._fetch(cond, rows)
            if not complete:
                return 0, False
            if cond.kind is ColumnKind.NUMBER:
                return _to_int32(raw - 0x8000), True
            if cond.kind is ColumnKind.NUMBER32:
                return _to_int32(raw - 0x80000000), True
            raise MsiError(ResultError.FUNCTION_FAILED, "string column used as a number")
        if isinstance(cond, IntValue):
            return _to_int32(cond.value), True
        if isinstance(cond, Complex):
            return self._eval_binary(cond, rows)
        if isinstance(cond, Unary):
            return self._eval_unary(cond, rows)
        if isinstance(cond, StringCompare):
            return self._eval_strcmp(cond, rows)
        if isinstance(cond, Wildcard):
            return self._param_int(), True
        raise MsiError(ResultError.FUNCTION_FAILED, f"invalid expression {cond!r}")

    def _eval_binary(self, expr: Complex, rows) -> tuple[int, bool]:
        lval, lcomplete = self._eval(expr.left, rows)
        rval, rcomplete = self._eval(expr.right, rows)

        if not (lcomplete and rcomplete):
            if lcomplete == rcomplete:
                return 1, False
            if expr.op is Op.AND:
                if (not lcomplete and not rval) or (not rcomplete and not lval):
                    return 0, True
            elif expr.op is Op.OR:
                if (not lcomplete and rval) or (not rcomplete and lval):
                    return 1, True
            return 1, False

        operations = {
            Op.EQ: lambda: lval == rval,
            Op.AND: lambda: bool(lval and rval),
            Op.OR: lambda: bool(lval or rval),
            Op.GT: lambda: lval > rval,
            Op.LT: lambda: lval < rval,
            Op.LE: lambda: lval <= rval,
            Op.GE: lambda: lval >= rval,
            Op.NE: lambda: lval != rval,
        }
        operation = operations.get(expr.op)
        if operation is None:
            raise MsiError(ResultError.FUNCTION_FAILED, f"unknown operator {expr.op}")
        return int(operation()), True

    def _eval_unary(self, expr: Unary, rows) -> tuple[int, bool]:
        if not isinstance(expr.operand, ResolvedColumn):
            raise MsiError(ResultError.FUNCTION_FAILED, "unary operator needs a column")
        raw, complete = self._fetch(expr.operand, rows)
        if not complete:
            return 0, False
        if expr.op is Op.ISNULL:
            return int(not raw), True
        if expr.op is Op.NOTNULL:
            return _to_int32(raw), True
        raise MsiError(ResultError.FUNCTION_FAILED, f"unknown operator {expr.op}")

    def _eval_string(self, expr, rows) -> tuple[str | None, bool]:
        if isinstance(expr, ResolvedColumn) and expr.kind is ColumnKind.STRING:
            raw, complete = self._fetch(expr, rows)
            if not complete:
                return None, False
            return self.string_lookup(raw), True
        if isinstance(expr, StringValue):
            return expr.value, True
        if isinstance(expr, Wildcard):
            return self._param_str(), True
        raise MsiError(ResultError.FUNCTION_FAILED, f"invalid string expression {expr!r}")

    def _eval_strcmp(self, expr: StringCompare, rows) -> tuple[int, bool]:
        left, complete = self._eval_string(expr.left, rows)
        if not complete:
            return 1, False
        right, complete = self._eval_string(expr.right, rows)
        if not complete:
            return 1, False

        if left == right or (not left and not right):
            order = 0
        elif left and not right:
            order = 1
        elif right and not left:
            order = -1
        else:
            order = (left > right) - (left < right)

        matched = (expr.op is Op.EQ and order == 0) or (expr.op is Op.NE and order != 0)
        return int(matched), True