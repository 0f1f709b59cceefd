from types import SimpleNamespace

import pytest

from msiquery.expr import (
    ColumnKind,
    ColumnRef,
    Complex,
    Evaluator,
    IntValue,
    JoinTable,
    Op,
    ResolvedColumn,
    StringCompare,
    StringValue,
    Unary,
    Wildcard,
    find_column,
    order_tables,
    resolve_condition,
)
from msiquery.types import NULL_INT, ColumnType, MsiError, ResultError

INT2 = ColumnType.VALID | 2
INT4 = ColumnType.VALID | 4
STR = ColumnType.VALID | ColumnType.STRING | 32

STRINGS = {1: "Abe", 2: "Bob"}


class FakeView:
    def __init__(self, name, columns, rows):
        self.name = name
        self.columns = columns
        self.rows = rows

    def column_info(self, n):
        col_name, col_type = self.columns[n - 1]
        return SimpleNamespace(name=col_name, type=col_type, table=self.name)

    def fetch_int(self, row, col):
        return self.rows[row][col - 1]


def make_table(name, columns, rows, index):
    view = FakeView(name, columns, rows)
    return JoinTable(view=view, col_count=len(columns), table_index=index, row_count=len(rows))


@pytest.fixture
def drone():
    return make_table(
        "drone",
        [("id", INT2), ("name", STR), ("big", INT4)],
        [[1 + 0x8000, 1, 0x80000000 + 5], [2 + 0x8000, 2, 0x80000000 + 7], [0, 0, 0]],
        0,
    )


def evaluator(params=None):
    return Evaluator(STRINGS.get, params)


def test_find_column_kinds(drone):
    assert find_column([drone], "id").kind is ColumnKind.NUMBER
    assert find_column([drone], "name").kind is ColumnKind.STRING
    big = find_column([drone], "big")
    assert big.kind is ColumnKind.NUMBER32
    assert big.column == 3
    assert big.table is drone


def test_find_column_unknown(drone):
    with pytest.raises(MsiError) as info:
        find_column([drone], "missing")
    assert info.value.code is ResultError.BAD_QUERY_SYNTAX


def test_find_column_table_qualifier():
    a = make_table("a", [("x", INT2)], [[0]], 0)
    b = make_table("b", [("x", INT2)], [[0]], 1)
    assert find_column([a, b], "x").table is a
    assert find_column([a, b], "x", "b").table is b
    with pytest.raises(MsiError):
        find_column([a, b], "x", "c")


def test_resolve_string_comparison(drone):
    cond = resolve_condition(Complex(Op.EQ, ColumnRef("name"), StringValue("Abe")), [drone])
    assert isinstance(cond, StringCompare)
    assert cond.left == ResolvedColumn(drone, 2, ColumnKind.STRING)


def test_resolve_rejects_ordering_of_strings(drone):
    with pytest.raises(MsiError) as info:
        resolve_condition(Complex(Op.GT, ColumnRef("name"), StringValue("Abe")), [drone])
    assert info.value.code is ResultError.INVALID_PARAMETER


def test_resolve_unary_needs_column(drone):
    with pytest.raises(MsiError) as info:
        resolve_condition(Unary(Op.ISNULL, IntValue(1)), [drone])
    assert info.value.code is ResultError.INVALID_PARAMETER


def test_resolve_unknown_column_fails(drone):
    with pytest.raises(MsiError) as info:
        resolve_condition(Complex(Op.EQ, ColumnRef("nope"), IntValue(1)), [drone])
    assert info.value.code is ResultError.FUNCTION_FAILED


def test_integer_comparison(drone):
    cond = resolve_condition(Complex(Op.EQ, ColumnRef("id"), IntValue(1)), [drone])
    ev = evaluator()
    assert ev.evaluate(cond, [0]) == (1, True)
    assert ev.evaluate(cond, [1]) == (0, True)


def test_number32_column(drone):
    cond = resolve_condition(Complex(Op.EQ, ColumnRef("big"), IntValue(7)), [drone])
    ev = evaluator()
    assert [ev.evaluate(cond, [row])[0] for row in range(3)] == [0, 1, 0]


def test_string_comparison(drone):
    eq = resolve_condition(Complex(Op.EQ, ColumnRef("name"), StringValue("Bob")), [drone])
    ne = resolve_condition(Complex(Op.NE, ColumnRef("name"), StringValue("Bob")), [drone])
    ev = evaluator()
    assert [ev.evaluate(eq, [row])[0] for row in range(2)] == [0, 1]
    assert [ev.evaluate(ne, [row])[0] for row in range(2)] == [1, 0]


def test_empty_string_matches_null(drone):
    cond = resolve_condition(Complex(Op.EQ, ColumnRef("name"), StringValue("")), [drone])
    assert evaluator().evaluate(cond, [2]) == (1, True)


def test_wildcards(drone):
    cond = resolve_condition(
        Complex(
            Op.AND,
            Complex(Op.EQ, ColumnRef("id"), Wildcard()),
            Complex(Op.EQ, ColumnRef("name"), Wildcard()),
        ),
        [drone],
    )
    assert evaluator([1, "Abe"]).evaluate(cond, [0]) == (1, True)
    assert evaluator(["1", "Bob"]).evaluate(cond, [0]) == (0, True)


def test_wildcard_bad_integer_text_is_null():
    cond = Complex(Op.EQ, Wildcard(), IntValue(NULL_INT))
    assert evaluator(["+1"]).evaluate(cond, []) == (1, True)
    assert evaluator(["42"]).evaluate(cond, []) == (0, True)


def test_pending_rows(drone):
    col = resolve_condition(Complex(Op.EQ, ColumnRef("id"), IntValue(1)), [drone])
    ev = evaluator()
    assert ev.evaluate(col, [None])[1] is False
    false_and = Complex(Op.AND, col, IntValue(0))
    assert ev.evaluate(false_and, [None]) == (0, True)
    true_or = Complex(Op.OR, col, IntValue(1))
    assert ev.evaluate(true_or, [None]) == (1, True)
    true_and = Complex(Op.AND, col, IntValue(1))
    assert ev.evaluate(true_and, [None]) == (1, False)


def test_unary(drone):
    isnull = resolve_condition(Unary(Op.ISNULL, ColumnRef("id")), [drone])
    notnull = resolve_condition(Unary(Op.NOTNULL, ColumnRef("id")), [drone])
    ev = evaluator()
    assert ev.evaluate(isnull, [2]) == (1, True)
    assert ev.evaluate(isnull, [0]) == (0, True)
    assert ev.evaluate(notnull, [2])[0] == 0
    assert ev.evaluate(notnull, [0])[0] != 0


def test_unknown_operator_raises():
    with pytest.raises(MsiError) as info:
        evaluator().evaluate(Complex(Op.ISNULL, IntValue(1), IntValue(1)), [])
    assert info.value.code is ResultError.FUNCTION_FAILED


def test_no_condition_is_true():
    assert evaluator().evaluate(None, []) == (1, True)


def test_order_tables_without_condition():
    a = make_table("a", [("x", INT2)], [[0]], 0)
    b = make_table("b", [("x", INT2)], [[0]], 1)
    assert order_tables(None, [a, b]) == [a, b]


def test_order_tables_follows_constraints():
    a = make_table("a", [("p", INT2)], [[0]], 0)
    b = make_table("b", [("y", INT2)], [[0]], 1)
    c = make_table("c", [("x", INT2), ("z", INT2)], [[0, 0]], 2)
    tables = [a, b, c]
    cond = resolve_condition(
        Complex(
            Op.AND,
            Complex(Op.EQ, ColumnRef("x", "c"), IntValue(1)),
            Complex(Op.EQ, ColumnRef("y", "b"), ColumnRef("z", "c")),
        ),
        tables,
    )
    ordered = order_tables(cond, tables)
    assert ordered == [c, b, a]
    assert len(ordered) == len(tables)


def test_join_evaluation():
    a = make_table("a", [("k", INT2)], [[1 + 0x8000], [2 + 0x8000]], 0)
    b = make_table("b", [("k2", INT2)], [[2 + 0x8000]], 1)
    cond = resolve_condition(Complex(Op.EQ, ColumnRef("k"), ColumnRef("k2")), [a, b])
    ev = evaluator()
    assert ev.evaluate(cond, [0, 0]) == (0, True)
    assert ev.evaluate(cond, [1, 0]) == (1, True)
    assert ev.evaluate(cond, [1, None])[1] is False