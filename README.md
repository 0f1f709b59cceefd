# msiquery

`msiquery` holds the query machinery used to read the tables of a Windows
Installer (`.msi`) database:

- `msiquery.sqldelim` splits SQL text into statements. The text may arrive
  in pieces, for example one command-line argument at a time.
- `msiquery.expr` binds `WHERE` conditions to the tables of a join and
  evaluates them.
- `msiquery.where` provides `WhereView`, which filters, joins and orders
  the rows of any table-like `View`.
- `msiquery.types` holds the shared enumerations (`ResultError`,
  `ColumnType`, `Property`, `DbFlags` and others), the `MsiError`
  exception and `is_binary()`.

The package uses only the standard library.

## Installation

```
pip install msiquery
```

To run the tests:

```
pip install "msiquery[test]"
pytest
```

## Splitting statements

If you have all the input at once, pass it to `split_statements` as a
sequence of chunks. It returns a list of statements:

```python
from msiquery.sqldelim import split_statements

stmts = split_statements([
    "CREATE TABLE `T` (`A` INT PRIMARY KEY `A`);",
    "INSERT INTO `T` (`A`) VALUES (1)",
])
```

If the chunks arrive over time, use `StatementSplitter`:

- `feed(text)` returns a list of the statements that the chunk completes.
  An empty chunk ends the pending statement.
- `finish()` returns the statement still pending, or `None`.

A statement ends in any of these cases:

- at a semicolon;
- at a character that cannot appear in a statement;
- where one of `ALTER`, `CREATE`, `DELETE`, `DROP`, `INSERT`, `SELECT`
  or `UPDATE` follows other tokens.

An identifier at the end of one chunk may continue into the next. For that
reason, a keyword at the start of the following chunk does not begin a new
statement.

## Conditions

A condition is a tree built from these nodes:

- `Complex(op, left, right)`
- `Unary(op, operand)`
- `ColumnRef(column, table=None)`
- `IntValue(value)`
- `StringValue(value)`
- `Wildcard()`

The operators are in `Op`.

`resolve_condition(cond, tables)` returns a copy of the condition in which
each column is bound to a `JoinTable` as a `ResolvedColumn`. In the same copy,
equality and inequality tests on strings become `StringCompare` nodes. It
raises `MsiError` in these cases:

- `INVALID_PARAMETER` when an ordering operator is applied to strings;
- `FUNCTION_FAILED` when a column is unknown.

`Evaluator(string_lookup, params).evaluate(cond, rows)` returns a
`(value, complete)` pair. `rows` gives one row position per table, and
`None` marks a table whose row has not been chosen yet. The `?` wildcards
take their values from `params`, in order.

`order_tables(cond, tables)` puts the tables that the condition restricts
first.

## Filtered views

`WhereView(views, cond, string_lookup)` joins one or more `View` objects
and keeps the row combinations that satisfy `cond`. To use it:

1. Call `sort(columns)` with `ColumnRef` items to set the order of later
   results.
2. Call `execute(params)` to collect the matching rows.
3. Read the results with `row_count()`, `fetch_int(row, col)`,
   `fetch_stream(row, col)` and `find_matching_rows(col, val)`.

Result rows are numbered from 0 and columns from 1. The columns of the last
view given come first.

Integer columns hold their raw stored value. A 2-byte column stores
`value + 0x8000`, and a 4-byte column stores `value + 0x80000000`.

```python
from msiquery.expr import ColumnRef, Complex, IntValue, Op
from msiquery.types import ColumnType, MsiError, ResultError
from msiquery.where import ColumnInfo, View, WhereView


class MemoryView(View):
    def __init__(self, name, columns, rows):
        self.columns = [ColumnInfo(n, t, table=name) for n, t in columns]
        self.rows = [list(r) for r in rows]

    def fetch_int(self, row, col):
        return self.rows[row][col - 1]

    def fetch_stream(self, row, col):
        raise MsiError(ResultError.FUNCTION_FAILED, "no streams")

    def set_row(self, row, values, mask):
        for i, value in enumerate(values):
            if mask & (1 << i):
                self.rows[row][i] = value

    def delete_row(self, row):
        del self.rows[row]

    def execute(self, params=None):
        pass

    def close(self):
        pass

    def row_count(self):
        return len(self.rows)

    def column_count(self):
        return len(self.columns)

    def column_info(self, n):
        return self.columns[n - 1]


table = MemoryView("T", [("A", ColumnType.VALID | 2)], [[0x8001], [0x8002], [0x8003]])
view = WhereView([table], Complex(Op.GT, ColumnRef("A"), IntValue(1)), lambda i: None)
view.execute()
assert view.row_count() == 2
assert view.fetch_int(0, 1) == 0x8002
```

Errors are raised as `msiquery.types.MsiError`, which carries a
`ResultError` code. For example, `sort()` raises `BAD_QUERY_SYNTAX` when a
column cannot be found. A row index out of range raises `IndexError`.

## What this package does not do

The package does not open or write `.msi` files. It has no SQL parser that
turns statement text into condition trees. It does not store tables or
strings, and it has no command-line tools.

You supply the tables as `View` implementations and the string lookup as a
callable.