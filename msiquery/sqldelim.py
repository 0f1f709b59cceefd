"""Split SQL text into statements.

Statements end at a semicolon, at a character that cannot appear in a
statement, or where a keyword that begins a new statement (ALTER, CREATE,
DELETE, DROP, INSERT, SELECT, UPDATE) follows other tokens.  Text may arrive
in several chunks; an identifier at the end of a chunk may continue in the
next one, so a keyword at the start of the following chunk does not begin a
new statement.
"""

from __future__ import annotations

import string
from collections.abc import Iterable

MAX_TOKEN_LEN = 11

STATEMENT_KEYWORDS = frozenset(
    {"ALTER", "CREATE", "DELETE", "DROP", "INSERT", "SELECT", "UPDATE"}
)

_WHITESPACE_START = " \t\n\f"
_WHITESPACE_RUN = " \t\n\v\f"
_PUNCTUATION = "-()*=<>!?,."
_QUOTES = "`'"
_DIGITS = frozenset(string.digits)
_ID_CHARS = frozenset(string.ascii_letters + string.digits + "_-\x05")


def _is_id_char(ch: str) -> bool:
    return ch in _ID_CHARS or ord(ch) > 127


def _is_keyword(word: str) -> bool:
    if len(word) > MAX_TOKEN_LEN or not word.isascii():
        return False
    return word.upper() in STATEMENT_KEYWORDS


class StatementSplitter:
    """Incrementally groups SQL text into complete statements."""

    def __init__(self):
        self._buffer: list[str] = []
        self._cont = False

    def _skip_token(self, text: str, pos: int) -> tuple[int, bool]:
        """Return the position after the token at ``pos`` and whether it ends a statement."""
        get_keyword = self._cont
        self._cont = True
        end = len(text)
        ch = text[pos]
        i = pos + 1

        if ch in _WHITESPACE_START:
            while i < end and text[i] in _WHITESPACE_RUN:
                i += 1
            return i, False
        if ch in _PUNCTUATION:
            return pos + 1, False
        if ch in _QUOTES:
            while i < end:
                current = text[i]
                i += 1
                if current == ch:
                    break
            return i, False
        if ch in _DIGITS:
            while i < end and text[i] in _DIGITS:
                i += 1
            return i, False
        if ch == "[":
            while i < end and text[i - 1] != "]":
                i += 1
            return i, False
        if not _is_id_char(ch):
            return pos + 1, True

        while i < end and _is_id_char(text[i]):
            i += 1
        if get_keyword and _is_keyword(text[pos:i]):
            # The keyword stays unread; it opens the next statement.
            return pos, True
        if i == end:
            self._cont = False
        return i, False

    def _take(self) -> str | None:
        self._cont = False
        statement = "".join(self._buffer)
        self._buffer.clear()
        return statement or None

    def feed(self, text):
        """Consume a chunk of text and return the statements it completes.

        An empty chunk ends the pending statement, as :meth:`finish` does.
        """
        if not text:
            statement = self.finish()
            return [statement] if statement else []

        statements = []
        pos = 0
        end = len(text)
        while pos < end:
            start = pos
            if text[pos] == ";":
                done = True
                pos += 1
            else:
                pos, done = self._skip_token(text, pos)
                self._buffer.append(text[start:pos])
            if done:
                statement = self._take()
                if statement:
                    statements.append(statement)
        return statements

    def finish(self):
        """Return what is left as a final statement, or None if nothing is pending."""
        return self._take()


def split_statements(chunks: Iterable[str]) -> list[str]:
    """Split a sequence of text chunks into statements."""
    splitter = StatementSplitter()
    statements: list[str] = []
    for chunk in chunks:
        if chunk:
            statements.extend(splitter.feed(chunk))
    last = splitter.finish()
    if last:
        statements.append(last)
    return statements