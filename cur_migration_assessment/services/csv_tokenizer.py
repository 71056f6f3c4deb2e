"""
Line extraction and quote-aware field splitting for CUR exports.
"""

from typing import List, Optional

from ..exceptions import FieldLimitExceededError, LineTooLongError, MalformedRowError


def split_csv_line(line: str, max_fields: int = 10_000) -> List[str]:
    """Split one CSV line into trimmed fields.

    Commas inside double quotes do not split, and ``""`` inside a quoted
    field is a literal quote. An unterminated quote raises
    ``MalformedRowError``; more than ``max_fields`` fields raises
    ``FieldLimitExceededError``.
    """
    if '"' not in line:
        fields = line.split(",")
        if len(fields) > max_fields:
            raise FieldLimitExceededError(
                f"Row has {len(fields)} fields, limit is {max_fields}"
            )
        return [field.strip() for field in fields]

    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
            if len(fields) >= max_fields:
                raise FieldLimitExceededError(
                    f"Row has more than {max_fields} fields"
                )
        else:
            current.append(char)
        i += 1

    if in_quotes:
        raise MalformedRowError("Unterminated quoted field")

    fields.append("".join(current).strip())
    return fields


class LineBuffer:
    """Accumulates decoded text and hands out complete lines.

    Consumed text is tracked with an offset instead of re-slicing the
    buffer on every line; the consumed prefix is dropped on the next feed.
    """

    def __init__(self, max_line_length: int = 10_000_000):
        self.max_line_length = max_line_length
        self._buffer = ""
        self._pos = 0

    def feed(self, text: str) -> None:
        if self._pos:
            self._buffer = self._buffer[self._pos:]
            self._pos = 0
        self._buffer += text
        self._check_pending()

    def next_line(self) -> Optional[str]:
        """Return the next complete line without its terminator, or None"""
        end = self._buffer.find("\n", self._pos)
        if end == -1:
            return None

        line = self._buffer[self._pos:end]
        self._pos = end + 1
        if line.endswith("\r"):
            line = line[:-1]
        if len(line) > self.max_line_length:
            raise LineTooLongError(
                f"Line length {len(line)} exceeds limit of {self.max_line_length}"
            )
        return line

    def drain(self) -> str:
        """Return whatever is left after the last newline and reset"""
        rest = self._buffer[self._pos:]
        self._buffer = ""
        self._pos = 0
        if rest.endswith("\r"):
            rest = rest[:-1]
        if len(rest) > self.max_line_length:
            raise LineTooLongError(
                f"Line length {len(rest)} exceeds limit of {self.max_line_length}"
            )
        return rest

    @property
    def pending(self) -> int:
        return len(self._buffer) - self._pos

    def _check_pending(self) -> None:
        # A partial line already past the limit can never become valid
        if "\n" in self._buffer:
            return
        if self.pending > self.max_line_length:
            raise LineTooLongError(
                f"Unterminated line of {self.pending} characters exceeds limit "
                f"of {self.max_line_length}"
            )
