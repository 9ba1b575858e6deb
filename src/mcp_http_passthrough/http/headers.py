# MIT License
#
# Copyright (c) 2025 MCP HTTP Passthrough Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
Ordered HTTP header multimap with case-insensitive names.

Header names compare by ASCII case-fold, the wire convention. Each line keeps
the casing it was added with so native HTTP writes can replay it verbatim.
"""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Union

_ASCII_FOLD = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
    "abcdefghijklmnopqrstuvwxyz",
)

HeadersInit = Union["Headers", Mapping[str, str], Iterable[tuple[str, str]], None]


def fold_name(name: str) -> str:
    """Fold a header name to lowercase using ASCII rules only."""
    return name.translate(_ASCII_FOLD)


def _check(name: Any, value: Any) -> None:
    if not isinstance(name, str):
        raise TypeError(f"Header name must be str, got {type(name).__name__}")
    if not isinstance(value, str):
        raise TypeError(f"Header value for {name!r} must be str, got {type(value).__name__}")


class Headers:
    """
    Ordered collection of header lines permitting repeated names.

    ``get`` joins repeated values the same way a fetch ``Headers`` object
    does; ``get_list`` keeps them apart.
    """

    def __init__(self, init: HeadersInit = None):
        self._lines: list[tuple[str, str]] = []

        if init is None:
            return
        if isinstance(init, Headers):
            self._lines = list(init._lines)
            return

        pairs = init.items() if isinstance(init, Mapping) else init
        for name, value in pairs:
            self.append(name, value)

    def append(self, name: str, value: str) -> None:
        """Add a header line, keeping any existing lines of the same name."""
        _check(name, value)
        self._lines.append((name, value))

    def set(self, name: str, value: str) -> None:
        """Replace every line of ``name`` with a single line at the first one's position."""
        _check(name, value)
        key = fold_name(name)
        replaced = False
        lines = []
        for existing_name, existing_value in self._lines:
            if fold_name(existing_name) != key:
                lines.append((existing_name, existing_value))
            elif not replaced:
                lines.append((name, value))
                replaced = True
        if not replaced:
            lines.append((name, value))
        self._lines = lines

    def delete(self, name: str) -> None:
        key = fold_name(name)
        self._lines = [line for line in self._lines if fold_name(line[0]) != key]

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return all values of ``name`` joined with ``", "``, or ``default``."""
        values = self.get_list(name)
        if not values:
            return default
        return ", ".join(values)

    def get_list(self, name: str) -> list[str]:
        key = fold_name(name)
        return [value for line_name, value in self._lines if fold_name(line_name) == key]

    def items(self) -> list[tuple[str, str]]:
        """Raw header lines in insertion order, original name casing kept."""
        return list(self._lines)

    def keys(self) -> list[str]:
        """Distinct folded names in first-seen order."""
        seen: dict[str, None] = {}
        for name, _ in self._lines:
            seen.setdefault(fold_name(name), None)
        return list(seen)

    def to_dict(self) -> dict[str, str]:
        return normalize_headers(self)

    def copy(self) -> "Headers":
        return Headers(self)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = fold_name(name)
        return any(fold_name(line_name) == key for line_name, _ in self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.keys())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return [(fold_name(n), v) for n, v in self._lines] == [
            (fold_name(n), v) for n, v in other._lines
        ]

    def __repr__(self) -> str:
        return f"Headers({self._lines!r})"


def normalize_headers(headers: Headers) -> dict[str, str]:
    """
    Flatten a header multimap into a single-valued mapping.

    Names are lowercased; the values of a repeated name are joined with
    ``", "`` in insertion order. Distinct names keep their first-seen order.
    """
    merged: dict[str, list[str]] = {}
    for name, value in headers.items():
        merged.setdefault(fold_name(name), []).append(value)
    return {name: ", ".join(values) for name, values in merged.items()}
