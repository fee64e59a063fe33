"""Parser registry for brokerage activity sources.

Each parser is a module exposing a ``parse(file_path)`` function that
returns a :class:`~ws_actual.models.StageResult` of
:class:`~ws_actual.models.RawTransaction` records.  The ``PARSERS`` dict
maps source names (used on the command line) to parse functions, and
``get_parser()`` provides a convenient lookup with a clear error on unknown
names.
"""

from __future__ import annotations

from collections.abc import Callable

from ws_actual.parsers import csv_export, scraped

PARSERS: dict[str, Callable] = {
    "scraped": scraped.parse,
    "csv": csv_export.parse,
}


def get_parser(name: str) -> Callable:
    """Look up a parser by name.

    Args:
        name: Source name, e.g. ``"scraped"`` or ``"csv"``.

    Returns:
        The parse function for the named source.

    Raises:
        KeyError: If no parser is registered under the given name.
    """
    return PARSERS[name]
