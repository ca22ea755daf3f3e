import re
from typing import Any, Callable, Dict, Iterable, List

MAX_MATCHES = 10

NAME_WORD_PATTERN = re.compile(r"[A-Z][a-z]+")
DATE_PATTERN = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}|\d{4}[/\-]\d{1,2}[/\-]\d{1,2}", re.ASCII)
TIME_PATTERN = re.compile(r"\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AP]M)?", re.IGNORECASE | re.ASCII)


def _string_cells(grid: Iterable[Iterable[Any]]) -> Iterable[str]:
    """Yield the string cells of a grid in row-major order."""
    for row in grid:
        for cell in row:
            if isinstance(cell, str):
                yield cell


def _unique_head(values: Iterable[str], limit: int = MAX_MATCHES) -> List[str]:
    """Deduplicate keeping first occurrences, then keep the first `limit`."""
    seen = dict.fromkeys(values)
    return list(seen)[:limit]


def _collect(grid, predicate: Callable[[str], bool]) -> List[str]:
    return _unique_head(cell.strip() for cell in _string_cells(grid) if predicate(cell))


def is_name(cell: str) -> bool:
    """Two or three capitalized words, e.g. "Ana Maria Lopez"."""
    words = cell.split()
    return 2 <= len(words) <= 3 and all(NAME_WORD_PATTERN.fullmatch(word) for word in words)


def is_date(cell: str) -> bool:
    return DATE_PATTERN.search(cell) is not None


def is_time(cell: str) -> bool:
    return TIME_PATTERN.search(cell) is not None


def identify_names(grid) -> List[str]:
    return _collect(grid, is_name)


def identify_dates(grid) -> List[str]:
    return _collect(grid, is_date)


def identify_times(grid) -> List[str]:
    return _collect(grid, is_time)


def extract_fields(grid) -> Dict[str, List[str]]:
    """Run all three extractors over a grid."""
    return {
        "names": identify_names(grid),
        "dates": identify_dates(grid),
        "times": identify_times(grid),
    }
