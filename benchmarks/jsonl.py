from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar, cast

from runtime.errors import DatasetIOError, DatasetParseError
from runtime.schemas import DatasetRow

T = TypeVar("T")


def read_rows(
    path: Path,
    on_error: Optional[Callable[[DatasetParseError], None]] = None,
) -> List[Dict[str, Any]]:
    """Read raw records from a `.jsonl` file (or a `.json` array file).

    Each jsonl line is parsed on its own; a malformed line is reported to
    `on_error` and skipped without aborting the load.
    """

    if not path.is_file():
        raise DatasetIOError(f"Dataset file not found: {path}")

    records: List[Dict[str, Any]] = []
    try:
        if path.suffix == ".json":
            import ijson

            with path.open("rb") as f:
                for index, record in enumerate(ijson.items(f, "item"), start=1):
                    if not isinstance(record, dict):
                        _report(on_error, DatasetParseError(path, index, f"expected object, got {type(record).__name__}"))
                        continue
                    records.append(cast(Dict[str, Any], record))
            return records

        with path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError as exc:
                    _report(on_error, DatasetParseError(path, line_no, f"invalid JSON: {exc.msg}"))
                    continue
                if not isinstance(record, dict):
                    _report(on_error, DatasetParseError(path, line_no, f"expected object, got {type(record).__name__}"))
                    continue
                records.append(record)
    except OSError as exc:
        raise DatasetIOError(f"Cannot read dataset file {path}: {exc}") from exc
    return records


def _report(on_error: Optional[Callable[[DatasetParseError], None]], error: DatasetParseError) -> None:
    if on_error is not None:
        on_error(error)


def parse_rows(
    records: Sequence[Mapping[str, Any]],
    validate: Callable[[Mapping[str, Any]], Optional[DatasetRow]],
) -> List[DatasetRow]:
    """Keep only records accepted by the dataset's structural predicate."""

    rows: List[DatasetRow] = []
    for record in records:
        row = validate(record)
        if row is not None:
            rows.append(row)
    return rows


def require_str_fields(record: Mapping[str, Any], fields: Sequence[str]) -> bool:
    """True when every named field is present and holds a string."""

    return all(isinstance(record.get(name), str) for name in fields)


def apply_sampling(
    rows: Sequence[T],
    sample_count: Optional[int],
    max_cases: int,
    seed: Optional[int] = 0,
) -> List[T]:
    """Select a bounded, reproducible subset of rows.

    With a positive `sample_count`, rows are drawn uniformly using a seeded
    generator and returned in their original file order; otherwise the first
    `max_cases` rows are taken. `max_cases` caps the result either way.
    """

    limit = max(0, max_cases)
    if sample_count and sample_count > 0:
        rng = random.Random(seed)
        count = min(sample_count, len(rows))
        picked = sorted(rng.sample(range(len(rows)), count))
        return [rows[index] for index in picked][:limit]
    return list(rows[:limit])
