"""TelemetryLog — in-memory collection of decoded records awaiting persistence."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

import pandas as pd

from tgs.models.telemetry import TelemetryRecord


@dataclass
class TelemetryLog:
    """Decoded telemetry records grouped by tag.

    Filled from the session's ``telemetry.record`` hook and handed to a
    ``Recorder`` for persistence.
    """

    records: dict[str, list[TelemetryRecord]] = field(default_factory=dict)
    metadata: dict[str, object] = field(default_factory=dict)

    # ------------------------------------------------------------------ #
    #  Record helpers                                                      #
    # ------------------------------------------------------------------ #

    def add(self, record: TelemetryRecord) -> None:
        self.records.setdefault(record.tag, []).append(record)

    def tags(self) -> list[str]:
        return sorted(self.records)

    def iter_records(self) -> Iterator[TelemetryRecord]:
        for tag in self.tags():
            yield from self.records[tag]

    def get(self, tag: str) -> list[TelemetryRecord]:
        return self.records.get(tag, [])

    # ------------------------------------------------------------------ #
    #  DataFrame export                                                    #
    # ------------------------------------------------------------------ #

    def to_dataframe(self, tag: str) -> pd.DataFrame:
        """Return a tidy DataFrame of every record received for one tag."""
        records = self.records.get(tag)
        if records is None:
            raise KeyError(f"Tag '{tag}' not found in telemetry log")
        df = pd.DataFrame([r.as_row() for r in records])
        return df.sort_values("received_at", kind="stable").reset_index(drop=True)

    # ------------------------------------------------------------------ #
    #  Dunder helpers                                                      #
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return sum(len(v) for v in self.records.values())

    def __repr__(self) -> str:
        return f"TelemetryLog(records={len(self)}, tags={self.tags()})"
