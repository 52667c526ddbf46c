"""Per-item outcomes for batch lookups that tolerate partial failure."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Ok:
    key: Any
    value: Any


@dataclass(frozen=True)
class Skipped:
    key: Any
    reason: str


@dataclass
class BatchResult:
    """Values for the items that succeeded plus a record of the ones skipped."""

    values: dict = field(default_factory=dict)
    skipped: list = field(default_factory=list)

    def add(self, outcome):
        if isinstance(outcome, Ok):
            self.values[outcome.key] = outcome.value
        else:
            self.skipped.append(outcome)

    @property
    def skipped_keys(self) -> list:
        return [s.key for s in self.skipped]

    def get(self, key, default=None):
        return self.values.get(key, default)
