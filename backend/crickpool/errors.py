"""Settlement error taxonomy.

ValidationError and NotFoundError are reported to the caller synchronously.
DuplicateSettlementError is a success signal (another writer already paid).
TransientStoreError is captured per entry into a SettlementFailure row.
DataIntegrityError is logged as a warning and settlement carries on.
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for every error raised by crickpool."""


class ValidationError(SettlementError):
    pass


class NotFoundError(SettlementError):
    pass


class DuplicateSettlementError(SettlementError):
    def __init__(self, contest_id: int, entry_id: int):
        super().__init__(f"contest_win already recorded for contest {contest_id} entry {entry_id}")
        self.contest_id = contest_id
        self.entry_id = entry_id


class TransientStoreError(SettlementError):
    pass


class DataIntegrityError(SettlementError):
    def __init__(self, problems: list[str]):
        super().__init__("; ".join(problems) or "prize breakup integrity problem")
        self.problems = list(problems)
