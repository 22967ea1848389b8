"""Exception types raised by the ledger."""

from .periods import InvalidPeriodError


class HoldingsLedgerError(Exception):
    """Base class for ledger errors."""


class FilingValidationError(HoldingsLedgerError):
    """A filing failed input validation and was rejected before any write."""


class FilerNotFoundError(HoldingsLedgerError):
    """No filer is stored under the requested CIK."""

    def __init__(self, cik: str) -> None:
        super().__init__(f"Filer not found with CIK: {cik}")
        self.cik = cik


class ConcurrentUpdateError(HoldingsLedgerError):
    """The filer row changed between read and write."""

    def __init__(self, cik: str, expected_version: int) -> None:
        super().__init__(
            f"Filer {cik} was modified concurrently (expected version {expected_version})"
        )
        self.cik = cik
        self.expected_version = expected_version


__all__ = [
    "HoldingsLedgerError",
    "FilingValidationError",
    "FilerNotFoundError",
    "ConcurrentUpdateError",
    "InvalidPeriodError",
]
