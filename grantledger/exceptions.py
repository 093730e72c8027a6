"""Mini README: Error taxonomy shared by the ledger, importer and API.

Structure:
    * GrantLedgerError - common base so callers can catch everything at once.
    * ValidationError - rejected input (negative rates, bad amounts, bad mappings).
    * BudgetMismatchError - allocations diverge from the total under the strict policy.
    * NotFoundError - update/delete referencing an unknown grant or expense.
    * ImportSourceError - a spreadsheet that cannot be opened or parsed at all.
    * PersistenceError - the ledger document cannot be read or written.
"""

from __future__ import annotations


class GrantLedgerError(Exception):
    """Base class for all grant ledger failures."""


class ValidationError(GrantLedgerError, ValueError):
    """Input rejected by the calculator, the store or the importer."""


class BudgetMismatchError(ValidationError):
    """Budget categories do not add up to the grant's total amount."""

    def __init__(self, grant_id: str, total: float, allocated: float) -> None:
        self.grant_id = grant_id
        self.total = total
        self.allocated = allocated
        super().__init__(
            f"Budget mismatch for grant {grant_id}: total amount {total:.2f} "
            f"does not equal budget categories total {allocated:.2f} "
            f"(difference {total - allocated:.2f})"
        )


class NotFoundError(GrantLedgerError, KeyError):
    """A grant or expense id is not present in the ledger."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} {identifier} not found")

    def __str__(self) -> str:
        return str(self.args[0])


class ImportSourceError(GrantLedgerError):
    """The import source could not be opened or parsed."""


class PersistenceError(GrantLedgerError):
    """Reading or writing the ledger document failed."""
