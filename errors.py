from typing import Optional


class LedgerError(Exception):
    """Base class for actions the ledger refuses to apply.

    A LedgerError never leaves the ledger half-updated: when it is raised the
    accounts and transfers look exactly as they did before the call, apart
    from the client account that the gate materializes on first reference.
    """

    error_code = "LEDGER_ERROR"

    def __init__(
        self,
        detail: str,
        client_id: Optional[int] = None,
        transfer_id: Optional[int] = None,
    ):
        super().__init__(detail)
        self.detail = detail
        self.client_id = client_id
        self.transfer_id = transfer_id


class ClientLocked(LedgerError):
    error_code = "CLIENT_LOCKED"

    def __init__(self, client_id: int, transfer_id: Optional[int] = None):
        super().__init__(f"client error: client {client_id} is locked", client_id, transfer_id)


class InsufficientFunds(LedgerError):
    error_code = "INSUFFICIENT_FUNDS"

    def __init__(self, client_id: int, transfer_id: Optional[int] = None):
        super().__init__(
            f"insufficient funds: client {client_id}, "
            "withdrawal would result in negative available funds",
            client_id,
            transfer_id,
        )


class TransferConflict(LedgerError):
    error_code = "TRANSFER_CONFLICT"

    def __init__(self, transfer_id: int, kind: str, description: str, client_id: Optional[int] = None):
        super().__init__(f"conflict: transfer {transfer_id}, {kind}: {description}", client_id, transfer_id)
        self.kind = kind
        self.description = description


class TransferNotFound(LedgerError):
    error_code = "TRANSFER_NOT_FOUND"

    def __init__(self, transfer_id: int, client_id: Optional[int] = None):
        super().__init__(f"not found: transfer {transfer_id}", client_id, transfer_id)


class ClientMismatch(LedgerError):
    error_code = "CLIENT_MISMATCH"

    def __init__(self, transfer_id: int, client_id: int, owner_id: int):
        super().__init__(
            f"client mismatch: transfer {transfer_id} belongs to client {owner_id}, not {client_id}",
            client_id,
            transfer_id,
        )
        self.owner_id = owner_id


class RowError(ValueError):
    """Raised by the CSV adapter for rows that cannot become an Action."""

    error_code = "INVALID_ROW"


class BadActionKind(RowError):
    error_code = "BAD_ACTION_KIND"

    def __init__(self, kind: str):
        super().__init__(f"bad action kind: {kind}")
        self.kind = kind


class MissingAmount(RowError):
    error_code = "MISSING_AMOUNT"

    def __init__(self, kind: str):
        super().__init__(f"missing amount for action {kind}")
        self.kind = kind


class InvalidAmount(RowError):
    error_code = "INVALID_AMOUNT"

    def __init__(self, value: float):
        super().__init__(f"invalid amount {value}")
        self.value = value
