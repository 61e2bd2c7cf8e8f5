import threading
from typing import Iterator, Optional, Tuple

import structlog

from errors import ClientLocked, ClientMismatch, InsufficientFunds, TransferConflict, TransferNotFound
from models import (
    Access,
    Action,
    ClientAccount,
    Dispute,
    Settle,
    SettleAction,
    Transfer,
    TransferRecord,
    TransferStatus,
)
from repositories import ClientLedger, InMemoryClientLedger, InMemoryTransferLedger, TransferLedger

logger = structlog.get_logger()


class ActionProcessor:
    """Validates and applies ledger actions one at a time.

    The processor owns both ledgers for the lifetime of a run. It is not
    thread-safe; wrap it in a SynchronizedActionProcessor when several
    threads feed actions.
    """

    def __init__(
        self,
        client_ledger: ClientLedger,
        transfer_ledger: TransferLedger,
        verify_transfer_owner: bool = True,
    ):
        self.client_ledger = client_ledger
        self.transfer_ledger = transfer_ledger
        self.verify_transfer_owner = verify_transfer_owner

    def apply(self, action: Action) -> None:
        """Apply one action, raising a LedgerError if any rule rejects it."""
        client_id = action.client_id
        transfer_id = action.transfer_id

        # The account stays materialized even if the action is rejected below.
        account = self.client_ledger.get_or_create(client_id)
        if self.client_ledger.is_locked(account):
            raise ClientLocked(client_id, transfer_id)

        kind = action.kind
        if isinstance(kind, Transfer):
            self._apply_transfer(action, account, kind.value)
        elif isinstance(kind, Dispute):
            self._apply_dispute(action, account)
        elif isinstance(kind, Settle):
            self._apply_settle(action, account, kind.action)
        else:
            raise TypeError(f"Unsupported action kind: {kind!r}")

    def snapshot(self) -> Iterator[Tuple[int, ClientAccount]]:
        return self.client_ledger.snapshot()

    def _apply_transfer(self, action: Action, account: ClientAccount, value: float) -> None:
        if value < 0 and account.available + value < 0:
            raise InsufficientFunds(action.client_id, action.transfer_id)

        self.transfer_ledger.insert_if_absent(
            action.transfer_id,
            TransferRecord(value=value, status=TransferStatus.transferred, client_id=action.client_id),
        )
        account.total += value

        logger.debug(
            "Transfer applied",
            client_id=action.client_id,
            transfer_id=action.transfer_id,
            value=value,
            total=account.total,
        )

    def _apply_dispute(self, action: Action, account: ClientAccount) -> None:
        transfer = self._get_owned_transfer(action)
        if transfer.status != TransferStatus.transferred:
            raise TransferConflict(
                action.transfer_id,
                "disputed non-transferred transfer",
                f"transfer should be transferred, found: {transfer.status.value}",
                client_id=action.client_id,
            )

        transfer.status = TransferStatus.disputed
        # For a disputed withdrawal the value is negative, so held goes down.
        account.held += transfer.value

        logger.debug(
            "Transfer disputed",
            client_id=action.client_id,
            transfer_id=action.transfer_id,
            held=account.held,
        )

    def _apply_settle(self, action: Action, account: ClientAccount, settle_action: SettleAction) -> None:
        transfer = self._get_owned_transfer(action)
        if transfer.status != TransferStatus.disputed:
            raise TransferConflict(
                action.transfer_id,
                "settled non-disputed transfer",
                f"transfer should be disputed, found: {transfer.status.value}",
                client_id=action.client_id,
            )

        if settle_action == SettleAction.resolve:
            transfer.status = TransferStatus.transferred
            account.held -= transfer.value
        elif settle_action == SettleAction.chargeback:
            transfer.status = TransferStatus.chargebacked
            account.held -= transfer.value
            account.total -= transfer.value
            account.access = Access.locked
        else:
            raise TypeError(f"Unsupported settle action: {settle_action!r}")

        logger.debug(
            "Transfer settled",
            client_id=action.client_id,
            transfer_id=action.transfer_id,
            settle_action=settle_action.value,
            held=account.held,
            total=account.total,
            locked=account.locked,
        )

    def _get_owned_transfer(self, action: Action) -> TransferRecord:
        transfer = self.transfer_ledger.get_mut(action.transfer_id)
        if transfer is None:
            raise TransferNotFound(action.transfer_id, client_id=action.client_id)
        if self.verify_transfer_owner and transfer.client_id != action.client_id:
            raise ClientMismatch(action.transfer_id, action.client_id, transfer.client_id)
        return transfer


class SynchronizedActionProcessor:
    """Serializes every call into one ActionProcessor behind a single lock."""

    def __init__(self, processor: ActionProcessor):
        self.processor = processor
        self._lock = threading.Lock()

    def apply(self, action: Action) -> None:
        with self._lock:
            self.processor.apply(action)

    def snapshot(self) -> Iterator[Tuple[int, ClientAccount]]:
        with self._lock:
            accounts = [(client_id, account.model_copy()) for client_id, account in self.processor.snapshot()]
        return iter(accounts)


# Factory function for dependency injection
def get_action_processor(
    client_ledger: Optional[ClientLedger] = None,
    transfer_ledger: Optional[TransferLedger] = None,
    verify_transfer_owner: bool = True,
) -> ActionProcessor:
    return ActionProcessor(
        client_ledger if client_ledger is not None else InMemoryClientLedger(),
        transfer_ledger if transfer_ledger is not None else InMemoryTransferLedger(),
        verify_transfer_owner=verify_transfer_owner,
    )
