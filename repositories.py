from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Tuple

from errors import TransferConflict
from models import Access, ClientAccount, TransferRecord


class ClientLedger(ABC):
    @abstractmethod
    def get_or_create(self, client_id: int) -> ClientAccount:
        """Get the live account, creating a default one on first reference."""
        pass

    @abstractmethod
    def snapshot(self) -> Iterator[Tuple[int, ClientAccount]]:
        """Iterate accounts in the order their clients were first referenced."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        pass

    @staticmethod
    def is_locked(account: ClientAccount) -> bool:
        return account.access == Access.locked


class TransferLedger(ABC):
    @abstractmethod
    def insert_if_absent(self, transfer_id: int, record: TransferRecord) -> None:
        """Store a new transfer. Raises TransferConflict if the id is taken."""
        pass

    @abstractmethod
    def get_mut(self, transfer_id: int) -> Optional[TransferRecord]:
        """Get the live transfer record, or None if it was never stored."""
        pass

    @abstractmethod
    def get_transfers_count(self) -> int:
        pass


class InMemoryClientLedger(ClientLedger):
    def __init__(self):
        # dicts keep insertion order, which is the report order
        self.accounts: Dict[int, ClientAccount] = {}

    def get_or_create(self, client_id: int) -> ClientAccount:
        account = self.accounts.get(client_id)
        if account is None:
            account = ClientAccount()
            self.accounts[client_id] = account
        return account

    def snapshot(self) -> Iterator[Tuple[int, ClientAccount]]:
        return iter(self.accounts.items())

    def get_accounts_count(self) -> int:
        return len(self.accounts)


class InMemoryTransferLedger(TransferLedger):
    def __init__(self):
        self.transfers: Dict[int, TransferRecord] = {}

    def insert_if_absent(self, transfer_id: int, record: TransferRecord) -> None:
        if transfer_id in self.transfers:
            raise TransferConflict(
                transfer_id,
                "transfer exists",
                "a transfer already exists with this id",
                client_id=record.client_id,
            )
        self.transfers[transfer_id] = record

    def get_mut(self, transfer_id: int) -> Optional[TransferRecord]:
        return self.transfers.get(transfer_id)

    def get_transfers_count(self) -> int:
        return len(self.transfers)
