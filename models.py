from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum
from typing import Annotated, Literal, Optional, Union


ClientId = Annotated[int, Field(ge=0, le=0xFFFF, description="16-bit client identifier")]
TransferId = Annotated[int, Field(ge=0, le=0xFFFFFFFF, description="32-bit transfer identifier")]


class Access(str, Enum):
    active = "active"
    locked = "locked"


class TransferStatus(str, Enum):
    transferred = "transferred"
    disputed = "disputed"
    # terminal
    chargebacked = "chargebacked"


class SettleAction(str, Enum):
    resolve = "resolve"
    chargeback = "chargeback"


class ClientAccount(BaseModel):
    total: float = Field(0.0, description="Total funds, held included")
    held: float = Field(0.0, description="Funds held by open disputes")
    access: Access = Field(Access.active, description="Account access state")

    @property
    def available(self) -> float:
        return self.total - self.held

    @property
    def locked(self) -> bool:
        return self.access == Access.locked


class TransferRecord(BaseModel):
    value: float = Field(..., description="Signed amount: positive deposit, negative withdrawal")
    status: TransferStatus = Field(TransferStatus.transferred, description="Dispute status")
    client_id: ClientId = Field(..., description="Client who made the transfer")


class Transfer(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["transfer"] = "transfer"
    value: float


class Dispute(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["dispute"] = "dispute"


class Settle(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["settle"] = "settle"
    action: SettleAction


ActionKind = Annotated[Union[Transfer, Dispute, Settle], Field(discriminator="type")]


class Action(BaseModel):
    """A single ledger action, already validated by the input adapter."""

    model_config = ConfigDict(frozen=True)

    client_id: ClientId
    transfer_id: TransferId
    kind: ActionKind

    @classmethod
    def deposit(cls, client_id: int, transfer_id: int, amount: float) -> "Action":
        return cls(client_id=client_id, transfer_id=transfer_id, kind=Transfer(value=amount))

    @classmethod
    def withdrawal(cls, client_id: int, transfer_id: int, amount: float) -> "Action":
        return cls(client_id=client_id, transfer_id=transfer_id, kind=Transfer(value=-amount))

    @classmethod
    def dispute(cls, client_id: int, transfer_id: int) -> "Action":
        return cls(client_id=client_id, transfer_id=transfer_id, kind=Dispute())

    @classmethod
    def resolve(cls, client_id: int, transfer_id: int) -> "Action":
        return cls(
            client_id=client_id,
            transfer_id=transfer_id,
            kind=Settle(action=SettleAction.resolve),
        )

    @classmethod
    def chargeback(cls, client_id: int, transfer_id: int) -> "Action":
        return cls(
            client_id=client_id,
            transfer_id=transfer_id,
            kind=Settle(action=SettleAction.chargeback),
        )


class ReplaySummary(BaseModel):
    applied: int = Field(0, description="Actions applied to the ledger")
    rejected: int = Field(0, description="Actions rejected by a ledger rule")
    skipped: int = Field(0, description="Input rows that never became an action")
    clients_count: int = Field(0, description="Client accounts in the ledger")
    transfers_count: int = Field(0, description="Transfers recorded in the ledger")


class InputRow(BaseModel):
    """One raw CSV row, before it is mapped onto an Action."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(..., alias="type", description="deposit, withdrawal, dispute, resolve or chargeback")
    client: ClientId
    tx: TransferId
    amount: Optional[float] = Field(None, description="Required for deposits and withdrawals")

    @field_validator("kind")
    @classmethod
    def normalize_kind(cls, v):
        return v.strip()

    @field_validator("amount", mode="before")
    @classmethod
    def empty_amount_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class OutputRow(BaseModel):
    client: ClientId
    available: str
    held: str
    total: str
    locked: bool
