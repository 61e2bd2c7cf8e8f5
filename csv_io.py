import csv
import math
from decimal import Decimal
from typing import IO, Iterable, Iterator, Tuple, Union

import structlog
from pydantic import ValidationError

from errors import BadActionKind, InvalidAmount, LedgerError, MissingAmount, RowError
from models import Action, ClientAccount, Dispute, InputRow, OutputRow, ReplaySummary, Settle, SettleAction, Transfer
from services import ActionProcessor

logger = structlog.get_logger()

OUTPUT_FIELDS = ["client", "available", "held", "total", "locked"]


def row_to_action(row: InputRow) -> Action:
    """Map a validated input row onto an Action, or raise a RowError."""
    if row.kind in ("deposit", "withdrawal"):
        if row.amount is None:
            raise MissingAmount(row.kind)
        if not math.isfinite(row.amount) or row.amount < 0:
            raise InvalidAmount(row.amount)
        value = -row.amount if row.kind == "withdrawal" else row.amount
        kind = Transfer(value=value)
    elif row.kind == "dispute":
        kind = Dispute()
    elif row.kind == "resolve":
        kind = Settle(action=SettleAction.resolve)
    elif row.kind == "chargeback":
        kind = Settle(action=SettleAction.chargeback)
    else:
        raise BadActionKind(row.kind)

    return Action(client_id=row.client, transfer_id=row.tx, kind=kind)


def read_actions(stream: IO[str]) -> Iterator[Tuple[int, Union[Action, ValueError]]]:
    """Yield (row index, Action) pairs, or (row index, error) for unusable rows."""
    reader = csv.DictReader(stream, skipinitialspace=True)
    for index, raw in enumerate(reader):
        data = {
            (key or "").strip(): value.strip() if isinstance(value, str) else value
            for key, value in raw.items()
        }
        try:
            yield index, row_to_action(InputRow.model_validate(data))
        except (RowError, ValidationError) as e:
            yield index, e


def format_amount(value: float) -> str:
    """Render an amount as plain decimal text with at least one fractional digit."""
    text = repr(float(value))
    if not math.isfinite(value):
        return text
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if "." not in text:
        text += ".0"
    return text


def to_output_row(client_id: int, account: ClientAccount) -> OutputRow:
    return OutputRow(
        client=client_id,
        available=format_amount(account.available),
        held=format_amount(account.held),
        total=format_amount(account.total),
        locked=account.locked,
    )


def write_report(stream: IO[str], accounts: Iterable[Tuple[int, ClientAccount]]) -> int:
    """Write one CSV row per account, in the given order. Returns rows written."""
    writer = csv.DictWriter(stream, fieldnames=OUTPUT_FIELDS, lineterminator="\n")
    writer.writeheader()
    count = 0
    for client_id, account in accounts:
        row = to_output_row(client_id, account).model_dump()
        row["locked"] = "true" if row["locked"] else "false"
        writer.writerow(row)
        count += 1
    return count


def replay(stream: IO[str], processor: ActionProcessor, stop_on_error: bool = False) -> ReplaySummary:
    """Feed every row of a CSV stream to the processor, in input order.

    Invalid rows are skipped and rejected actions are counted; with
    stop_on_error the first rejected action is re-raised instead.
    """
    summary = ReplaySummary()

    for index, item in read_actions(stream):
        if isinstance(item, ValueError):
            logger.warning("Action invalid", index=index, error=str(item))
            summary.skipped += 1
            continue

        try:
            processor.apply(item)
        except LedgerError as e:
            logger.warning(
                "Action not applied",
                index=index,
                error=str(e),
                error_code=e.error_code,
                client_id=e.client_id,
                transfer_id=e.transfer_id,
            )
            if stop_on_error:
                raise
            summary.rejected += 1
            continue

        summary.applied += 1

    summary.clients_count = processor.client_ledger.get_accounts_count()
    summary.transfers_count = processor.transfer_ledger.get_transfers_count()
    return summary
