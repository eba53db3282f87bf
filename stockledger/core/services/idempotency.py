"""Idempotent replay of ledger operations inside their own transaction."""

from typing import TypeVar

from pydantic import BaseModel

from stockledger.core.exceptions import IdempotencyKeyConflictError
from stockledger.core.interfaces.ledger_store import ILedgerSession

M = TypeVar("M", bound=BaseModel)


async def replay(
    session: ILedgerSession,
    key: str | None,
    operation: str,
    model: type[M],
) -> M | None:
    """Stored result for `key`, or None when the key is new (or absent)."""
    if key is None:
        return None
    stored = await session.get_idempotent(key)
    if stored is None:
        return None
    existing_operation, response = stored
    if existing_operation != operation:
        raise IdempotencyKeyConflictError(key, operation, existing_operation)
    return model.model_validate_json(response)


async def remember(
    session: ILedgerSession,
    key: str | None,
    operation: str,
    result: BaseModel,
) -> None:
    """Store `result` under `key` in the same transaction as the mutation."""
    if key is not None:
        await session.put_idempotent(key, operation, result.model_dump_json())
