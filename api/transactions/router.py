"""
Admin transaction endpoints.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from auth import dependencies as auth_dependencies
from core import responses

from . import schemas, service

router = APIRouter(prefix="/api/admin/transactions")


@router.get("")
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    user_id: int | None = Query(default=None),
    shop_id: int | None = Query(default=None),
    status: schemas.TransactionStatus | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    _: dict = Depends(auth_dependencies.require_permission("transactions.view")),
) -> dict:
    return await service.list_transactions(
        page=page,
        limit=limit,
        user_id=user_id,
        shop_id=shop_id,
        status_filter=status,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", status_code=201)
async def record_transaction(
    payload: schemas.RecordTransactionRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("transactions.create")),
) -> dict:
    result = await service.record(payload, admin_id=int(current_admin["id"]))
    return responses.success(result, "Transaction recorded successfully")


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: int,
    _: dict = Depends(auth_dependencies.require_permission("transactions.view")),
) -> dict:
    return responses.success(await service.get_transaction(transaction_id))


@router.put("/{transaction_id}/status")
async def change_status(
    transaction_id: int,
    payload: schemas.StatusChangeRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("transactions.update")),
) -> dict:
    transaction = await service.change_status(transaction_id, payload, admin_id=int(current_admin["id"]))
    return responses.success(transaction, "Transaction status updated")
