"""Payment request and lookup routes."""

from __future__ import annotations

import logging
import time
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from prometheus_client import Counter, Histogram

from ...application.dtos import CreatePaymentDTO, PaymentResponseDTO
from ...application.use_cases.payment import PaymentService
from ...domain.errors import AllocationExhausted, PaymentNotFoundError
from ..dependencies import get_payment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


payment_requests_total = Counter(
    "payment_requests_total",
    "Total payment address requests processed",
    ["status"],
)

payment_request_duration_seconds = Histogram(
    "payment_request_duration_seconds",
    "Wall time to allocate an address and record a payment",
    ["status"],
)


def _observe(status_label: str, start_time: float) -> None:
    payment_requests_total.labels(status=status_label).inc()
    payment_request_duration_seconds.labels(status=status_label).observe(
        time.perf_counter() - start_time
    )


@router.post(
    "/",
    response_model=PaymentResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def request_payment(
    payment_data: CreatePaymentDTO,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponseDTO:
    """Allocate a fresh receiving address for an order."""
    start_time = time.perf_counter()
    try:
        result = await payment_service.request_payment(payment_data)
        _observe("success", start_time)
        return result
    except AllocationExhausted as e:
        _observe("exhausted", start_time)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except ValueError as e:
        _observe("client_error", start_time)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        _observe("server_error", start_time)
        logger.exception("Failed to create payment")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create payment: {str(e)}",
        )


@router.get("/", response_model=List[PaymentResponseDTO])
async def list_payments(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    payment_service: PaymentService = Depends(get_payment_service),
) -> List[PaymentResponseDTO]:
    return await payment_service.list_payments(skip=skip, limit=limit)


@router.get("/by-address/{address}", response_model=PaymentResponseDTO)
async def get_payment_by_address(
    address: str = Path(..., description="Receiving address"),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponseDTO:
    result = await payment_service.get_payment_by_address(address)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No payment for address {address}",
        )
    return result


@router.get("/{payment_id}", response_model=PaymentResponseDTO)
async def get_payment(
    payment_id: UUID,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponseDTO:
    try:
        return await payment_service.get_payment(payment_id)
    except PaymentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
