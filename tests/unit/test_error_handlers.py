"""Unit tests for the application-level finance error handler."""

import json
from decimal import Decimal

import pytest
from starlette.requests import Request

from schoolms.core.exceptions import InvalidAmountError, OverpaymentError
from schoolms.main import finance_exception_handler


def _request(path="/api/v1/finance/payments"):
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": path,
            "query_string": b"",
            "headers": [],
            "scheme": "http",
            "server": ("test", 80),
        }
    )


@pytest.mark.asyncio
async def test_invalid_amount_maps_to_400_with_code():
    response = await finance_exception_handler(_request(), InvalidAmountError(Decimal("-5")))

    assert response.status_code == 400
    body = json.loads(response.body)
    assert body["success"] is False
    assert body["error"]["code"] == "INVALID_AMOUNT"
    assert "-5" in body["error"]["message"]


@pytest.mark.asyncio
async def test_overpayment_code():
    response = await finance_exception_handler(_request(), OverpaymentError("Amount exceeds pending balance"))

    body = json.loads(response.body)
    assert body["error"] == {"code": "OVERPAYMENT", "message": "Amount exceeds pending balance"}
