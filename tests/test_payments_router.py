"""Unit tests for payment API routes."""

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

from fastapi import FastAPI
from fastapi.testclient import TestClient

from seedpay.api.dependencies import get_payment_service
from seedpay.api.routers.payments import router
from seedpay.application.dtos import PaymentResponseDTO
from seedpay.domain.entities import AddressKind, Network, PaymentState
from seedpay.domain.errors import AllocationExhausted, PaymentNotFoundError

ADDRESS = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"


class TestPaymentsRouter(unittest.TestCase):
    """Test cases for payments router."""

    def setUp(self):
        self.app = FastAPI()
        self.app.include_router(router, prefix="/api/v1")

        now = datetime.now(timezone.utc)
        self.payment_id = uuid4()
        self.payment_response = PaymentResponseDTO(
            id=self.payment_id,
            address=ADDRESS,
            derivation_path="m/84'/0'/0'/0/0",
            network=Network.MAINNET,
            address_kind=AddressKind.P2WPKH,
            expected_amount=150_000,
            observed_amount=0,
            excess_amount=0,
            state=PaymentState.AWAITING,
            needs_review=False,
            confirmations_required=3,
            confirmations_seen=0,
            expires_at=now + timedelta(hours=1),
            transactions=[],
            created_at=now,
            updated_at=None,
        )

        self.mock_service = AsyncMock()
        self.app.dependency_overrides[get_payment_service] = lambda: self.mock_service
        self.client = TestClient(self.app)

    def tearDown(self):
        self.app.dependency_overrides.clear()

    def test_request_payment_success(self):
        self.mock_service.request_payment.return_value = self.payment_response

        response = self.client.post(
            "/api/v1/payments/", json={"expected_amount": 150_000}
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["address"], ADDRESS)
        self.assertEqual(body["derivation_path"], "m/84'/0'/0'/0/0")
        self.assertEqual(body["state"], "awaiting")
        self.assertEqual(body["id"], str(self.payment_id))
        self.mock_service.request_payment.assert_called_once()

    def test_request_payment_rejects_non_positive_amount(self):
        response = self.client.post("/api/v1/payments/", json={"expected_amount": 0})

        self.assertEqual(response.status_code, 422)
        self.mock_service.request_payment.assert_not_called()

    def test_request_payment_rejects_unknown_network(self):
        response = self.client.post(
            "/api/v1/payments/",
            json={"expected_amount": 1000, "network": "regtest"},
        )

        self.assertEqual(response.status_code, 422)

    def test_request_payment_exhausted(self):
        self.mock_service.request_payment.side_effect = AllocationExhausted(
            "no addresses left"
        )

        response = self.client.post(
            "/api/v1/payments/", json={"expected_amount": 1000}
        )

        self.assertEqual(response.status_code, 503)
        self.assertIn("no addresses left", response.json()["detail"])

    def test_request_payment_value_error(self):
        self.mock_service.request_payment.side_effect = ValueError("bad account")

        response = self.client.post(
            "/api/v1/payments/", json={"expected_amount": 1000}
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "bad account")

    def test_request_payment_unexpected_error(self):
        self.mock_service.request_payment.side_effect = RuntimeError("redis down")

        response = self.client.post(
            "/api/v1/payments/", json={"expected_amount": 1000}
        )

        self.assertEqual(response.status_code, 500)
        self.assertIn("redis down", response.json()["detail"])

    def test_list_payments(self):
        self.mock_service.list_payments.return_value = [self.payment_response]

        response = self.client.get("/api/v1/payments/?skip=5&limit=10")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)
        self.mock_service.list_payments.assert_called_once_with(skip=5, limit=10)

    def test_list_payments_limit_bounds(self):
        response = self.client.get("/api/v1/payments/?limit=0")

        self.assertEqual(response.status_code, 422)

    def test_get_payment_success(self):
        self.mock_service.get_payment.return_value = self.payment_response

        response = self.client.get(f"/api/v1/payments/{self.payment_id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["expected_amount"], 150_000)
        self.mock_service.get_payment.assert_called_once_with(self.payment_id)

    def test_get_payment_not_found(self):
        self.mock_service.get_payment.side_effect = PaymentNotFoundError("missing")

        response = self.client.get(f"/api/v1/payments/{uuid4()}")

        self.assertEqual(response.status_code, 404)

    def test_get_payment_invalid_id(self):
        response = self.client.get("/api/v1/payments/not-a-uuid")

        self.assertEqual(response.status_code, 422)

    def test_get_payment_by_address(self):
        self.mock_service.get_payment_by_address.return_value = self.payment_response

        response = self.client.get(f"/api/v1/payments/by-address/{ADDRESS}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["address"], ADDRESS)
        self.mock_service.get_payment_by_address.assert_called_once_with(ADDRESS)

    def test_get_payment_by_unknown_address(self):
        self.mock_service.get_payment_by_address.return_value = None

        response = self.client.get("/api/v1/payments/by-address/bc1qunknown")

        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
