"""End-to-end tests of the assembled application over the in-memory store."""

import hashlib
import hmac
import json
import unittest

from fastapi.testclient import TestClient

from seedpay.api.app import create_app
from seedpay.envs.engine_env import Settings
from tests.conftest import TEST_MNEMONIC
from tests.fixtures import FakeChainSource, InMemoryKeyValueStore

FIRST_ADDRESS = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
SECOND_ADDRESS = "bc1qnjg0jd8228aq7egyzacy8cys3knf9xvrerkf9g"


class TestPaymentEngineApp(unittest.TestCase):
    """Request, push, and look up payments through the HTTP surface."""

    def setUp(self):
        self.settings = Settings(mnemonic=TEST_MNEMONIC, confirmations_required=2)
        self.app = create_app(self.settings, store=InMemoryKeyValueStore())

    def _notify(self, client, address, confirmations, value=150_000):
        return client.post(
            "/api/v1/webhooks/chain",
            json={
                "address": address,
                "tx_hash": "cd" * 32,
                "value": value,
                "confirmations": confirmations,
            },
        )

    def test_health_and_root(self):
        with TestClient(self.app) as client:
            health = client.get("/health")
            root = client.get("/")

        self.assertEqual(health.status_code, 200)
        self.assertEqual(health.json()["status"], "healthy")
        self.assertEqual(health.json()["network"], "mainnet")
        self.assertEqual(root.json()["docs"], "/docs")

    def test_addresses_follow_the_derivation_sequence(self):
        with TestClient(self.app) as client:
            first = client.post("/api/v1/payments/", json={"expected_amount": 1000})
            second = client.post("/api/v1/payments/", json={"expected_amount": 2000})

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.json()["address"], FIRST_ADDRESS)
        self.assertEqual(first.json()["derivation_path"], "m/84'/0'/0'/0/0")
        self.assertEqual(second.json()["address"], SECOND_ADDRESS)
        self.assertEqual(second.json()["confirmations_required"], 2)

    def test_pushed_confirmations_settle_payment(self):
        with TestClient(self.app) as client:
            created = client.post(
                "/api/v1/payments/", json={"expected_amount": 150_000}
            ).json()

            detected = self._notify(client, created["address"], 0)
            settled = self._notify(client, created["address"], 2)
            by_id = client.get(f"/api/v1/payments/{created['id']}")
            by_address = client.get(
                f"/api/v1/payments/by-address/{created['address']}"
            )

        self.assertEqual(detected.json()["state"], "detected")
        self.assertEqual(settled.json()["status"], "accepted")
        self.assertEqual(settled.json()["state"], "confirmed")
        self.assertEqual(by_id.json()["state"], "confirmed")
        self.assertEqual(by_id.json()["observed_amount"], 150_000)
        self.assertEqual(by_id.json()["confirmations_seen"], 2)
        self.assertEqual(by_address.json()["id"], created["id"])

    def test_overpayment_reports_excess(self):
        with TestClient(self.app) as client:
            created = client.post(
                "/api/v1/payments/", json={"expected_amount": 100_000}
            ).json()
            self._notify(client, created["address"], 2, value=120_000)
            payment = client.get(f"/api/v1/payments/{created['id']}").json()

        self.assertEqual(payment["state"], "confirmed")
        self.assertEqual(payment["excess_amount"], 20_000)

    def test_notification_for_foreign_address_is_ignored(self):
        with TestClient(self.app) as client:
            response = self._notify(client, "bc1qnotours", 1)

        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["status"], "ignored")

    def test_unknown_payment_and_address(self):
        with TestClient(self.app) as client:
            by_address = client.get("/api/v1/payments/by-address/bc1qnotours")
            listing = client.get("/api/v1/payments/")

        self.assertEqual(by_address.status_code, 404)
        self.assertEqual(listing.json(), [])

    def test_xpub_export(self):
        with TestClient(self.app) as client:
            response = client.get("/api/v1/wallet/accounts/0/xpub")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["xpub"].startswith("xpub"))

    def test_metrics_endpoint(self):
        with TestClient(self.app) as client:
            client.post("/api/v1/payments/", json={"expected_amount": 1000})
            response = client.get("/metrics/")

        self.assertEqual(response.status_code, 200)
        self.assertIn("payment_requests_total", response.text)


class TestSignedWebhooks(unittest.TestCase):
    def test_signature_required_when_secret_configured(self):
        settings = Settings(mnemonic=TEST_MNEMONIC, webhook_secret="s3cret")
        app = create_app(settings, store=InMemoryKeyValueStore())
        body = json.dumps(
            {
                "address": FIRST_ADDRESS,
                "tx_hash": "ef" * 32,
                "value": 1,
                "confirmations": 0,
            }
        ).encode("utf-8")
        signature = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()

        with TestClient(app) as client:
            unsigned = client.post("/api/v1/webhooks/chain", content=body)
            signed = client.post(
                "/api/v1/webhooks/chain",
                content=body,
                headers={"X-Webhook-Signature": signature},
            )

        self.assertEqual(unsigned.status_code, 401)
        self.assertEqual(signed.status_code, 202)


class TestPollerLifecycle(unittest.TestCase):
    def test_chain_source_is_closed_on_shutdown(self):
        source = FakeChainSource()
        settings = Settings(mnemonic=TEST_MNEMONIC, poll_interval_seconds=0.05)
        app = create_app(settings, store=InMemoryKeyValueStore(), chain_source=source)

        with TestClient(app) as client:
            self.assertEqual(client.get("/health").status_code, 200)

        self.assertTrue(source.closed)


if __name__ == "__main__":
    unittest.main()
