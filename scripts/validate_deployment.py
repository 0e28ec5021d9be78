"""
Pre-Deploy and Smoke Test Script.

Runs the application in-process against the configured database and
executes a full ledger smoke test:
1. Health Check
2. Work Analytics Check
3. Client -> Work -> Edit -> Balance Validation -> Cleanup
"""

import sys
import uuid
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi.testclient import TestClient
from backend.app.main import app


def print_step(step, msg):
    print(f"[{step}] {msg}")

def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)

def success(msg):
    print(f"✅ {msg}")

def smoke_phone():
    """Unique mobile number so repeated runs do not collide."""
    return "9" + str(uuid.uuid4().int)[:9]

def main():
    print("🚀 Starting Deployment Validation...")

    # Entering the context runs the lifespan (logging + table creation)
    with TestClient(app) as client:
        # 1. Health Check
        print_step("PRE-DEPLOY", "Checking /health...")
        response = client.get("/health")
        if response.status_code != 200:
            fail(f"Health check failed: {response.status_code} {response.text}")
        success("Health check passed")

        # 2. Analytics (read-only query path)
        print_step("VERIFY", "Checking Work Analytics...")
        res = client.get("/v1/analytics/works")
        if res.status_code != 200:
            fail(f"Work analytics failed: {res.status_code} {res.text}")
        success(f"Work Stats: {res.json()}")

        # 3. Smoke Test: Ledger Flow
        print_step("SMOKE", "Running Client -> Work -> Balance Flow...")
        res = client.post("/v1/clients", json={
            "name": "Deploy Smoke Client",
            "phone": smoke_phone(),
            "address": "Smoke Test Street, Kolkata 700001",
        })
        if res.status_code != 201:
            fail(f"Client creation failed: {res.status_code} {res.text}")
        client_id = res.json()["id"]

        res = client.post("/v1/works", json={
            "client_id": client_id,
            "total_price": 1000,
            "paid_amount": 200,
            "work_types": ["others"],
            "description": "Deployment smoke test work",
            "transaction_date": "2025-01-01",
        })
        if res.status_code != 201:
            fail(f"Work creation failed: {res.status_code} {res.text}")
        work_id = res.json()["id"]

        res = client.patch(f"/v1/works/{work_id}", json={"paid_amount": 1000})
        if res.status_code != 200 or res.json()["payment_status"] != "paid":
            fail(f"Work update failed: {res.status_code} {res.text}")

        validation = client.get(f"/v1/clients/{client_id}/balance/validate").json()
        if not validation["is_consistent"] or validation["stored_balance"] != 0:
            fail(f"Ledger inconsistent after smoke flow: {validation}")
        success("Balance follows work transactions")

        history = client.get(f"/v1/clients/{client_id}/balance/history").json()
        if history["total"] != 2:
            fail(f"Expected 2 history entries, found {history['total']}")
        success("Balance history recorded")

        # Cleanup. History entries stay.
        client.delete(f"/v1/works/{work_id}")
        res = client.delete(f"/v1/clients/{client_id}")
        if res.status_code != 204:
            fail(f"Cleanup failed: {res.status_code} {res.text}")

    success("Deployment Validation Passed!")

if __name__ == "__main__":
    main()
