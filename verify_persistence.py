import time
import subprocess
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

CLIENT_PAYLOAD = {
    "name": "Persistence Check",
    "phone": "9000000001",
    "address": "1 Verification Lane, Kolkata 700001",
    "usual_work_types": ["others"],
}

def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False

def start_server(env=None):
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env or os.environ.copy()
    )

def find_client_id():
    resp = httpx.get(f"{BASE_URL}{API_PREFIX}/clients", params={"page_size": 100})
    for client in resp.json()["clients"]:
        if client["phone"] == CLIENT_PAYLOAD["phone"]:
            return client["id"]
    return None

def run_verification():
    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server({**os.environ, "DB_ECHO": "True"})

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Create client and a work transaction
        print("\n--- [Step 2] Recording Work (Persistence Test) ---")
        client_id = find_client_id()
        if client_id:
            print("⚠️ Client already exists (persistence working from previous run?)")
        else:
            resp = httpx.post(f"{BASE_URL}{API_PREFIX}/clients", json=CLIENT_PAYLOAD)
            if resp.status_code != 201:
                print(f"❌ Client creation failed: {resp.status_code} {resp.text}")
                raise Exception("Client creation failed")
            client_id = resp.json()["id"]

        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/works", json={
            "client_id": client_id,
            "total_price": 1000,
            "paid_amount": 200,
            "work_types": ["others"],
            "description": "Persistence verification work",
            "transaction_date": "2025-01-01",
        })
        if resp.status_code != 201:
            print(f"❌ Work creation failed: {resp.status_code} {resp.text}")
            raise Exception("Work creation failed")
        balance_before = httpx.get(f"{BASE_URL}{API_PREFIX}/clients/{client_id}/balance").json()["balance"]
        print(f"✅ Work recorded, balance is {balance_before}")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        proc.send_signal(signal.SIGTERM)
        proc.wait()

    time.sleep(2) # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        # 4. Balance, history and consistency survive the restart
        print("\n--- [Step 5] Checking Ledger (Post-Restart) ---")
        balance_after = httpx.get(f"{BASE_URL}{API_PREFIX}/clients/{client_id}/balance").json()["balance"]
        if balance_after != balance_before:
            print(f"❌ Balance changed across restart: {balance_before} -> {balance_after}")
            raise Exception("Balance not persisted")
        print(f"✅ Balance persisted ({balance_after})")

        history = httpx.get(f"{BASE_URL}{API_PREFIX}/clients/{client_id}/balance/history").json()
        print(f"✅ {history['total']} history entries persisted")

        validation = httpx.get(f"{BASE_URL}{API_PREFIX}/clients/{client_id}/balance/validate").json()
        if validation["is_consistent"]:
            print("✅ Stored balance matches work transactions")
        else:
            print(f"❌ Balance drift: {validation}")

    finally:
        print("\n--- [Step 6] Stopping Server ---")
        proc2.send_signal(signal.SIGTERM)
        proc2.wait()

if __name__ == "__main__":
    run_verification()
