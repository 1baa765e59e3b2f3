import time
import subprocess
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

PARENT = {
    "email": "persist_parent@test.com",
    "username": "persist_parent",
    "password": "securePassword123",
    "full_name": "Persistence Parent",
}
TOP_UP = "25.000"


def start_server(echo=False):
    env = {**os.environ, "DB_ECHO": "True"} if echo else None
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


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


def login():
    resp = httpx.post(
        f"{BASE_URL}{API_PREFIX}/auth/login",
        json={"username": PARENT["username"], "password": PARENT["password"]}
    )
    if resp.status_code != 200:
        raise Exception(f"Login failed: {resp.status_code} {resp.text}")
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def run_verification():
    # 1. First run: register a parent and top up the wallet
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        print("\n--- [Step 2] Registering Parent ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/auth/register", json=PARENT)
        if resp.status_code == 400 and "already registered" in resp.text:
            print("⚠️ Parent already exists (persistence working from previous run?)")
        elif resp.status_code == 201:
            print("✅ Parent Registered Successfully")
        else:
            raise Exception(f"Registration failed: {resp.status_code} {resp.text}")

        headers = login()
        before = httpx.get(f"{BASE_URL}{API_PREFIX}/wallet", headers=headers).json()["balance"]

        print("\n--- [Step 3] Topping Up Wallet ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/wallet/top-up", json={"amount": TOP_UP}, headers=headers)
        if resp.status_code != 201:
            raise Exception(f"Top-up failed: {resp.status_code} {resp.text}")
        expected = resp.json()["balance_after"]
        print(f"✅ Balance {before} -> {expected}")

    finally:
        print("\n--- [Step 4] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # Wait for port release

    # 2. Second run: the balance and its ledger entry must have survived
    print("\n--- [Step 5] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        headers = login()
        balance = httpx.get(f"{BASE_URL}{API_PREFIX}/wallet", headers=headers).json()["balance"]
        if balance != expected:
            raise Exception(f"Balance not persisted: expected {expected}, got {balance}")
        print(f"✅ Balance persisted: {balance}")

        history = httpx.get(f"{BASE_URL}{API_PREFIX}/wallet/transactions", headers=headers).json()
        latest = history["transactions"][0]
        if latest["balance_after"] != expected:
            raise Exception(f"Ledger entry mismatch: {latest}")
        print(f"✅ Ledger entry persisted ({history['total']} entries)")

    finally:
        print("\n--- [Step 6] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()
