"""
Smoke and Concurrency Script

Walks the sign-up / sign-in / checkout / status flow against a running
server, then fires a burst of concurrent guest orders.
Run from project root: python scripts/smoke.py
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from typing import Any

import httpx

# Configuration
API_BASE_URL = "http://localhost:3000"
TOTAL_ORDERS = 50

MENU_ITEMS = [
    {"foodName": "Burger", "foodPrice": 5.0},
    {"foodName": "Veggie Wrap", "foodPrice": 6.5},
    {"foodName": "Fries", "foodPrice": 2.5},
    {"foodName": "Milkshake", "foodPrice": 3.75},
    {"foodName": "Caesar Salad", "foodPrice": 8.99},
]


def generate_order_payload(email: str, name: str = "Smoke Tester") -> dict[str, Any]:
    """Random order whose total matches its lines."""
    lines = []
    for item in random.sample(MENU_ITEMS, random.randint(1, 3)):
        lines.append({**item, "quantity": random.randint(1, 3)})
    total = round(sum(line["foodPrice"] * line["quantity"] for line in lines), 2)
    return {
        "userDetails": {"name": name, "email": email},
        "orderDetails": lines,
        "totalAmount": total,
        "paymentMethod": random.choice(["cash", "card"]),
    }


async def send_order(client: httpx.AsyncClient, order_num: int, email: str) -> dict[str, Any]:
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_BASE_URL}/orders",
            json=generate_order_payload(email),
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": response.status_code == 201,
            "error": None if response.status_code == 201 else response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def run_flow() -> bool:
    """Sign up, sign in, order, list, reject."""
    email = f"smoke-{uuid.uuid4().hex[:8]}@example.com"
    print("=" * 60)
    print("🧪 FLOW CHECK")
    print("=" * 60)

    async with httpx.AsyncClient(base_url=API_BASE_URL, timeout=30.0) as client:
        response = await client.post(
            "/signup", data={"name": "Smoke Tester", "email": email, "password": "pw1"}
        )
        print(f"1️⃣ Sign-up: {response.status_code}")
        if response.status_code != 201:
            print(f"   ❌ {response.text}")
            return False

        response = await client.post("/signin", json={"identifier": email, "secret": "pw1"})
        print(f"2️⃣ Sign-in: {response.status_code}")
        if response.status_code != 200:
            print(f"   ❌ {response.text}")
            return False
        headers = {"Authorization": f"Bearer {response.json()['token']}"}

        response = await client.post("/orders", json=generate_order_payload(email))
        print(f"3️⃣ Place order: {response.status_code}")
        if response.status_code != 201:
            print(f"   ❌ {response.text}")
            return False
        order_id = response.json()["order"]["id"]

        response = await client.get("/orders", headers=headers)
        print(f"4️⃣ My orders: {response.status_code} ({len(response.json())} found)")

        response = await client.put(f"/orders/{order_id}", json={"status": "Rejected"})
        print(f"5️⃣ Reject order #{order_id}: {response.status_code} -> {response.json().get('status')}")

        response = await client.post("/signin", json={"identifier": email, "secret": "wrong"})
        print(f"6️⃣ Wrong secret: {response.status_code} (expected 401)")

    return True


async def run_burst(num_orders: int) -> dict[str, Any]:
    """Concurrent guest checkouts."""
    email = f"burst-{uuid.uuid4().hex[:8]}@example.com"
    print("\n" + "=" * 60)
    print(f"🔥 BURST: {num_orders} concurrent orders -> {API_BASE_URL}")
    print("=" * 60)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        results = await asyncio.gather(
            *[send_order(client, i + 1, email) for i in range(num_orders)]
        )
    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")
    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"   Average Response: {avg_time}s")
    for f in failed[:5]:
        print(f"   Order #{f['order_num']}: {f['error']}")

    return {"total": num_orders, "successful": len(successful), "failed": len(failed)}


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Smoke and concurrency script")
    parser.add_argument("--base-url", default=API_BASE_URL, help="Server base URL")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of burst orders")
    parser.add_argument("--skip-flow", action="store_true", help="Skip the flow check")
    args = parser.parse_args()

    API_BASE_URL = args.base_url.rstrip("/")

    if not args.skip_flow and not asyncio.run(run_flow()):
        print("\n❌ Flow check failed.")
        sys.exit(1)

    summary = asyncio.run(run_burst(args.orders))
    sys.exit(0 if summary["failed"] == 0 else 1)
