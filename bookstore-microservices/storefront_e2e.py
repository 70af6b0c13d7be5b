#!/usr/bin/env python3
"""
Bookstore - E2E checkout checks against a running backend

Run:
  uvicorn backend_service.app.main:app --port 8000
  python storefront_e2e.py

Optional env:
  BACKEND_URL=http://localhost:8000
  HEALTH_TIMEOUT=30
  DEBUG=1
"""

import os
import sys
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List

from storefront.app.backend import BackendClient
from storefront.app.cart import CartStore
from storefront.app.errors import InsufficientStock, StorefrontError
from storefront.app.models import ShippingAddress
from storefront.app.orders import OrderWorkflow
from storefront.app.seller import SellerCatalog
from storefront.app.session import AuthSession

RESET = "\033[0m"
BOLD = "\033[1m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"

BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")
HEALTH_TIMEOUT = int(os.getenv("HEALTH_TIMEOUT", "30"))
DEBUG = os.getenv("DEBUG", "0").strip().lower() in {"1", "true", "yes"}

PASSWORD = "e2e-secret"
ADDRESS = ShippingAddress(address="221B Baker Street", phone_no="555-0199")
RUN_ID = uuid.uuid4().hex[:8]


def info(msg: str):
    print(f"{CYAN}i {msg}{RESET}")


def ok(msg: str):
    print(f"{GREEN}+ {msg}{RESET}")


def fail(msg: str):
    print(f"{RED}x {msg}{RESET}")


def heading(text: str):
    print(f"\n{BOLD}== {text} =={RESET}")


@dataclass
class CheckResult:
    name: str
    success: bool
    details: str = ""
    scenario: str = ""


def check(results: List[CheckResult], scenario: str, name: str, success: bool, details: str):
    (ok if success else fail)(f"{name}: {details}")
    results.append(CheckResult(name, success, details, scenario))


def wait_for_health(client: BackendClient) -> bool:
    start = time.time()
    while time.time() - start < HEALTH_TIMEOUT:
        try:
            client.health()
            ok("backend is healthy.")
            return True
        except StorefrontError as e:
            if DEBUG:
                print(f"backend not ready: {e}")
        time.sleep(1)
    fail(f"backend did not become healthy in {HEALTH_TIMEOUT} seconds.")
    return False


def new_session(role: str, tag: str) -> AuthSession:
    session = AuthSession(BackendClient(BACKEND_URL), storage_path=None)
    session.sign_up(f"{role}-{tag}-{RUN_ID}@bookstore.io", PASSWORD, f"E2E {role} {tag}", role)
    return session


def stock_of(client: BackendClient, book_id: int) -> int:
    return client.get_book(book_id)["stock"]


# --- Scenarios ---
def scenario_happy_path() -> List[CheckResult]:
    scenario = "Scenario 1 - Two books, enough stock"
    heading(scenario)
    results: List[CheckResult] = []

    seller = new_session("seller", "s1")
    buyer = new_session("buyer", "s1")
    catalog = SellerCatalog(seller.client, seller)
    a = catalog.add_book(f"A {RUN_ID}", 10.00, 5)
    b = catalog.add_book(f"B {RUN_ID}", 5.00, 3)

    cart = CartStore(buyer.client, buyer)
    cart.add(a.id, 2)
    cart.add(b.id, 1)
    info(f"cart total {cart.total:.2f}")

    result = OrderWorkflow(buyer.client, buyer, cart).place_order(buyer.user.id, cart.items, ADDRESS, cart.total)
    order = buyer.client.get_order(result.order_id)

    check(results, scenario, "Order row", order["total_price"] == 25.00 and order["status"] == "Pending",
          f"total={order['total_price']} status={order['status']}")
    check(results, scenario, "Order items", len(order["order_items"]) == 2, f"{len(order['order_items'])} items")
    check(results, scenario, "Stock A", stock_of(buyer.client, a.id) == 3, f"stock={stock_of(buyer.client, a.id)}")
    check(results, scenario, "Stock B", stock_of(buyer.client, b.id) == 2, f"stock={stock_of(buyer.client, b.id)}")
    check(results, scenario, "Cart emptied", buyer.client.list_cart() == [], f"{len(buyer.client.list_cart())} rows left")
    return results


def scenario_insufficient_stock() -> List[CheckResult]:
    scenario = "Scenario 2 - Stock dropped after carting"
    heading(scenario)
    results: List[CheckResult] = []

    seller = new_session("seller", "s2")
    buyer = new_session("buyer", "s2")
    catalog = SellerCatalog(seller.client, seller)
    c = catalog.add_book(f"C {RUN_ID}", 7.00, 10)

    cart = CartStore(buyer.client, buyer)
    cart.add(c.id, 5)
    catalog.edit_book(c.id, c.title, 7.00, 2)

    try:
        OrderWorkflow(buyer.client, buyer, cart).place_order(buyer.user.id, cart.items, ADDRESS, cart.total)
        check(results, scenario, "Checkout refused", False, "checkout unexpectedly succeeded")
    except InsufficientStock as e:
        check(results, scenario, "Checkout refused", e.available == 2, e.message)

    check(results, scenario, "No order created", buyer.client.list_orders() == [], f"{len(buyer.client.list_orders())} orders")
    check(results, scenario, "Cart unchanged", len(buyer.client.list_cart()) == 1, f"{len(buyer.client.list_cart())} rows")
    check(results, scenario, "Stock unchanged", stock_of(buyer.client, c.id) == 2, f"stock={stock_of(buyer.client, c.id)}")
    return results


def print_results(results: List[CheckResult]):
    print(f"\n{BOLD}================ RESULTS ================{RESET}")
    per_scenario: Dict[str, List[bool]] = {}
    for r in results:
        color = GREEN if r.success else RED
        print(f"{color}{'PASS' if r.success else 'FAIL'} {r.name}{RESET}  {r.details}")
        per_scenario.setdefault(r.scenario, []).append(r.success)

    passed = sum(1 for r in results if r.success)
    print(f"Total checks: {len(results)}  |  Passed: {GREEN}{passed}{RESET}  |  Failed: {RED}{len(results) - passed}{RESET}")
    for scenario, outcomes in per_scenario.items():
        color = GREEN if all(outcomes) else (YELLOW if any(outcomes) else RED)
        print(f"  {color}- {scenario}: {sum(outcomes)}/{len(outcomes)} passed{RESET}")
    return passed == len(results)


def main():
    info(f"Using backend at {BACKEND_URL}")
    if not wait_for_health(BackendClient(BACKEND_URL)):
        sys.exit(1)

    results: List[CheckResult] = []
    results.extend(scenario_happy_path())
    results.extend(scenario_insufficient_stock())

    if not print_results(results):
        sys.exit(1)


if __name__ == "__main__":
    main()
