"""Replay multi-turn intake scenarios against a running server.

Usage:
    uvicorn giftly.api.app:app --port 8000
    BASE_URL=http://localhost:8000 python scripts/chat_smoke.py

Exits with code 1 if any scenario fails or the server is not reachable.
"""

from __future__ import annotations

import os
import re
import sys
import time
from typing import Any

import requests

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000").rstrip("/")
POLL_SECONDS = 0.5
WAIT_SECONDS = 10
REQUEST_TIMEOUT = 30

UNSURE_ACK = "No problem — we can add that later."
EXPLORE = "We'd like to explore a small gifting project."

SCENARIOS: list[dict[str, Any]] = [
    {
        "name": "A) Streamlined + bundles",
        "turns": [
            "We need 40 gifts, budget is $45 each, bulk to SF office, all at once, "
            "no branding, delivery in 4 weeks."
        ],
        "expect": {"mode": "streamlined", "max_score": 2, "bundles": True, "asks_email": False},
    },
    {
        "name": "B) Missing budget then bundles",
        "turns": [
            "We need 60 holiday gifts for employees, bulk to NYC office, all at once, "
            "no logo, mid-December.",
            "Around $70 each.",
        ],
        "expect": {"mode": "streamlined", "asks_budget": True, "bundles": True},
    },
    {
        "name": "C) Assisted (individual shipping)",
        "turns": [
            "120 gifts, $85 each, ship to home addresses across the US, we'll provide "
            "the addresses, include a note card, mid-December."
        ],
        "expect": {"mode": "assisted", "min_score": 3, "asks_email": True},
    },
    {
        "name": "D) High-touch (embroidery + international + tight)",
        "turns": [
            "250 embroidered hoodies, ship to individual addresses in US and Canada, you "
            "handle collection and distribution, need them in 2 weeks.",
            "email is zezette@test.com",
        ],
        "expect": {"mode": "high_touch", "min_score": 5, "asks_email": True},
    },
    {
        "name": "E) Budget confusion (total budget)",
        "turns": ["Total budget is $5000 for 100 gifts."],
        "expect": {"asks_budget": True},
    },
    {
        "name": "F) Bare number after quantity question",
        "turns": [EXPLORE, "30"],
        "expect": {"quantity": 30},
    },
    {
        "name": "G) Bare number after budget question",
        "turns": [EXPLORE, "30", "30"],
        "expect": {"quantity": 30, "budget": 30},
    },
    {
        "name": "H) Range for recipients (bare)",
        "turns": [EXPLORE, "between 30 and 50"],
        "expect": {"quantity": 40},
    },
    {
        "name": "I) Range for budget (bare)",
        "turns": [EXPLORE, "between 30 and 50", "between 20 and 40"],
        "expect": {"quantity": 40, "budget": 30},
    },
    {
        "name": "J) Range with context in one message",
        "turns": [
            "We need between 30 and 50 recipients, budget between 25 and 35 each, "
            "bulk, no branding."
        ],
        "expect": {"quantity": 40, "budget": 30},
    },
    {
        "name": "K) I don't know (skip branding)",
        "turns": ["40 gifts, $45 each, bulk shipping, mid-December delivery.", "I don't know"],
        "expect": {"branding": "none", "contains": UNSURE_ACK},
    },
    {
        "name": "L) I'm not sure (skip quantity)",
        "turns": [EXPLORE, "I'm not sure"],
        "expect": {"contains": UNSURE_ACK},
    },
    {
        "name": "M) Skip (international)",
        "turns": [
            "80 gifts, $40 each, ship to individual addresses, we provide the addresses, "
            "no branding, mid-January.",
            "Skip",
        ],
        "expect": {"contains": UNSURE_ACK, "asks_email": True},
    },
    {
        "name": "N) Bulk + storage question (all at once)",
        "turns": ["50 gifts, $40 each, bulk to Chicago, no branding, 3 weeks.", "All at once"],
        "expect": {"asks_email": True},
    },
    {
        "name": "O) Individual + address question (we provide)",
        "turns": [
            "75 gifts, $55 each, ship to home addresses, no branding, mid-March.",
            "We'll provide the addresses",
        ],
        "expect": {"asks_email": True},
    },
    {
        "name": "P) Not sure for distribution (bulk)",
        "turns": ["30 swag, $25 each, bulk, no logo, flexible.", "Not sure"],
        "expect": {"contains": UNSURE_ACK},
    },
]

_ASKS_BUDGET = re.compile(r"budget|per gift|per unit|USD|each\s*\?", re.IGNORECASE)
_ASKS_EMAIL = re.compile(r"email|e-mail", re.IGNORECASE)


def wait_for_server(session: requests.Session) -> bool:
    deadline = time.monotonic() + WAIT_SECONDS
    while time.monotonic() < deadline:
        try:
            if session.get(f"{BASE_URL}/api/chat", timeout=2).ok:
                return True
        except requests.RequestException:
            pass
        time.sleep(POLL_SECONDS)
    return False


def run_scenario(session: requests.Session, scenario: dict[str, Any]) -> tuple[list[str], dict | None]:
    errors: list[str] = []
    state: dict[str, Any] = {}
    history: list[dict[str, str]] = []
    final: dict | None = None
    saw_budget_ask = False
    saw_email_ask = False

    for message in scenario["turns"]:
        res = session.post(
            f"{BASE_URL}/api/chat",
            json={"message": message, "state": state, "history": history},
            timeout=REQUEST_TIMEOUT,
        )
        if not res.ok:
            errors.append(f"HTTP {res.status_code}: {res.text}")
            break

        final = res.json()
        state = final["state"]
        history = history + [
            {"role": "user", "content": message},
            {"role": "assistant", "content": final["assistantMessage"]},
        ]
        missing = final.get("missing", [])
        if "budgetPerUnitUsd" in missing or _ASKS_BUDGET.search(final["assistantMessage"]):
            saw_budget_ask = True
        if "email" in missing or _ASKS_EMAIL.search(final["assistantMessage"]):
            saw_email_ask = True

    if final is None:
        return errors, None

    expect = scenario["expect"]
    if "mode" in expect and final["mode"] != expect["mode"]:
        errors.append(f"mode: expected {expect['mode']!r}, got {final['mode']!r}")
    if "min_score" in expect and final["complexityScore"] < expect["min_score"]:
        errors.append(f"score: expected >= {expect['min_score']}, got {final['complexityScore']}")
    if "max_score" in expect and final["complexityScore"] > expect["max_score"]:
        errors.append(f"score: expected <= {expect['max_score']}, got {final['complexityScore']}")
    if "bundles" in expect:
        has_bundles = bool(final.get("bundleSuggestions"))
        if has_bundles != expect["bundles"]:
            errors.append(f"bundles: expected {expect['bundles']}, got {has_bundles}")
    if expect.get("asks_budget") and not saw_budget_ask:
        errors.append("expected a turn asking for the budget")
    if expect.get("asks_email") and not saw_email_ask:
        errors.append("expected a turn asking for the email")
    if "quantity" in expect and final["state"].get("quantity") != expect["quantity"]:
        errors.append(f"quantity: expected {expect['quantity']}, got {final['state'].get('quantity')}")
    if "budget" in expect and final["state"].get("budgetPerUnitUsd") != expect["budget"]:
        errors.append(
            f"budget: expected {expect['budget']}, got {final['state'].get('budgetPerUnitUsd')}"
        )
    if "branding" in expect and final["state"].get("branding") != expect["branding"]:
        errors.append(f"branding: expected {expect['branding']!r}, got {final['state'].get('branding')!r}")
    if "contains" in expect and expect["contains"] not in final["assistantMessage"]:
        errors.append(f"assistantMessage should contain {expect['contains']!r}")

    return errors, final


def main() -> int:
    session = requests.Session()
    if not wait_for_server(session):
        print(f"Server did not respond at {BASE_URL} within {WAIT_SECONDS}s.")
        print("Start it with: uvicorn giftly.api.app:app --port 8000")
        return 1

    failed = 0
    for scenario in SCENARIOS:
        errors, final = run_scenario(session, scenario)
        status = "FAIL" if errors else "PASS"
        summary = ""
        if final is not None:
            summary = (
                f" mode={final['mode']} score={final['complexityScore']}"
                f" missing=[{','.join(final.get('missing', []))}]"
                f" bundles={len(final.get('bundleSuggestions') or [])}"
            )
        print(f"{status} {scenario['name']}{summary}")
        for err in errors:
            print(f"    - {err}")
        if errors:
            failed += 1

    print(f"\n{len(SCENARIOS) - failed}/{len(SCENARIOS)} scenarios passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
