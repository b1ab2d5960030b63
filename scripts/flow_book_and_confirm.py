#!/usr/bin/env python3
"""
Complete booking, payment and allocation flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_book_and_confirm.py --hostel-id <UUID> --owner-id <UUID> --check-in 2026-11-01 --check-out 2027-04-30

Flow:
    1. Submit booking (as student)
    2. Approve booking (as owner)
    3. Initiate advance payment (as student)
    4. Mark payment as paid (as owner)
    5. Confirm booking, which allocates a bed
    6. Show allocation and hostel availability
"""

import argparse
import json
import sys
from uuid import uuid4

import httpx

from hostelhub.core.security import create_actor_token

BASE_URL = "http://localhost:8000"


def api_request(token: str, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make authenticated API request."""
    headers = {"Authorization": f"Bearer {token}"}
    url = f"{BASE_URL}{endpoint}"

    if method == "GET":
        response = httpx.get(url, headers=headers, timeout=10.0, follow_redirects=True)
    elif method == "POST":
        response = httpx.post(url, headers=headers, json=data or {}, timeout=10.0, follow_redirects=True)
    else:
        raise ValueError(f"Unknown method: {method}")

    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    if fields:
        filtered = {k: result["data"].get(k) for k in fields if k in result["data"]}
        print(json.dumps(filtered, indent=2))
    else:
        print(json.dumps(result["data"], indent=2))
    return True


def main():
    parser = argparse.ArgumentParser(description="Complete booking and allocation flow")
    parser.add_argument("--hostel-id", required=True, help="Hostel UUID")
    parser.add_argument("--owner-id", required=True, help="Hostel owner UUID")
    parser.add_argument("--check-in", required=True, help="Check-in date (YYYY-MM-DD)")
    parser.add_argument("--check-out", required=True, help="Check-out date (YYYY-MM-DD)")
    parser.add_argument("--room-type", default="double", help="Preferred room type")
    args = parser.parse_args()

    student_token = create_actor_token(uuid4(), role="student")
    owner_token = create_actor_token(args.owner_id, role="owner")

    print_step(1, "Submit booking")
    booking_result = api_request(student_token, "POST", "/api/v1/bookings", {
        "hostel_id": args.hostel_id,
        "details": {
            "full_name": "Rahul Sharma",
            "mobile": "9876543210",
            "email": "rahul.sharma@example.com",
            "room_type_preference": args.room_type,
            "check_in": args.check_in,
            "check_out": args.check_out,
        },
    })
    if not print_result(booking_result, ["id", "booking_number", "status"]):
        sys.exit(1)
    booking_id = booking_result["data"]["id"]

    print_step(2, "Approve booking (as owner)")
    if not print_result(api_request(owner_token, "POST", f"/api/v1/bookings/{booking_id}/approve"),
                        ["status", "advance_amount"]):
        sys.exit(1)

    print_step(3, "Initiate advance payment")
    payment_result = api_request(student_token, "POST", "/api/v1/payments/advance", {
        "booking_id": booking_id,
        "payment_method": "upi",
    })
    if not print_result(payment_result, ["id", "amount", "status", "transaction_reference"]):
        sys.exit(1)
    payment_id = payment_result["data"]["id"]

    print_step(4, "Mark payment as paid (as owner)")
    if not print_result(api_request(owner_token, "POST", f"/api/v1/payments/{payment_id}/mark-paid"),
                        ["status", "completed_at"]):
        sys.exit(1)

    print_step(5, "Confirm booking")
    if not print_result(api_request(student_token, "POST", f"/api/v1/bookings/{booking_id}/confirm"),
                        ["status", "room_id", "bed_id", "confirmed_at"]):
        sys.exit(1)

    print_step(6, "Allocation and availability")
    print_result(api_request(student_token, "GET", f"/api/v1/bookings/{booking_id}/allocation"))
    print_result(api_request(owner_token, "GET", f"/api/v1/hostels/{args.hostel_id}/availability"),
                 ["total_beds", "occupied_beds", "available_beds", "occupancy_rate"])

    print("\n" + "="*60)
    print("FLOW COMPLETE")
    print("="*60)


if __name__ == "__main__":
    main()
