#!/usr/bin/env python3
"""
morning_briefing_demo.py — Governed overnight work, reviewed over coffee

================================================================================
SCENARIO
================================================================================

While the user slept, the assistant prepared five decision packets: travel,
a gift, recovered leads, insurance quotes and investing opportunities.
Nothing that costs money or is hard to undo happened without a policy check.

This demo:
1. Opens a seeded session and prints the "while you slept" board
2. Approves a travel itinerary and an insurance quote
3. Denies the gift packet
4. Tightens the budget cap and shows approvals being blocked
5. Tampers with the audit ledger and shows the session freezing

Same seed, same board: run it twice and compare.

================================================================================
"""

import logging
import sys
from pathlib import Path

# Add src to path for demo
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from warden import (
    IntentOutcome,
    PainPoint,
    SessionController,
)


def print_board(session: SessionController) -> None:
    snapshot = session.snapshot()
    print(f"  Session: {snapshot.session_id} (seed {snapshot.seed})")
    print(f"  Spent so far: {snapshot.budget_spent.format()} "
          f"of {snapshot.settings.budget_limit().format()}")
    print()
    for packet in snapshot.packets:
        check = packet.policy_checks[0]
        gate = "needs approval" if check.requires_approval else ("auto" if check.allowed else "BLOCKED")
        print(f"  [{packet.status.value:>17}] {packet.title}  ({gate})")
        for line in packet.narrative:
            print(f"      {line}")
    print()


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("MORNING BRIEFING — Governed decision packets")
    print("=" * 70)
    print()

    session = SessionController(seed=42, pain_point=PainPoint.TIME_PRESSURE)

    print("🌙 WHILE YOU SLEPT")
    print("-" * 70)
    print_board(session)

    print("✅ APPROVALS")
    print("-" * 70)
    travel = session.engine.find_packet("pkt_travel")
    option = travel.approval_requests[0].options[0]
    result = session.approve(travel.id, option.id)
    print(f"  Travel: {result.reason}")
    print(f"    Receipt #{result.receipt.chain_index}: {result.receipt.hash[:16]}...")

    result = session.approve("pkt_insurance", "ins_2")
    print(f"  Insurance: {result.reason}")
    print(f"    Receipt #{result.receipt.chain_index}: {result.receipt.hash[:16]}...")

    session.deny("pkt_gifts")
    print("  Gifts: denied")
    print(f"  Spent now: {session.budget_spent.format()}")
    print()

    print("🔒 TIGHTER BUDGET")
    print("-" * 70)
    session.change_settings(budget_cap="0.10")
    for packet in session.packets:
        check = packet.policy_checks[0]
        print(f"  {packet.category.value:<10} allowed={check.allowed!s:<5} {check.reason}")
    print()

    print("🔐 LEDGER")
    print("-" * 70)
    verification = session.verify()
    print(f"  Events: {len(session.ledger)}  valid: {verification.valid}")
    for event in session.ledger:
        print(f"    [{event.chain_index}] {event.type:<24} {event.hash[:16]}...")
    print()

    print("🧨 TAMPER DETECTION")
    print("-" * 70)
    session.ledger[1].data["packet_id"] = "pkt_investing"
    session.drill_down("leads")
    print(f"  Frozen: {session.frozen}")
    result = session.approve("pkt_investing")
    print(f"  Next intent: {result.outcome.value}")
    assert result.outcome is IntentOutcome.FROZEN
    print(f"  Broken at event: {session.verify().broken_at}")
    print()

    print("💾 SNAPSHOT (JSON)")
    print("-" * 70)
    exported = session.snapshot().to_json()
    print(f"  Snapshot size: {len(exported)} bytes")
    print(exported[:400])
    print("  ...")


if __name__ == "__main__":
    main()
