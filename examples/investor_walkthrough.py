#!/usr/bin/env python3
"""
investor_walkthrough.py — Pipeline, red team, board and panic button

================================================================================
THIS DEMO
================================================================================

Runs every canned scenario of the investor simulator against one block
ledger, then verifies the chain, corrupts one block and verifies again.

    pipeline   -> 7 governed stages, one block
    attacks    -> 7 adversarial inputs, one block each
    board      -> weighted advisor consensus, one block
    gateway    -> model usage report, no block
    panic      -> lockdown and crypto-shred, one block each

================================================================================
"""

import sys
from pathlib import Path

# Add src to path for demo
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from warden import AttackType, InvestorSimulator


def main():
    sim = InvestorSimulator()

    print("=" * 70)
    print("INVESTOR WALKTHROUGH")
    print("=" * 70)
    print()

    print("⚙️  PIPELINE")
    print("-" * 70)
    run = sim.run_pipeline("travel")
    for stage in run.stages:
        print(f"  {stage.stage:<13} {stage.status}  {stage.latency_ms:>4} ms  {stage.verdict}")
    print(f"  Total: {run.total_latency_ms} ms, receipt {run.receipt_hash[:16]}...")
    print()

    print("🛡️  RED TEAM")
    print("-" * 70)
    for attack in AttackType:
        attempt = sim.simulate_attack(attack)
        print(f"  {attack.value:<17} {attempt.verdict.value:<8} {attempt.severity.value:<8} "
              f"block #{attempt.ledger_block_index}")
        print(f"      {attempt.reason}")
    print()

    print("🏛️  BOARD OF ADVISORS")
    print("-" * 70)
    report = sim.run_advisor_consensus()
    for proposal in report.proposals:
        print(f"  {proposal.advisor_id:<11} {proposal.recommendation.value:<8} "
              f"confidence {proposal.confidence}  weight {proposal.vote_weight}")
    print(f"  Winner: {report.winner_advisor_id}")
    print(f"  Disagreement: {report.disagreement_score:.2f} -> {report.required_approval.value} approval")
    print()

    print("🤖 MODEL GATEWAY")
    print("-" * 70)
    for call in sim.llm_calls():
        flag = " (cached)" if call.cached else (" (fallback)" if call.fallback_used else "")
        print(f"  {call.provider:<10} {call.model:<18} ${call.cost:<7} {call.purpose}{flag}")
    totals = sim.llm_totals()
    print(f"  {totals.total_calls} calls, ${totals.total_cost} spent, "
          f"${totals.budget_remaining} left, avg {totals.avg_latency_ms} ms")
    print()

    print("🚨 PANIC MODE")
    print("-" * 70)
    print(f"  {sim.trigger_panic('Unusual outbound volume').details}")
    print(f"  {sim.crypto_shred().details}")
    print()

    print("🔐 LEDGER VERIFICATION")
    print("-" * 70)
    result = sim.verify_ledger()
    print(f"  Blocks: {len(result.blocks)}  valid: {result.valid}")
    sim.ledger[3].data["verdict"] = "ALLOWED"
    result = sim.verify_ledger()
    print(f"  After editing block 3: valid={result.valid}, broken at {result.broken_at}")


if __name__ == "__main__":
    main()
