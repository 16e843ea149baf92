"""
test_session.py — Decision packets, the packet engine and the session controller

Tests cover:
- packet construction (statuses, steps, approvals, initial checks)
- pain-point prioritization
- approve / deny / change_settings / drill_down transitions
- budget accounting and policy blocking
- ledger events per intent, freeze-on-tamper and concurrent intents
- snapshot JSON round trip and offline receipt verification
- the seed-42 end-to-end scenario
"""

import re
import threading
import pytest
from datetime import datetime, timedelta, timezone

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from warden import (
    ActionCategory,
    AutonomyScope,
    DemoSettings,
    Intent,
    IntentOutcome,
    Money,
    PacketStatus,
    PainPoint,
    Persona,
    SeededStream,
    SessionController,
    SessionSnapshot,
    generate_world,
)
from warden.packets import build_packets, narrative_for, prioritize

HEX64 = re.compile(r"^[0-9a-f]{64}$")


class FixedClock:
    def __init__(self):
        self.now = datetime(2026, 2, 1, 7, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(milliseconds=250)
        return self.now


@pytest.fixture
def session():
    return SessionController(seed=42, clock=FixedClock())


def _first_option(packet):
    return packet.approval_requests[0].options[0].id


# ==============================================================================
# Packet construction
# ==============================================================================

class TestBuildPackets:

    def _packets(self, settings=None, spent="0.12"):
        catalog = generate_world(SeededStream(42))
        return build_packets(catalog, settings or DemoSettings(), Money.parse(spent))

    def test_one_packet_per_category(self):
        packets = self._packets()
        assert [p.category for p in packets] == list(ActionCategory)

    def test_initial_statuses(self):
        status = {p.category: p.status for p in self._packets()}
        assert status[ActionCategory.TRAVEL] is PacketStatus.AWAITING_APPROVAL
        assert status[ActionCategory.GIFTS] is PacketStatus.AWAITING_APPROVAL
        assert status[ActionCategory.LEADS] is PacketStatus.EXECUTED
        assert status[ActionCategory.INSURANCE] is PacketStatus.AWAITING_APPROVAL
        assert status[ActionCategory.INVESTING] is PacketStatus.PENDING

    def test_step_costs_and_risk(self):
        costs = {p.category: p.plan_steps[0].estimated_cost for p in self._packets()}
        assert costs[ActionCategory.TRAVEL] == Money.parse("0.02")
        assert costs[ActionCategory.GIFTS] == Money.parse("0.01")
        assert costs[ActionCategory.LEADS] == Money.parse("0.03")
        assert costs[ActionCategory.INVESTING] == Money.parse("0.04")
        investing = self._packets()[-1]
        assert not investing.plan_steps[0].reversible
        assert investing.approval_requests == []

    def test_options_mirror_catalog(self):
        catalog = generate_world(SeededStream(42))
        travel = build_packets(catalog, DemoSettings(), Money.zero())[0]
        options = travel.approval_requests[0].options
        assert [o.id for o in options] == ["itinerary_a", "itinerary_b"]
        assert options[0].cost == Money.of(catalog.travel[0].total_cost)

    def test_initial_checks_evaluated(self):
        for packet in self._packets():
            assert len(packet.policy_checks) == len(packet.plan_steps)
            assert all(c.allowed for c in packet.policy_checks)

    def test_initial_checks_blocked_by_cap(self):
        packets = self._packets(DemoSettings(budget_cap="0.10"))
        assert not any(c.allowed for p in packets for c in p.policy_checks)

    def test_leads_packet_has_background_result(self):
        leads = self._packets()[2]
        assert leads.execution_results[0].success
        assert leads.execution_results[0].details["total_leads"] == 20

    def test_persona_narrative(self):
        lines = narrative_for(ActionCategory.LEADS, Persona.NEURODIVERGENT, leads=20, replied=7, value=1000)
        assert lines == ["20 contacts reached. 7 replied.", "No action needed."]


class TestPrioritize:

    def test_no_pain_point_keeps_order(self):
        packets = build_packets(generate_world(SeededStream(1)), DemoSettings(), Money.zero())
        assert prioritize(packets, None) == packets

    def test_financial_anxiety_puts_insurance_first(self):
        packets = build_packets(generate_world(SeededStream(1)), DemoSettings(), Money.zero())
        ordered = prioritize(packets, PainPoint.FINANCIAL_ANXIETY)
        assert [p.category.value for p in ordered] == [
            "insurance", "investing", "leads", "travel", "gifts",
        ]

    def test_session_applies_pain_point(self):
        s = SessionController(seed=3, pain_point="stress")
        assert s.packets[0].category is ActionCategory.GIFTS


# ==============================================================================
# Intents
# ==============================================================================

class TestApprove:

    def test_approve_executes_and_mints(self, session):
        travel = session.engine.find_packet("pkt_travel")
        result = session.approve(travel.id, _first_option(travel))
        assert result.outcome is IntentOutcome.APPLIED
        assert travel.status is PacketStatus.EXECUTED
        assert len(travel.receipts) == 1
        assert travel.receipts[0] is result.receipt
        assert travel.execution_results[0].details["selected_option_id"] == "itinerary_a"
        assert session.budget_spent == Money.parse("0.14")

    def test_approve_appends_action_and_receipt_events(self, session):
        session.approve("pkt_gifts", "gift_2")
        types = [e.type for e in session.ledger]
        assert types == ["session_init", "action_approve", "receipt_minted"]
        minted = session.ledger[2].data
        assert minted["receipt_hash"] == session.receipts[0].hash
        assert minted["budget_spent"] == Money.parse("0.13").to_dict()

    def test_approve_without_option(self, session):
        result = session.approve("pkt_gifts")
        assert result.applied
        assert result.receipt.details["selected_option"] is None

    def test_second_approve_ignored(self, session):
        session.approve("pkt_travel", "itinerary_b")
        result = session.approve("pkt_travel", "itinerary_b")
        assert result.outcome is IntentOutcome.IGNORED
        assert len(session.receipts) == 1

    @pytest.mark.parametrize("packet_id,option_id", [
        ("pkt_nope", None),
        ("pkt_travel", "itinerary_z"),
        ("pkt_leads", None),
        ("pkt_investing", None),
    ])
    def test_ignored_intents_change_nothing(self, session, packet_id, option_id):
        before = session.snapshot()
        result = session.approve(packet_id, option_id)
        assert result.outcome is IntentOutcome.IGNORED
        after = session.snapshot()
        assert after.packets == before.packets
        assert after.budget_spent == before.budget_spent
        # The intent itself is still on the ledger
        assert session.ledger[-1].type == "action_approve"
        assert session.verify().valid

    def test_budget_cap_blocks_approval(self):
        s = SessionController(seed=42, settings=DemoSettings(budget_cap="0.10"))
        result = s.approve("pkt_gifts", "gift_1")
        assert result.outcome is IntentOutcome.IGNORED
        assert result.reason.startswith("blocked by policy")
        assert s.engine.find_packet("pkt_gifts").status is PacketStatus.AWAITING_APPROVAL
        assert s.receipts == []

    def test_checks_recomputed_after_spend(self):
        s = SessionController(seed=42, settings=DemoSettings(budget_cap="1.00"))
        s.approve("pkt_travel", "itinerary_a")
        check = s.engine.find_packet("pkt_gifts").policy_checks[0]
        assert check.budget_remaining == Money.parse("0.86")


class TestDenyAndSettings:

    def test_deny_is_terminal(self, session):
        assert session.deny("pkt_gifts").applied
        packet = session.engine.find_packet("pkt_gifts")
        assert packet.status is PacketStatus.DENIED
        assert session.approve("pkt_gifts", "gift_1").outcome is IntentOutcome.IGNORED
        assert session.deny("pkt_gifts").outcome is IntentOutcome.IGNORED

    def test_deny_pending_ignored(self, session):
        assert session.deny("pkt_investing").outcome is IntentOutcome.IGNORED

    def test_change_settings_recomputes_checks(self, session):
        result = session.change_settings(autonomy=AutonomyScope.OBSERVE)
        assert result.applied
        assert session.settings.autonomy is AutonomyScope.OBSERVE
        gifts = session.engine.find_packet("pkt_gifts")
        assert gifts.policy_checks[0].requires_approval
        assert gifts.policy_checks[0].autonomy_level is AutonomyScope.OBSERVE

    def test_change_settings_to_tiny_cap_blocks(self, session):
        session.change_settings(budget_cap="0.10")
        assert not any(c.allowed for p in session.packets for c in p.policy_checks)

    def test_invalid_settings_ignored(self, session):
        result = session.change_settings(autonomy="rogue")
        assert result.outcome is IntentOutcome.IGNORED
        assert session.settings == DemoSettings()
        assert session.ledger[-1].data["payload"] == {"autonomy": "rogue"}

    def test_drill_down(self, session):
        assert session.drill_down("insurance").applied
        assert session.engine.active_category is ActionCategory.INSURANCE
        assert session.drill_down(None).applied
        assert session.engine.active_category is None
        assert session.drill_down("yachts").outcome is IntentOutcome.IGNORED

    def test_act_with_intent_object(self, session):
        result = session.act(Intent.deny("pkt_travel"))
        assert result.applied
        assert result.event.type == "action_deny"
        assert result.event.data["packet_id"] == "pkt_travel"


# ==============================================================================
# Integrity
# ==============================================================================

class TestFreeze:

    def test_tamper_freezes_session(self, session):
        session.drill_down("travel")
        session.ledger[0].data["seed"] = 7
        session.drill_down("gifts")
        assert session.frozen
        assert session.engine.frozen

        length = len(session.ledger)
        result = session.approve("pkt_travel", "itinerary_a")
        assert result.outcome is IntentOutcome.FROZEN
        assert len(session.ledger) == length
        assert session.engine.find_packet("pkt_travel").status is PacketStatus.AWAITING_APPROVAL

    def test_broken_ledger_kept_for_diagnosis(self, session):
        session.ledger[0].type = "forged"
        session.drill_down("travel")
        verification = session.verify()
        assert not verification.valid
        assert verification.broken_at == 0
        assert session.ledger[0].type == "forged"
        assert session.snapshot().frozen

    def test_receipt_tamper_detected(self, session):
        session.approve("pkt_travel", "itinerary_a")
        session.approve("pkt_gifts", "gift_1")
        session.receipts[0].summary = "forged"
        result = session.verify_receipts()
        assert result.broken_at == 0
        assert not session.receipts[1].verified

    def test_concurrent_intents_never_interleave(self):
        session = SessionController(seed=42)
        threads_n, per_thread = 8, 50
        categories = ["travel", "gifts", "leads", "insurance", "investing"]

        def worker(offset):
            for i in range(per_thread):
                session.drill_down(categories[(offset + i) % len(categories)])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(threads_n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not session.frozen
        assert session.verify().valid
        assert len(session.ledger) == 1 + threads_n * per_thread
        assert [e.chain_index for e in session.ledger] == list(range(len(session.ledger)))


# ==============================================================================
# Snapshot
# ==============================================================================

class TestSnapshot:

    def test_json_round_trip(self, session):
        session.approve("pkt_travel", "itinerary_b")
        session.deny("pkt_gifts")
        session.drill_down("insurance")
        snapshot = session.snapshot()
        assert SessionSnapshot.from_json(snapshot.to_json()) == snapshot

    def test_restored_receipts_verify(self, session):
        session.approve("pkt_travel", "itinerary_a")
        session.approve("pkt_gifts", "gift_1")
        restored = SessionSnapshot.from_json(session.snapshot().to_json())
        assert restored.verify_receipts().valid

        restored.receipts[1].summary = "forged"
        result = restored.verify_receipts()
        assert result.broken_at == 1
        assert restored.receipts[0].verified
        assert not restored.receipts[1].verified

    def test_snapshot_is_detached(self, session):
        snapshot = session.snapshot()
        snapshot.packets[0].status = PacketStatus.DENIED
        assert session.packets[0].status is PacketStatus.AWAITING_APPROVAL

    def test_same_seed_same_packets(self):
        a = SessionController(seed=99, clock=FixedClock()).snapshot()
        b = SessionController(seed=99, clock=FixedClock()).snapshot()
        assert a.packets == b.packets
        assert a.session_id == b.session_id == "session_2r"

    def test_snapshot_fields(self, session):
        snapshot = session.snapshot()
        assert snapshot.seed == 42
        assert snapshot.current_phase == "while_you_slept"
        assert snapshot.budget_spent == Money.parse("0.12")
        assert snapshot.packet("leads").status is PacketStatus.EXECUTED


# ==============================================================================
# End to end
# ==============================================================================

class TestEndToEnd:

    def test_seed_42_travel_scenario(self):
        s = SessionController(seed=42)
        snapshot = s.snapshot()
        assert len(snapshot.packets) == 5

        travel = snapshot.packet(ActionCategory.TRAVEL)
        result = s.approve(travel.id, _first_option(travel))
        assert result.applied

        after = s.snapshot()
        assert after.packet("travel").status is PacketStatus.EXECUTED
        assert len(after.receipts) == 1
        assert HEX64.match(after.receipts[0].hash)
        assert s.verify().valid
        assert s.verify_receipts().valid

    def test_full_morning(self):
        s = SessionController(seed=2026, pain_point=PainPoint.ADMIN)
        s.drill_down("travel")
        s.approve("pkt_travel", "itinerary_a")
        s.approve("pkt_insurance", "ins_2")
        s.deny("pkt_gifts")
        s.change_settings(stress="overwhelmed", autonomy="delegated")
        assert s.budget_spent == Money.parse("0.16")
        assert len(s.receipts) == 2
        assert [r.chain_index for r in s.receipts] == [0, 1]
        assert s.verify().valid
        assert len(s.ledger.find_by_type("receipt_minted")) == 2
