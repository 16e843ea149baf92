"""
test_world_policy.py — Synthetic world generation and policy evaluation

Tests cover:
- generate_world() determinism and seed sensitivity
- catalog shape and derived fields
- the autonomy table and budget rule of evaluate()
- DemoSettings coercion and partial merges
"""

import pytest
from datetime import datetime, timedelta, timezone
from hypothesis import given, settings
from hypothesis import strategies as st

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from warden import (
    ActionCategory,
    AutonomyScope,
    BudgetCap,
    DemoSettings,
    EngineConfig,
    Money,
    Persona,
    PlanStep,
    RiskTier,
    SeededStream,
    SettingsError,
    StressLevel,
    evaluate,
    generate_world,
)
from warden.policy import approval_required, evaluate_all
from warden.world import LEAD_COUNT, generate_leads


def _step(risk=RiskTier.LOW, cost="0.02", step_id="step_test_1"):
    return PlanStep(
        id=step_id,
        description="test step",
        category=ActionCategory.TRAVEL,
        risk_tier=risk,
        estimated_cost=Money.parse(cost),
        reversible=True,
    )


# ==============================================================================
# World
# ==============================================================================

class TestGenerateWorld:

    @given(seed=st.integers(min_value=0, max_value=2**32 - 1))
    @settings(max_examples=50, deadline=None)
    def test_same_seed_same_catalog(self, seed: int):
        a = generate_world(SeededStream(seed))
        b = generate_world(SeededStream(seed))
        assert a == b
        assert a.to_dict() == b.to_dict()

    def test_seed_sensitivity(self):
        catalogs = {repr(generate_world(SeededStream(s)).to_dict()) for s in range(10)}
        assert len(catalogs) > 1

    def test_catalog_sizes(self):
        world = generate_world(SeededStream(42))
        assert len(world.travel) == 2
        assert len(world.gifts) == 3
        assert len(world.leads) == LEAD_COUNT == 20
        assert len(world.insurance) == 4
        assert len(world.investing) == 2

    def test_travel_totals(self):
        for itinerary in generate_world(SeededStream(7)).travel:
            assert itinerary.hotel.total == itinerary.hotel.price_per_night * 3
            assert itinerary.total_cost == itinerary.flight.price + itinerary.hotel.total
        a, b = generate_world(SeededStream(7)).travel
        assert a.flight.cabin == "Economy"
        assert b.flight.stops == 0

    def test_price_ranges(self):
        world = generate_world(SeededStream(123))
        assert 340 <= world.travel[0].flight.price <= 420
        assert 1200 <= world.travel[1].flight.price <= 1500
        assert 89 <= world.gifts[0].price <= 109
        for lead in world.leads:
            assert 30 <= lead.days_silent <= 120
            assert lead.estimated_value % 1000 == 0
            assert (lead.reply_snippet is not None) == lead.replied

    def test_insurance_annual_and_recommendation(self):
        world = generate_world(SeededStream(5))
        for quote in world.insurance:
            assert quote.annual_premium == quote.monthly_premium * 12
        assert world.recommended_quote.provider == "Aegis Insurance"

    def test_lead_emails_and_activity_dates(self):
        config = EngineConfig(reference_date=datetime(2026, 1, 1, tzinfo=timezone.utc))
        lead = generate_world(SeededStream(1), config).leads[0]
        assert lead.email == "sarah.chen@acmecorp.com"
        assert lead.last_activity < config.reference_date.isoformat()

    def test_lead_draw_order(self):
        # two int(30, 120) draws per lead, activity age first
        config = EngineConfig()
        leads = generate_leads(SeededStream(9), config)
        replay = SeededStream(9)
        for lead in leads:
            replied = replay.next() > 0.6
            activity_age = replay.int(30, 120)
            assert lead.days_silent == replay.int(30, 120)
            assert lead.last_activity == (config.reference_date - timedelta(days=activity_age)).isoformat()
            replay.next()
            if replied:
                replay.next()
            assert lead.estimated_value == replay.int(5, 50) * 1000

    def test_to_dict_is_json_plain(self):
        data = generate_world(SeededStream(1)).to_dict()
        assert isinstance(data["travel"][0]["hotel"]["amenities"], list)
        assert set(data) == {"travel", "gifts", "leads", "insurance", "investing"}


# ==============================================================================
# Settings
# ==============================================================================

class TestDemoSettings:

    def test_defaults(self):
        s = DemoSettings()
        assert s.persona is Persona.FOUNDER
        assert s.stress is StressLevel.CALM
        assert s.autonomy is AutonomyScope.EXECUTE_WITH_APPROVAL
        assert s.budget_cap is BudgetCap.FIVE

    def test_strings_coerced(self):
        s = DemoSettings(autonomy="delegated", budget_cap="0.10")
        assert s.autonomy is AutonomyScope.DELEGATED
        assert s.budget_limit() == Money.parse("0.10")

    def test_invalid_value_rejected(self):
        with pytest.raises(SettingsError):
            DemoSettings(autonomy="rogue")
        with pytest.raises(ValueError):
            DemoSettings(budget_cap="100.00")

    def test_merged_is_new_instance(self):
        s = DemoSettings()
        t = s.merged({"stress": "overwhelmed"})
        assert t.stress is StressLevel.OVERWHELMED
        assert s.stress is StressLevel.CALM

    def test_merged_rejects_unknown_keys(self):
        with pytest.raises(SettingsError, match="Unknown settings keys"):
            DemoSettings().merged({"mood": "great"})

    def test_dict_round_trip(self):
        s = DemoSettings(persona="consumer", autonomy="observe")
        assert DemoSettings.from_dict(s.to_dict()) == s


# ==============================================================================
# Policy
# ==============================================================================

class TestAutonomyTable:

    @pytest.mark.parametrize("risk", list(RiskTier))
    @pytest.mark.parametrize("autonomy", [AutonomyScope.OBSERVE, AutonomyScope.RECOMMEND])
    def test_observe_and_recommend_always_require_approval(self, risk, autonomy):
        for stress in StressLevel:
            assert approval_required(risk, autonomy, stress)

    @pytest.mark.parametrize("risk,expected", [
        (RiskTier.LOW, False),
        (RiskTier.MEDIUM, True),
        (RiskTier.HIGH, True),
        (RiskTier.CRITICAL, True),
    ])
    def test_execute_with_approval(self, risk, expected):
        assert approval_required(risk, AutonomyScope.EXECUTE_WITH_APPROVAL, StressLevel.CALM) is expected

    @pytest.mark.parametrize("risk,calm,overwhelmed", [
        (RiskTier.LOW, False, False),
        (RiskTier.MEDIUM, False, False),
        (RiskTier.HIGH, False, True),
        (RiskTier.CRITICAL, True, True),
    ])
    def test_delegated_depends_on_stress(self, risk, calm, overwhelmed):
        assert approval_required(risk, AutonomyScope.DELEGATED, StressLevel.CALM) is calm
        assert approval_required(risk, AutonomyScope.DELEGATED, StressLevel.OVERWHELMED) is overwhelmed


class TestEvaluate:

    def test_budget_exhausted_blocks(self):
        check = evaluate(_step(cost="0.02"), DemoSettings(budget_cap="0.10"), Money.parse("0.10"))
        assert not check.allowed
        assert not check.requires_approval
        assert check.budget_remaining == Money.zero()
        assert check.reason == "Exceeds budget cap ($0.10). Remaining: $0.00"

    def test_overspent_remaining_clamped(self):
        check = evaluate(_step(cost="0.01"), DemoSettings(budget_cap="0.10"), Money.parse("0.12"))
        assert not check.allowed
        assert check.budget_remaining == Money.zero()

    def test_exact_remaining_is_allowed(self):
        check = evaluate(_step(cost="0.02"), DemoSettings(budget_cap="0.10"), Money.parse("0.08"))
        assert check.allowed

    def test_approval_reason(self):
        check = evaluate(_step(RiskTier.MEDIUM), DemoSettings(), Money.parse("0.12"))
        assert check.allowed and check.requires_approval
        assert check.reason == "medium risk action requires approval under execute_with_approval autonomy"
        assert check.budget_remaining == Money.parse("4.88")

    def test_auto_approved_reason(self):
        check = evaluate(_step(RiskTier.LOW), DemoSettings(), Money.parse("0.12"))
        assert check.allowed and not check.requires_approval
        assert check.reason.startswith("Auto-approved: low risk")
        assert check.autonomy_level is AutonomyScope.EXECUTE_WITH_APPROVAL

    @given(
        cents_spent=st.integers(min_value=0, max_value=600),
        cost=st.integers(min_value=0, max_value=100),
        risk=st.sampled_from(list(RiskTier)),
        autonomy=st.sampled_from(list(AutonomyScope)),
        stress=st.sampled_from(list(StressLevel)),
        cap=st.sampled_from(list(BudgetCap)),
    )
    @settings(max_examples=300)
    def test_pure_and_consistent(self, cents_spent, cost, risk, autonomy, stress, cap):
        step = PlanStep("s", "d", ActionCategory.GIFTS, risk, Money.usd_cents(cost), True)
        s = DemoSettings(autonomy=autonomy, stress=stress, budget_cap=cap)
        spent = Money.usd_cents(cents_spent)
        first, second = evaluate(step, s, spent), evaluate(step, s, spent)
        assert first == second
        assert first.allowed == (step.estimated_cost <= (s.budget_limit() - spent).clamp_zero())
        if first.requires_approval:
            assert first.allowed

    def test_evaluate_all_keeps_order(self):
        steps = [_step(step_id="a"), _step(step_id="b")]
        checks = evaluate_all(steps, DemoSettings(), Money.zero())
        assert [c.step_id for c in checks] == ["a", "b"]

    def test_check_dict_round_trip(self):
        from warden import PolicyCheck
        check = evaluate(_step(), DemoSettings(), Money.zero())
        assert PolicyCheck.from_dict(check.to_dict()) == check


# ==============================================================================
# Engine config
# ==============================================================================

class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.initial_spend == Money.parse("0.12")
        assert config.merkle_window == 8
        assert config.signing_prefix == "sig_demo_key_"

    def test_dict_round_trip(self):
        config = EngineConfig(merkle_window=4, initial_budget_spent="0.00")
        assert EngineConfig.from_dict(config.to_dict()) == config

    def test_partial_from_dict(self):
        config = EngineConfig.from_dict({"currency": "EUR"})
        assert config.initial_spend == Money.parse("0.12", config.currency)

    @pytest.mark.parametrize("data", [
        {"merkle_window": 0},
        {"max_entries": 0},
        {"initial_budget_spent": "-1.00"},
        {"initial_budget_spent": "0.001"},
        {"currency": "XYZ"},
        {"colour": "blue"},
    ])
    def test_invalid_rejected(self, data):
        with pytest.raises(SettingsError):
            EngineConfig.from_dict(data)
