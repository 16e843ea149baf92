"""
policy.py — Autonomy-tiered policy evaluation

================================================================================
RULES
================================================================================

Each proposed PlanStep is evaluated against the user's DemoSettings and the
budget already spent. Two independent questions are answered:

1. ALLOWED?   cost <= max(0, cap - spent). A budget violation is an absolute
              block; no autonomy level overrides it.
2. APPROVAL?  looked up from the autonomy table:

    autonomy               | approval required when
    -----------------------+---------------------------------------------
    observe                | always
    recommend              | always
    execute_with_approval  | risk weight >= 2 (medium and above)
    delegated, calm        | risk weight >= 4 (critical only)
    delegated, overwhelmed | risk weight >= 3 (high and above)

requires_approval is only ever true for an allowed step.

evaluate() is pure: no hidden state, no ledger access. A PolicyCheck is a
derived projection and is recomputed whenever settings or spend change.
================================================================================
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

from .errors import SettingsError
from .money import Currency, Money


# ==============================================================================
# DOMAIN ENUMS
# ==============================================================================

class Persona(str, Enum):
    FOUNDER = "founder"
    PROFESSIONAL = "professional"
    FAMILY_OFFICE = "family_office"
    NEURODIVERGENT = "neurodivergent"
    CONSUMER = "consumer"


class StressLevel(str, Enum):
    CALM = "calm"
    OVERWHELMED = "overwhelmed"


class AutonomyScope(str, Enum):
    """Declared level of unattended authority granted to the agent."""
    OBSERVE = "observe"
    RECOMMEND = "recommend"
    EXECUTE_WITH_APPROVAL = "execute_with_approval"
    DELEGATED = "delegated"


class BudgetCap(str, Enum):
    CENTS_10 = "0.10"
    ONE = "1.00"
    FIVE = "5.00"

    def to_money(self, currency: Currency = Currency.USD) -> Money:
        return Money.parse(self.value, currency)


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def weight(self) -> int:
        return _RISK_WEIGHTS[self]


_RISK_WEIGHTS = {
    RiskTier.LOW: 1,
    RiskTier.MEDIUM: 2,
    RiskTier.HIGH: 3,
    RiskTier.CRITICAL: 4,
}


class ActionCategory(str, Enum):
    TRAVEL = "travel"
    GIFTS = "gifts"
    LEADS = "leads"
    INSURANCE = "insurance"
    INVESTING = "investing"


def _coerce(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise SettingsError(f"{field_name}: {value!r} not in ({allowed})") from None


# ==============================================================================
# SETTINGS
# ==============================================================================

@dataclass(frozen=True)
class DemoSettings:
    """User-declared settings. Replaced wholesale on change, never mutated."""
    persona: Persona = Persona.FOUNDER
    stress: StressLevel = StressLevel.CALM
    autonomy: AutonomyScope = AutonomyScope.EXECUTE_WITH_APPROVAL
    budget_cap: BudgetCap = BudgetCap.FIVE

    def __post_init__(self) -> None:
        # Accept raw strings, normalise to enums
        object.__setattr__(self, "persona", _coerce(Persona, self.persona, "persona"))
        object.__setattr__(self, "stress", _coerce(StressLevel, self.stress, "stress"))
        object.__setattr__(self, "autonomy", _coerce(AutonomyScope, self.autonomy, "autonomy"))
        object.__setattr__(self, "budget_cap", _coerce(BudgetCap, self.budget_cap, "budget_cap"))

    def merged(self, partial: Mapping[str, Any]) -> DemoSettings:
        """
        New settings with partial applied.

        Raises:
            SettingsError: unknown key or value outside its enum.
        """
        unknown = set(partial) - set(_SETTINGS_FIELDS)
        if unknown:
            raise SettingsError(f"Unknown settings keys: {sorted(unknown)}")
        return replace(self, **dict(partial))

    def budget_limit(self, currency: Currency = Currency.USD) -> Money:
        return self.budget_cap.to_money(currency)

    def to_dict(self) -> Dict[str, str]:
        return {
            "persona": self.persona.value,
            "stress": self.stress.value,
            "autonomy": self.autonomy.value,
            "budget_cap": self.budget_cap.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DemoSettings:
        return cls().merged(data)


_SETTINGS_FIELDS = ("persona", "stress", "autonomy", "budget_cap")


# ==============================================================================
# PLAN STEP / POLICY CHECK
# ==============================================================================

@dataclass(frozen=True)
class PlanStep:
    """One atomic unit of a proposed action. Immutable."""
    id: str
    description: str
    category: ActionCategory
    risk_tier: RiskTier
    estimated_cost: Money
    reversible: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "category": self.category.value,
            "risk_tier": self.risk_tier.value,
            "estimated_cost": self.estimated_cost.to_dict(),
            "reversible": self.reversible,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PlanStep:
        return cls(
            id=data["id"],
            description=data["description"],
            category=ActionCategory(data["category"]),
            risk_tier=RiskTier(data["risk_tier"]),
            estimated_cost=Money.from_dict(data["estimated_cost"]),
            reversible=data["reversible"],
        )


@dataclass(frozen=True)
class PolicyCheck:
    """Result of evaluating one PlanStep."""
    step_id: str
    allowed: bool
    requires_approval: bool
    reason: str
    budget_remaining: Money
    autonomy_level: AutonomyScope

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "allowed": self.allowed,
            "requires_approval": self.requires_approval,
            "reason": self.reason,
            "budget_remaining": self.budget_remaining.to_dict(),
            "autonomy_level": self.autonomy_level.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PolicyCheck:
        return cls(
            step_id=data["step_id"],
            allowed=data["allowed"],
            requires_approval=data["requires_approval"],
            reason=data["reason"],
            budget_remaining=Money.from_dict(data["budget_remaining"]),
            autonomy_level=AutonomyScope(data["autonomy_level"]),
        )


# ==============================================================================
# EVALUATION
# ==============================================================================

def approval_required(risk: RiskTier, autonomy: AutonomyScope, stress: StressLevel) -> bool:
    """The autonomy table."""
    if autonomy in (AutonomyScope.OBSERVE, AutonomyScope.RECOMMEND):
        return True
    if autonomy is AutonomyScope.EXECUTE_WITH_APPROVAL:
        return risk.weight >= 2
    if stress is StressLevel.OVERWHELMED:
        return risk.weight >= 3
    return risk.weight >= 4


def evaluate(step: PlanStep, settings: DemoSettings, spent: Money) -> PolicyCheck:
    """Evaluate one step. Pure and idempotent."""
    limit = settings.budget_limit(spent.currency)
    remaining = (limit - spent).clamp_zero()
    within_budget = step.estimated_cost <= remaining
    needs_approval = approval_required(step.risk_tier, settings.autonomy, settings.stress)

    if not within_budget:
        reason = (
            f"Exceeds budget cap ({limit.format()}). "
            f"Remaining: {remaining.format()}"
        )
    elif needs_approval:
        reason = (
            f"{step.risk_tier.value} risk action requires approval "
            f"under {settings.autonomy.value} autonomy"
        )
    else:
        reason = f"Auto-approved: {step.risk_tier.value} risk under {settings.autonomy.value} autonomy"

    return PolicyCheck(
        step_id=step.id,
        allowed=within_budget,
        requires_approval=within_budget and needs_approval,
        reason=reason,
        budget_remaining=remaining,
        autonomy_level=settings.autonomy,
    )


def evaluate_all(steps: Iterable[PlanStep], settings: DemoSettings, spent: Money) -> List[PolicyCheck]:
    return [evaluate(step, settings, spent) for step in steps]
