"""
packets.py — Decision packets and the packet state machine

================================================================================
LIFECYCLE
================================================================================

    pending ──────────────┐ (only with approval requests)
                          ▼
    awaiting_approval ──approve──▶ approved ──(simulated run)──▶ executed
           │
           └────deny────▶ denied (terminal)

A packet built as `executed` (background work finished overnight) or as
`pending` without approval requests is a construction-time state only: no
intent moves it.

Approving a packet:
  1. simulates execution (always succeeds, instantaneous)
  2. mints exactly one Receipt into the ReceiptChain
  3. adds the sum of its step costs to budget spent
  4. appends a `receipt_minted` event to the session AuditLedger
  5. recomputes every packet's PolicyChecks against the new spend

Unknown packet ids, unknown option ids, invalid settings and wrong-state
transitions are IGNORED outcomes, never exceptions.
================================================================================
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

from .chain import AuditEvent, AuditLedger, Receipt, ReceiptChain
from .config import DEFAULT_CONFIG, Clock, EngineConfig, utc_now
from .errors import SettingsError
from .money import Money
from .policy import (
    ActionCategory,
    DemoSettings,
    Persona,
    PlanStep,
    PolicyCheck,
    RiskTier,
    evaluate_all,
)
from .world import WorldCatalog

logger = logging.getLogger(__name__)


# ==============================================================================
# VALUE TYPES
# ==============================================================================

class PacketStatus(str, Enum):
    PENDING = "pending"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    DENIED = "denied"
    EXECUTED = "executed"


class PainPoint(str, Enum):
    STRESS = "stress"
    ADMIN = "admin"
    MISSED_OPPORTUNITIES = "missed_opportunities"
    FINANCIAL_ANXIETY = "financial_anxiety"
    TIME_PRESSURE = "time_pressure"


class IntentOutcome(str, Enum):
    APPLIED = "applied"
    IGNORED = "ignored"
    FROZEN = "frozen"


@dataclass
class IntentResult:
    """What happened to one intent."""
    outcome: IntentOutcome
    reason: str = ""
    event: Optional[AuditEvent] = None
    receipt: Optional[Receipt] = None

    @property
    def applied(self) -> bool:
        return self.outcome is IntentOutcome.APPLIED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "reason": self.reason,
            "event_id": self.event.id if self.event else None,
            "receipt_id": self.receipt.id if self.receipt else None,
        }


@dataclass(frozen=True)
class ApprovalOption:
    id: str
    label: str
    description: str
    cost: Optional[Money] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "cost": self.cost.to_dict() if self.cost else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ApprovalOption:
        cost = data.get("cost")
        return cls(data["id"], data["label"], data["description"],
                   Money.from_dict(cost) if cost else None)


@dataclass(frozen=True)
class ApprovalRequest:
    id: str
    step_id: str
    category: ActionCategory
    description: str
    estimated_cost: Money
    risk_tier: RiskTier
    options: tuple[ApprovalOption, ...] = ()

    def find_option(self, option_id: str) -> Optional[ApprovalOption]:
        return next((o for o in self.options if o.id == option_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "step_id": self.step_id,
            "category": self.category.value,
            "description": self.description,
            "estimated_cost": self.estimated_cost.to_dict(),
            "risk_tier": self.risk_tier.value,
            "options": [o.to_dict() for o in self.options],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ApprovalRequest:
        return cls(
            id=data["id"],
            step_id=data["step_id"],
            category=ActionCategory(data["category"]),
            description=data["description"],
            estimated_cost=Money.from_dict(data["estimated_cost"]),
            risk_tier=RiskTier(data["risk_tier"]),
            options=tuple(ApprovalOption.from_dict(o) for o in data["options"]),
        )


@dataclass(frozen=True)
class ExecutionResult:
    step_id: str
    success: bool
    summary: str
    details: Dict[str, Any]
    simulated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "success": self.success,
            "summary": self.summary,
            "details": self.details,
            "simulated_at": self.simulated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExecutionResult:
        return cls(data["step_id"], data["success"], data["summary"],
                   data["details"], data["simulated_at"])


@dataclass
class DecisionPacket:
    """
    A proposed action with its plan, policy evaluation, approvals and
    results. Mutated only by PacketEngine.
    """
    id: str
    category: ActionCategory
    title: str
    summary: str
    plan_steps: List[PlanStep]
    approval_requests: List[ApprovalRequest]
    status: PacketStatus
    narrative: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    policy_checks: List[PolicyCheck] = field(default_factory=list)
    execution_results: List[ExecutionResult] = field(default_factory=list)
    receipts: List[Receipt] = field(default_factory=list)

    @property
    def is_approvable(self) -> bool:
        if self.status is PacketStatus.AWAITING_APPROVAL:
            return True
        return self.status is PacketStatus.PENDING and bool(self.approval_requests)

    def total_cost(self, zero: Money) -> Money:
        return sum((s.estimated_cost for s in self.plan_steps), zero)

    def find_option(self, option_id: str) -> Optional[ApprovalOption]:
        if not self.approval_requests:
            return None
        return self.approval_requests[0].find_option(option_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "title": self.title,
            "summary": self.summary,
            "plan_steps": [s.to_dict() for s in self.plan_steps],
            "policy_checks": [c.to_dict() for c in self.policy_checks],
            "approval_requests": [r.to_dict() for r in self.approval_requests],
            "execution_results": [r.to_dict() for r in self.execution_results],
            "receipts": [r.to_dict() for r in self.receipts],
            "narrative": list(self.narrative),
            "data": self.data,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DecisionPacket:
        return cls(
            id=data["id"],
            category=ActionCategory(data["category"]),
            title=data["title"],
            summary=data["summary"],
            plan_steps=[PlanStep.from_dict(s) for s in data["plan_steps"]],
            approval_requests=[ApprovalRequest.from_dict(r) for r in data["approval_requests"]],
            status=PacketStatus(data["status"]),
            narrative=list(data["narrative"]),
            data=data["data"],
            policy_checks=[PolicyCheck.from_dict(c) for c in data["policy_checks"]],
            execution_results=[ExecutionResult.from_dict(r) for r in data["execution_results"]],
            receipts=[Receipt.from_dict(r) for r in data["receipts"]],
        )


# ==============================================================================
# PACKET CONSTRUCTION
# ==============================================================================

# Persona-keyed narration; founder is the fallback
_NARRATIVE: Dict[ActionCategory, Dict[Persona, Sequence[str]]] = {
    ActionCategory.TRAVEL: {
        Persona.FOUNDER: (
            "I simulated two itineraries. Option A optimizes cost. Option B optimizes comfort.",
            "Both include direct or one-stop flights and 3-night hotel stays.",
        ),
        Persona.PROFESSIONAL: (
            "Two travel options prepared. Saved you 45 minutes of comparison.",
            "Option A is efficient. Option B maximizes comfort with fewer stops.",
        ),
        Persona.FAMILY_OFFICE: (
            "Two travel arrangements prepared for review.",
            "Option A minimizes spend. Option B maximizes productivity with direct routing.",
        ),
        Persona.NEURODIVERGENT: (
            "Two travel options. Pick one.",
            "Option A: cheaper. Option B: more comfortable.",
        ),
        Persona.CONSUMER: (
            "I found two travel options for your trip.",
            "Option A is budget-friendly. Option B is more relaxing.",
        ),
    },
    ActionCategory.GIFTS: {
        Persona.FOUNDER: (
            "Anniversary is in 10 days. I prepared three gift options within your budget.",
            "Each option is sourced from your calendar and partner preference notes.",
        ),
        Persona.PROFESSIONAL: (
            "Anniversary reminder: 10 days. Three options ready.",
            "All sourced from your preferences. No research time needed.",
        ),
        Persona.FAMILY_OFFICE: (
            "Personal reminder: anniversary in 10 days.",
            "Three curated options ready. All within discretionary allocation.",
        ),
        Persona.NEURODIVERGENT: (
            "Anniversary in 10 days. Three gifts ready.",
            "Pick one. All within budget.",
        ),
        Persona.CONSUMER: (
            "Your anniversary is coming up in 10 days!",
            "I found three thoughtful gifts based on your shared memories.",
        ),
    },
    ActionCategory.LEADS: {
        Persona.FOUNDER: (
            "Recovered {leads} leads without spamming. Consent suppression rules applied.",
            "{replied} have already replied. Pipeline value is ${value:,}.",
        ),
        Persona.PROFESSIONAL: (
            "{leads} contacts reconnected. {replied} replied.",
            "No action needed from you. Pipeline value: ${value:,}.",
        ),
        Persona.FAMILY_OFFICE: (
            "{leads} portfolio contacts re-engaged. {replied} responses received.",
            "Estimated pipeline value: ${value:,}.",
        ),
        Persona.NEURODIVERGENT: (
            "{leads} contacts reached. {replied} replied.",
            "No action needed.",
        ),
        Persona.CONSUMER: (
            "Your business had {leads} dormant contacts. I reached out respectfully.",
            "{replied} are interested in reconnecting.",
        ),
    },
    ActionCategory.INSURANCE: {
        Persona.FOUNDER: (
            "Requested four insurance quotes. Two are meaningfully cheaper. Recommendation ready.",
            "{provider} offers the best price-to-coverage ratio.",
        ),
        Persona.PROFESSIONAL: (
            "Four quotes compared. Switching to {provider} saves the most per month.",
            "No paperwork needed from you yet. Just a yes.",
        ),
        Persona.FAMILY_OFFICE: (
            "Four insurance quotes analyzed. Cost-benefit matrix prepared.",
            "Recommendation: {provider} for optimal risk-adjusted coverage.",
        ),
        Persona.NEURODIVERGENT: (
            "Four insurance options. One is clearly best.",
            "{provider}. Cheapest good option.",
        ),
        Persona.CONSUMER: (
            "I compared four insurance options for your family.",
            "{provider} looks like the best fit for your needs.",
        ),
    },
    ActionCategory.INVESTING: {
        Persona.FOUNDER: (
            "Two investing opportunities flagged. Confidence is medium. Risk is non-trivial.",
            "These are informational only. No action taken without explicit approval.",
        ),
        Persona.PROFESSIONAL: (
            "Two investment opportunities worth reviewing when you have time.",
            "Medium confidence. No commitments made. Review at your pace.",
        ),
        Persona.FAMILY_OFFICE: (
            "Two opportunities surfaced from deal flow monitoring.",
            "Confidence: medium. Risk profiles attached. Liquidity assessment included.",
        ),
        Persona.NEURODIVERGENT: (
            "Two investment opportunities. Medium confidence.",
            "No action taken. Review when ready.",
        ),
        Persona.CONSUMER: (
            "I noticed two potential investment opportunities.",
            "Both carry meaningful risk. Sharing for awareness only.",
        ),
    },
}


def narrative_for(category: ActionCategory, persona: Persona, **facts: Any) -> List[str]:
    table = _NARRATIVE[category]
    lines = table.get(persona, table[Persona.FOUNDER])
    return [line.format(**facts) for line in lines]


_PAIN_PRIORITY: Dict[PainPoint, Sequence[ActionCategory]] = {
    PainPoint.STRESS: ("gifts", "travel", "insurance", "leads", "investing"),
    PainPoint.ADMIN: ("leads", "insurance", "travel", "gifts", "investing"),
    PainPoint.MISSED_OPPORTUNITIES: ("leads", "investing", "insurance", "travel", "gifts"),
    PainPoint.FINANCIAL_ANXIETY: ("insurance", "investing", "leads", "travel", "gifts"),
    PainPoint.TIME_PRESSURE: ("leads", "travel", "insurance", "gifts", "investing"),
}


def prioritize(packets: Sequence[DecisionPacket], pain_point: Optional[PainPoint]) -> List[DecisionPacket]:
    """Reorder packets so the categories relevant to a pain point come first."""
    if pain_point is None:
        return list(packets)
    order = [ActionCategory(c) for c in _PAIN_PRIORITY[PainPoint(pain_point)]]
    return sorted(packets, key=lambda p: order.index(p.category))


def _step(category: ActionCategory, description: str, risk: RiskTier, cost: str,
          reversible: bool, config: EngineConfig) -> PlanStep:
    return PlanStep(
        id=f"step_{category.value}_1",
        description=description,
        category=category,
        risk_tier=risk,
        estimated_cost=Money.parse(cost, config.currency),
        reversible=reversible,
    )


def build_packets(
    catalog: WorldCatalog,
    settings: DemoSettings,
    spent: Money,
    config: EngineConfig = DEFAULT_CONFIG,
    clock: Optional[Clock] = None,
) -> List[DecisionPacket]:
    """
    One packet per category, in category order, with initial PolicyChecks.

    Step costs are the agent's own compute spend (cents); option costs are
    what the user would pay for the chosen option.
    """
    clock = clock or utc_now
    persona = settings.persona
    money = lambda units: Money.of(units, config.currency)  # noqa: E731

    replied = sum(1 for lead in catalog.leads if lead.replied)
    pipeline_value = sum(lead.estimated_value for lead in catalog.leads)
    recommended = catalog.recommended_quote
    provider = recommended.provider if recommended else "Aegis Insurance"
    world = catalog.to_dict()

    travel_step = _step(ActionCategory.TRAVEL, "Compare flight and hotel combinations",
                        RiskTier.MEDIUM, "0.02", True, config)
    gifts_step = _step(ActionCategory.GIFTS, "Curate gift options from memory sources",
                       RiskTier.LOW, "0.01", True, config)
    leads_step = _step(ActionCategory.LEADS, "Re-engage dormant leads with personalized outreach",
                       RiskTier.LOW, "0.03", True, config)
    insurance_step = _step(ActionCategory.INSURANCE, "Request and compare insurance quotes",
                           RiskTier.LOW, "0.02", True, config)
    investing_step = _step(ActionCategory.INVESTING, "Flag investment opportunities with risk analysis",
                           RiskTier.HIGH, "0.04", False, config)

    a, b = catalog.travel[0], catalog.travel[1]
    packets = [
        DecisionPacket(
            id="pkt_travel",
            category=ActionCategory.TRAVEL,
            title="Travel Itinerary Ready",
            summary=(
                f"Two itineraries simulated. Option A: ${a.total_cost:,} (cost). "
                f"Option B: ${b.total_cost:,} (comfort)."
            ),
            plan_steps=[travel_step],
            approval_requests=[ApprovalRequest(
                id="approval_travel",
                step_id=travel_step.id,
                category=ActionCategory.TRAVEL,
                description="Select and book a travel itinerary",
                estimated_cost=money(a.total_cost),
                risk_tier=RiskTier.MEDIUM,
                options=tuple(
                    ApprovalOption(t.id, t.label, t.description, money(t.total_cost))
                    for t in catalog.travel
                ),
            )],
            status=PacketStatus.AWAITING_APPROVAL,
            narrative=narrative_for(ActionCategory.TRAVEL, persona),
            data={"itineraries": world["travel"]},
        ),
        DecisionPacket(
            id="pkt_gifts",
            category=ActionCategory.GIFTS,
            title="Anniversary in 10 Days",
            summary="Three gift options prepared within budget. Sourced from calendar events and partner preferences.",
            plan_steps=[gifts_step],
            approval_requests=[ApprovalRequest(
                id="approval_gifts",
                step_id=gifts_step.id,
                category=ActionCategory.GIFTS,
                description="Select and purchase anniversary gift",
                estimated_cost=money(catalog.gifts[0].price),
                risk_tier=RiskTier.LOW,
                options=tuple(
                    ApprovalOption(g.id, g.name, f"{g.description} — ${g.price}", money(g.price))
                    for g in catalog.gifts
                ),
            )],
            status=PacketStatus.AWAITING_APPROVAL,
            narrative=narrative_for(ActionCategory.GIFTS, persona),
            data={"gifts": world["gifts"]},
        ),
        DecisionPacket(
            id="pkt_leads",
            category=ActionCategory.LEADS,
            title=f"{len(catalog.leads)} Leads Recovered",
            summary=(
                f"{replied} have replied. Total pipeline value: ${pipeline_value:,}. "
                "Consent suppression rules applied."
            ),
            plan_steps=[leads_step],
            approval_requests=[],
            status=PacketStatus.EXECUTED,
            narrative=narrative_for(ActionCategory.LEADS, persona,
                                    leads=len(catalog.leads), replied=replied, value=pipeline_value),
            data={"leads": world["leads"]},
            execution_results=[ExecutionResult(
                step_id=leads_step.id,
                success=True,
                summary=f"{len(catalog.leads)} leads contacted. {replied} replied. Consent rules enforced.",
                details={"total_leads": len(catalog.leads), "replied": replied,
                         "pipeline_value": pipeline_value},
                simulated_at=clock().isoformat(),
            )],
        ),
        DecisionPacket(
            id="pkt_insurance",
            category=ActionCategory.INSURANCE,
            title=f"{len(catalog.insurance)} Insurance Quotes Ready",
            summary=f"Compared {len(catalog.insurance)} providers. {provider} recommended for best value.",
            plan_steps=[insurance_step],
            approval_requests=[ApprovalRequest(
                id="approval_insurance",
                step_id=insurance_step.id,
                category=ActionCategory.INSURANCE,
                description="Select insurance provider",
                estimated_cost=Money.zero(config.currency),
                risk_tier=RiskTier.LOW,
                options=tuple(
                    ApprovalOption(q.id, q.provider, f"${q.monthly_premium}/mo — {q.coverage}",
                                   money(q.annual_premium))
                    for q in catalog.insurance
                ),
            )],
            status=PacketStatus.AWAITING_APPROVAL,
            narrative=narrative_for(ActionCategory.INSURANCE, persona, provider=provider),
            data={"quotes": world["insurance"]},
        ),
        DecisionPacket(
            id="pkt_investing",
            category=ActionCategory.INVESTING,
            title=f"{len(catalog.investing)} Opportunities Flagged",
            summary="Medium confidence. Non-trivial risk. No guarantees — simulation only.",
            plan_steps=[investing_step],
            approval_requests=[],
            status=PacketStatus.PENDING,
            narrative=narrative_for(ActionCategory.INVESTING, persona),
            data={"opportunities": world["investing"]},
        ),
    ]

    for packet in packets:
        packet.policy_checks = evaluate_all(packet.plan_steps, settings, spent)
    return packets


# ==============================================================================
# ENGINE
# ==============================================================================

_EXECUTION_SUMMARIES: Dict[ActionCategory, str] = {
    ActionCategory.TRAVEL: "Simulated booking: {label} confirmed.",
    ActionCategory.GIFTS: "Simulated purchase: {label} ordered for delivery.",
    ActionCategory.LEADS: "Lead recovery campaign executed. Consent rules enforced.",
    ActionCategory.INSURANCE: "Simulated enrollment: {label} selected.",
    ActionCategory.INVESTING: "Opportunity flagged for review. No commitment made.",
}

_DEFAULT_LABELS: Dict[ActionCategory, str] = {
    ActionCategory.TRAVEL: "Travel itinerary",
    ActionCategory.GIFTS: "Gift",
    ActionCategory.LEADS: "Lead campaign",
    ActionCategory.INSURANCE: "Insurance plan",
    ActionCategory.INVESTING: "Opportunity",
}


class PacketEngine:
    """
    Owns the packet set, the receipt chain and the running spend.

    Every mutating method returns an IntentResult. Once frozen, the engine
    answers FROZEN to everything and changes nothing.
    """

    def __init__(
        self,
        packets: Sequence[DecisionPacket],
        settings: DemoSettings,
        ledger: AuditLedger,
        session_id: str,
        config: EngineConfig = DEFAULT_CONFIG,
        clock: Optional[Clock] = None,
        budget_spent: Optional[Money] = None,
    ):
        self.packets: List[DecisionPacket] = list(packets)
        self.settings = settings
        self.ledger = ledger
        self.session_id = session_id
        self.config = config
        self.receipt_chain = ReceiptChain(config.max_entries)
        self.budget_spent = budget_spent if budget_spent is not None else config.initial_spend
        self.active_category: Optional[ActionCategory] = None
        self._clock = clock or utc_now
        self._frozen = False

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Irreversible."""
        self._frozen = True

    @property
    def receipts(self) -> List[Receipt]:
        return self.receipt_chain.receipts

    def find_packet(self, packet_id: Optional[str]) -> Optional[DecisionPacket]:
        return next((p for p in self.packets if p.id == packet_id), None)

    def recompute_checks(self) -> None:
        for packet in self.packets:
            packet.policy_checks = evaluate_all(packet.plan_steps, self.settings, self.budget_spent)

    # -------------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------------

    def drill_down(self, category: Optional[str]) -> IntentResult:
        if self._frozen:
            return IntentResult(IntentOutcome.FROZEN, "engine frozen")
        if category is None:
            self.active_category = None
            return IntentResult(IntentOutcome.APPLIED)
        try:
            self.active_category = ActionCategory(category)
        except ValueError:
            return IntentResult(IntentOutcome.IGNORED, f"unknown category {category!r}")
        return IntentResult(IntentOutcome.APPLIED)

    def approve(self, packet_id: Optional[str], option_id: Optional[str] = None) -> IntentResult:
        if self._frozen:
            return IntentResult(IntentOutcome.FROZEN, "engine frozen")
        packet = self.find_packet(packet_id)
        if packet is None:
            return IntentResult(IntentOutcome.IGNORED, f"unknown packet {packet_id!r}")
        if not packet.is_approvable:
            return IntentResult(
                IntentOutcome.IGNORED,
                f"packet {packet.id} is {packet.status.value}, not awaiting approval",
            )
        option = None
        if option_id is not None:
            option = packet.find_option(option_id)
            if option is None:
                return IntentResult(
                    IntentOutcome.IGNORED, f"unknown option {option_id!r} for packet {packet.id}"
                )
        blocked = [c for c in packet.policy_checks if not c.allowed]
        if blocked:
            return IntentResult(IntentOutcome.IGNORED, f"blocked by policy: {blocked[0].reason}")

        packet.status = PacketStatus.APPROVED
        result = self._simulate_execution(packet, option)
        packet.execution_results.append(result)
        packet.status = PacketStatus.EXECUTED

        receipt = self.receipt_chain.mint(
            category=packet.category,
            action_type=f"{packet.category.value}_execution",
            summary=result.summary,
            details=result.details,
            timestamp=self._clock(),
        )
        packet.receipts.append(receipt)
        self.budget_spent = self.budget_spent + packet.total_cost(Money.zero(self.config.currency))
        self.ledger.append(self.session_id, "receipt_minted", {
            "packet_id": packet.id,
            "receipt_id": receipt.id,
            "receipt_hash": receipt.hash,
            "chain_index": receipt.chain_index,
            "budget_spent": self.budget_spent.to_dict(),
        })
        self.recompute_checks()
        logger.info("packet %s executed, receipt #%d", packet.id, receipt.chain_index)
        return IntentResult(IntentOutcome.APPLIED, result.summary, receipt=receipt)

    def deny(self, packet_id: Optional[str]) -> IntentResult:
        if self._frozen:
            return IntentResult(IntentOutcome.FROZEN, "engine frozen")
        packet = self.find_packet(packet_id)
        if packet is None:
            return IntentResult(IntentOutcome.IGNORED, f"unknown packet {packet_id!r}")
        if packet.status is not PacketStatus.AWAITING_APPROVAL:
            return IntentResult(
                IntentOutcome.IGNORED,
                f"packet {packet.id} is {packet.status.value}, not awaiting approval",
            )
        packet.status = PacketStatus.DENIED
        logger.info("packet %s denied", packet.id)
        return IntentResult(IntentOutcome.APPLIED)

    def change_settings(self, partial: Mapping[str, Any]) -> IntentResult:
        if self._frozen:
            return IntentResult(IntentOutcome.FROZEN, "engine frozen")
        try:
            self.settings = self.settings.merged(partial)
        except SettingsError as e:
            return IntentResult(IntentOutcome.IGNORED, str(e))
        self.recompute_checks()
        return IntentResult(IntentOutcome.APPLIED)

    # -------------------------------------------------------------------------
    # Simulation
    # -------------------------------------------------------------------------

    def _simulate_execution(self, packet: DecisionPacket, option: Optional[ApprovalOption]) -> ExecutionResult:
        label = option.label if option else _DEFAULT_LABELS[packet.category]
        cost = option.cost if option and option.cost else Money.zero(self.config.currency)
        return ExecutionResult(
            step_id=packet.plan_steps[0].id if packet.plan_steps else packet.id,
            success=True,
            summary=_EXECUTION_SUMMARIES[packet.category].format(label=label),
            details={
                "category": packet.category.value,
                "selected_option": option.label if option else None,
                "selected_option_id": option.id if option else None,
                "simulated_cost": cost.to_dict(),
            },
            simulated_at=self._clock().isoformat(),
        )
