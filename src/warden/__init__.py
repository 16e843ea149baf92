"""
warden — Governed decision-packet engine with a tamper-evident audit ledger

A deterministic simulation of an agent that prepares decisions overnight,
checks every step against the user's autonomy and budget, executes only
what policy allows, and records everything in hash-chained ledgers.

================================================================================
QUICK START
================================================================================

Interactive session:

    from warden import SessionController

    session = SessionController(seed=42)
    travel = session.snapshot().packet("travel")

    result = session.approve(travel.id, travel.approval_requests[0].options[0].id)
    assert result.applied
    assert session.verify().valid          # hash chain intact
    print(session.budget_spent.format())   # "$0.14"

Settings change (policy checks are recomputed, never mutated):

    session.change_settings(autonomy="observe", budget_cap="0.10")

Investor walkthrough:

    from warden import InvestorSimulator, AttackType

    sim = InvestorSimulator()
    sim.run_pipeline("travel")
    attempt = sim.simulate_attack(AttackType.PROMPT_INJECTION)
    report = sim.run_advisor_consensus()
    assert sim.verify_ledger().valid

================================================================================
"""

# Primitives
from .money import Money, Currency
from .rng import SeededStream
from .canonical import GENESIS_HASH, canonicalize, digest, digest_record
from .config import EngineConfig, DEFAULT_CONFIG
from .errors import WardenError, SettingsError, LedgerCapacityError, ChainIntegrityError

# World + policy
from .world import WorldCatalog, generate_world
from .policy import (
    ActionCategory,
    AutonomyScope,
    BudgetCap,
    DemoSettings,
    Persona,
    PlanStep,
    PolicyCheck,
    RiskTier,
    StressLevel,
    evaluate,
)

# Ledgers
from .chain import (
    AuditEvent,
    AuditLedger,
    BlockLedger,
    ChainVerification,
    LedgerBlock,
    Receipt,
    ReceiptChain,
    merkle_root,
)

# Engine
from .packets import (
    DecisionPacket,
    IntentOutcome,
    IntentResult,
    PacketEngine,
    PacketStatus,
    PainPoint,
)
from .session import Intent, SessionController, SessionSnapshot
from .simulator import AttackType, InvestorSimulator, RequiredApproval

__version__ = "0.3.0"
__license__ = "MIT"

__all__ = [
    # Primitives
    "Money",
    "Currency",
    "SeededStream",
    "GENESIS_HASH",
    "canonicalize",
    "digest",
    "digest_record",
    "EngineConfig",
    "DEFAULT_CONFIG",
    "WardenError",
    "SettingsError",
    "LedgerCapacityError",
    "ChainIntegrityError",
    # World + policy
    "WorldCatalog",
    "generate_world",
    "ActionCategory",
    "AutonomyScope",
    "BudgetCap",
    "DemoSettings",
    "Persona",
    "PlanStep",
    "PolicyCheck",
    "RiskTier",
    "StressLevel",
    "evaluate",
    # Ledgers
    "AuditEvent",
    "AuditLedger",
    "BlockLedger",
    "ChainVerification",
    "LedgerBlock",
    "Receipt",
    "ReceiptChain",
    "merkle_root",
    # Engine
    "DecisionPacket",
    "IntentOutcome",
    "IntentResult",
    "PacketEngine",
    "PacketStatus",
    "PainPoint",
    "Intent",
    "SessionController",
    "SessionSnapshot",
    "AttackType",
    "InvestorSimulator",
    "RequiredApproval",
]
