"""
session.py — Session controller

Wraps the packet engine and the session audit ledger. For every intent:

    1. append `action_<name>` to the ledger (the full intent envelope)
    2. apply it to the PacketEngine
    3. re-verify the whole ledger
    4. on failure: FREEZE — every later intent is a no-op

Freezing is permanent for the session and models "halt on detected
tampering". The broken ledger is kept as-is for diagnosis.

One controller owns one world, one ledger and one packet set; nothing is
shared across sessions. Intents are serialized through a lock so a second
intent never interleaves with an in-flight append/verify.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
import json
import logging
import threading
import time

from .chain import AuditLedger, ChainVerification, Receipt, ReceiptChain
from .config import DEFAULT_CONFIG, Clock, EngineConfig, utc_now
from .money import Money
from .packets import (
    DecisionPacket,
    IntentOutcome,
    IntentResult,
    PacketEngine,
    PainPoint,
    build_packets,
    prioritize,
)
from .policy import ActionCategory, DemoSettings
from .rng import SeededStream
from .world import WorldCatalog, generate_world

logger = logging.getLogger(__name__)

INITIAL_PHASE = "while_you_slept"


# ==============================================================================
# INTENTS
# ==============================================================================

class IntentAction(str, Enum):
    DRILL_DOWN = "drill_down"
    APPROVE = "approve"
    DENY = "deny"
    CHANGE_SETTINGS = "change_settings"


@dataclass(frozen=True)
class Intent:
    """A user intent. Build with the classmethod constructors."""
    action: IntentAction
    category: Optional[str] = None
    packet_id: Optional[str] = None
    option_id: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    @classmethod
    def drill_down(cls, category: Optional[str]) -> Intent:
        return cls(IntentAction.DRILL_DOWN, category=_value(category))

    @classmethod
    def approve(cls, packet_id: str, option_id: Optional[str] = None) -> Intent:
        return cls(IntentAction.APPROVE, packet_id=packet_id, option_id=option_id)

    @classmethod
    def deny(cls, packet_id: str) -> Intent:
        return cls(IntentAction.DENY, packet_id=packet_id)

    @classmethod
    def change_settings(cls, **partial: Any) -> Intent:
        return cls(IntentAction.CHANGE_SETTINGS,
                   payload={k: _value(v) for k, v in partial.items()})

    def envelope(self, session_id: str, timestamp: str) -> Dict[str, Any]:
        """Ledger form of the intent."""
        return {
            "session_id": session_id,
            "timestamp": timestamp,
            "action": self.action.value,
            "category": self.category,
            "packet_id": self.packet_id,
            "option_id": self.option_id,
            "payload": self.payload,
        }


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


def _base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    sign, n = ("-", -n) if n < 0 else ("", n)
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = digits[r] + out
        if n == 0:
            return sign + out


# ==============================================================================
# SNAPSHOT
# ==============================================================================

@dataclass
class SessionSnapshot:
    """Serializable view of a session. Round-trips exactly through JSON."""
    session_id: str
    seed: int
    settings: DemoSettings
    current_phase: str
    packets: List[DecisionPacket]
    receipts: List[Receipt]
    budget_spent: Money
    active_category: Optional[ActionCategory] = None
    frozen: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "seed": self.seed,
            "settings": self.settings.to_dict(),
            "current_phase": self.current_phase,
            "packets": [p.to_dict() for p in self.packets],
            "receipts": [r.to_dict() for r in self.receipts],
            "budget_spent": self.budget_spent.to_dict(),
            "active_category": self.active_category.value if self.active_category else None,
            "frozen": self.frozen,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionSnapshot:
        active = data.get("active_category")
        return cls(
            session_id=data["session_id"],
            seed=data["seed"],
            settings=DemoSettings.from_dict(data["settings"]),
            current_phase=data["current_phase"],
            packets=[DecisionPacket.from_dict(p) for p in data["packets"]],
            receipts=[Receipt.from_dict(r) for r in data["receipts"]],
            budget_spent=Money.from_dict(data["budget_spent"]),
            active_category=ActionCategory(active) if active else None,
            frozen=data["frozen"],
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> SessionSnapshot:
        return cls.from_dict(json.loads(text))

    def packet(self, category: ActionCategory) -> Optional[DecisionPacket]:
        return next((p for p in self.packets if p.category is ActionCategory(category)), None)

    def verify_receipts(self) -> ChainVerification:
        """Re-walk the exported receipt chain and refresh its verified flags."""
        return ReceiptChain.from_receipts(self.receipts).verify()


# ==============================================================================
# CONTROLLER
# ==============================================================================

class SessionController:
    """
    One interactive session.

    USAGE:
        session = SessionController(seed=42)
        travel = session.snapshot().packet("travel")
        session.approve(travel.id, travel.approval_requests[0].options[0].id)
        assert session.verify().valid
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        settings: Optional[DemoSettings] = None,
        pain_point: Optional[PainPoint] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.seed = seed if seed is not None else time.time_ns() // 1_000_000
        self.session_id = f"session_{_base36(self.seed)}"
        self.config = config or DEFAULT_CONFIG
        self._clock = clock or utc_now
        self._lock = threading.RLock()
        self._frozen = False
        self.current_phase = INITIAL_PHASE
        settings = settings or DemoSettings()
        pain_point = PainPoint(pain_point) if pain_point is not None else None

        self.stream = SeededStream(self.seed)
        self.catalog: WorldCatalog = generate_world(self.stream, self.config)
        self.ledger = AuditLedger(self.config.max_entries, clock=self._clock)

        spent = self.config.initial_spend
        packets = build_packets(self.catalog, settings, spent, self.config, self._clock)
        self.engine = PacketEngine(
            prioritize(packets, pain_point),
            settings,
            self.ledger,
            self.session_id,
            config=self.config,
            clock=self._clock,
            budget_spent=spent,
        )
        self.ledger.append(self.session_id, "session_init", {
            "seed": self.seed,
            "settings": settings.to_dict(),
            "pain_point": pain_point.value if pain_point else None,
        })
        logger.info("session %s started (seed=%d)", self.session_id, self.seed)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def settings(self) -> DemoSettings:
        return self.engine.settings

    @property
    def packets(self) -> List[DecisionPacket]:
        return self.engine.packets

    @property
    def receipts(self) -> List[Receipt]:
        return self.engine.receipts

    @property
    def budget_spent(self) -> Money:
        return self.engine.budget_spent

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot.from_dict(SessionSnapshot(
                session_id=self.session_id,
                seed=self.seed,
                settings=self.engine.settings,
                current_phase=self.current_phase,
                packets=self.engine.packets,
                receipts=self.engine.receipts,
                budget_spent=self.engine.budget_spent,
                active_category=self.engine.active_category,
                frozen=self._frozen,
            ).to_dict())

    def verify(self) -> ChainVerification:
        with self._lock:
            return self.ledger.verify()

    def verify_receipts(self) -> ChainVerification:
        with self._lock:
            return self.engine.receipt_chain.verify()

    # -------------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------------

    def act(self, intent: Intent) -> IntentResult:
        with self._lock:
            if self._frozen:
                logger.warning("session %s frozen; %s ignored", self.session_id, intent.action.value)
                return IntentResult(IntentOutcome.FROZEN, "session compromised: ledger integrity failure")

            event = self.ledger.append(
                self.session_id,
                f"action_{intent.action.value}",
                intent.envelope(self.session_id, self._clock().isoformat()),
            )
            result = self._dispatch(intent)
            result.event = event
            if result.outcome is IntentOutcome.IGNORED:
                logger.warning("intent %s ignored: %s", intent.action.value, result.reason)

            verification = self.ledger.verify()
            if not verification.valid:
                self._freeze(verification)
            return result

    def _dispatch(self, intent: Intent) -> IntentResult:
        if intent.action is IntentAction.DRILL_DOWN:
            return self.engine.drill_down(intent.category)
        if intent.action is IntentAction.APPROVE:
            return self.engine.approve(intent.packet_id, intent.option_id)
        if intent.action is IntentAction.DENY:
            return self.engine.deny(intent.packet_id)
        if intent.action is IntentAction.CHANGE_SETTINGS:
            return self.engine.change_settings(intent.payload or {})
        return IntentResult(IntentOutcome.IGNORED, f"unsupported action {intent.action!r}")

    def _freeze(self, verification: ChainVerification) -> None:
        self._frozen = True
        self.engine.freeze()
        logger.warning(
            "session %s FROZEN: audit ledger broken at index %s",
            self.session_id, verification.broken_at,
        )

    def drill_down(self, category: Optional[str]) -> IntentResult:
        return self.act(Intent.drill_down(category))

    def approve(self, packet_id: str, option_id: Optional[str] = None) -> IntentResult:
        return self.act(Intent.approve(packet_id, option_id))

    def deny(self, packet_id: str) -> IntentResult:
        return self.act(Intent.deny(packet_id))

    def change_settings(self, **partial: Any) -> IntentResult:
        return self.act(Intent.change_settings(**partial))

    def __repr__(self) -> str:
        return (
            f"SessionController(id={self.session_id}, packets={len(self.packets)}, "
            f"receipts={len(self.receipts)}, frozen={self._frozen})"
        )
