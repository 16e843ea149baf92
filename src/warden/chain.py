"""
chain.py — Hash-chained, tamper-evident logs

================================================================================
ARCHITECTURE
================================================================================

One append-only abstraction, three instantiations:

    HashChain                   previous-hash linkage, capacity, verify walk
      ├── AuditLedger           session events   hash = H(prev ‖ canon(event))
      ├── ReceiptChain          execution receipts, same seal as events
      └── BlockLedger           investor blocks with a rolling Merkle root
                                hash = H(prev ‖ receipt ‖ number ‖ merkle)

Verification walks from genesis and, for every entry i:
  1. entry.previous_hash == hash of entry i-1 (GENESIS_HASH for i = 0)
  2. recomputed seal == stored hash
  3. entry-specific checks (receipt hash, Merkle root, signature for blocks)
and reports the FIRST failing index. Corrupting any stored field of entry k
therefore reports broken_at <= k.

Entries stay mutable in memory on purpose: a verifier that can only see
immutable objects has nothing to detect. The chain never repairs itself; a
broken segment stays inspectable.

NOTE: the block "signature" is digest(prefix ‖ block_hash). It is a
placeholder with no authenticity guarantee; a real deployment needs
asymmetric signing.
================================================================================
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, Iterator, List, Mapping, Optional, Sequence, TypeVar
import json
import logging
import uuid

from .canonical import GENESIS_HASH, canonicalize, constant_time_equals, digest, digest_record
from .config import DEFAULT_CONFIG, Clock, EngineConfig, utc_now
from .errors import ChainIntegrityError, LedgerCapacityError
from .policy import ActionCategory

logger = logging.getLogger(__name__)

E = TypeVar("E")


def _plain_copy(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Detach caller data: later mutation by the caller must not alter the chain."""
    return json.loads(canonicalize(dict(data)))


# ==============================================================================
# MERKLE AGGREGATION
# ==============================================================================

EMPTY_MERKLE_ROOT = digest("empty")


def merkle_root(hashes: Sequence[str]) -> str:
    """
    Pairwise-hash up a binary tree. An odd element at any level is paired
    with itself; a single hash is its own root.
    """
    if not hashes:
        return EMPTY_MERKLE_ROOT
    level = list(hashes)
    while len(level) > 1:
        level = [
            digest(level[i] + (level[i + 1] if i + 1 < len(level) else level[i]))
            for i in range(0, len(level), 2)
        ]
    return level[0]


# ==============================================================================
# GENERIC CHAIN
# ==============================================================================

@dataclass
class ChainVerification:
    """Outcome of a verification walk."""
    valid: bool
    broken_at: Optional[int] = None
    length: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "broken_at": self.broken_at, "length": self.length}


class HashChain(Generic[E]):
    """
    Append-only hash-linked log.

    Subclasses define how an entry is sealed (_seal), where its stored hash
    lives (_stored_hash) and optional extra per-entry checks (_check_entry).
    Appends are strictly sequential; callers serialize access.
    """

    MAX_ENTRIES: int = 1_000_000

    def __init__(self, max_entries: Optional[int] = None):
        self._entries: List[E] = []
        self._max_entries = max_entries or self.MAX_ENTRIES

    # -- hooks ---------------------------------------------------------------

    def _seal(self, entry: E) -> str:
        raise NotImplementedError

    def _stored_hash(self, entry: E) -> str:
        return entry.hash  # type: ignore[attr-defined]

    def _check_entry(self, index: int, entry: E) -> bool:
        return True

    # -- append bookkeeping -------------------------------------------------

    @property
    def last_hash(self) -> str:
        return self._stored_hash(self._entries[-1]) if self._entries else GENESIS_HASH

    def _next_link(self) -> tuple[int, str]:
        """(next index, previous hash) for the entry about to be appended."""
        if len(self._entries) >= self._max_entries:
            raise LedgerCapacityError(f"Chain at max capacity ({self._max_entries})")
        return len(self._entries), self.last_hash

    def _push(self, entry: E) -> E:
        self._entries.append(entry)
        return entry

    # -- verification -------------------------------------------------------

    def verify(self) -> ChainVerification:
        """Walk from genesis; report the first index that fails."""
        expected_prev = GENESIS_HASH
        for i, entry in enumerate(self._entries):
            stored = self._stored_hash(entry)
            if not constant_time_equals(entry.previous_hash, expected_prev):  # type: ignore[attr-defined]
                return self._broken(i)
            if not constant_time_equals(self._seal(entry), stored):
                return self._broken(i)
            if not self._check_entry(i, entry):
                return self._broken(i)
            expected_prev = stored
        return ChainVerification(valid=True, length=len(self._entries))

    def _broken(self, index: int) -> ChainVerification:
        logger.warning("%s integrity broken at index %d", type(self).__name__, index)
        return ChainVerification(valid=False, broken_at=index, length=len(self._entries))

    def require_valid(self) -> ChainVerification:
        """verify(), raising ChainIntegrityError when the chain is broken."""
        result = self.verify()
        if not result.valid:
            raise ChainIntegrityError(result.broken_at)
        return result

    # -- access -------------------------------------------------------------

    def get_all(self) -> List[E]:
        """Shallow copy of the entry list. Entries themselves are live."""
        return self._entries.copy()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[E]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> E:
        return self._entries[index]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(entries={len(self._entries)})"


# ==============================================================================
# SESSION AUDIT LEDGER
# ==============================================================================

@dataclass
class AuditEvent:
    """Generic ledger entry."""
    id: str
    session_id: str
    timestamp: str
    type: str
    data: Dict[str, Any]
    chain_index: int
    previous_hash: str
    hash: str = ""

    def record(self) -> Dict[str, Any]:
        """Hashed content: everything except the hash itself."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "type": self.type,
            "data": self.data,
            "chain_index": self.chain_index,
            "previous_hash": self.previous_hash,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {**self.record(), "hash": self.hash}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuditEvent:
        return cls(**{k: data[k] for k in (
            "id", "session_id", "timestamp", "type", "data",
            "chain_index", "previous_hash", "hash",
        )})


class AuditLedger(HashChain[AuditEvent]):
    """
    Session-scoped event chain.

    Every user intent and every minted receipt lands here. The genesis
    previous_hash is GENESIS_HASH (64 zeros).
    """

    def __init__(self, max_entries: Optional[int] = None, clock: Optional[Clock] = None):
        super().__init__(max_entries)
        self._clock = clock or utc_now

    def _seal(self, entry: AuditEvent) -> str:
        return digest(entry.previous_hash + canonicalize(entry.record()))

    def _check_entry(self, index: int, entry: AuditEvent) -> bool:
        return entry.chain_index == index

    def append(self, session_id: str, type: str, data: Mapping[str, Any]) -> AuditEvent:
        """
        Append a new event and return it.

        Raises:
            LedgerCapacityError: if the ledger is at max capacity
        """
        chain_index, previous_hash = self._next_link()
        event = AuditEvent(
            id=f"evt_{chain_index}_{uuid.uuid4().hex[:8]}",
            session_id=session_id,
            timestamp=self._clock().isoformat(),
            type=type,
            data=_plain_copy(data),
            chain_index=chain_index,
            previous_hash=previous_hash,
        )
        event.hash = self._seal(event)
        return self._push(event)

    @property
    def events(self) -> List[AuditEvent]:
        return self.get_all()

    def find_by_type(self, type: str) -> List[AuditEvent]:
        return [e for e in self._entries if e.type == type]

    def to_json(self) -> str:
        return json.dumps([e.to_dict() for e in self._entries], indent=2)

    @classmethod
    def from_events(cls, events: Sequence[Mapping[str, Any]]) -> AuditLedger:
        """Rebuild a ledger verbatim from exported events. Not re-sealed."""
        ledger = cls()
        ledger._entries = [AuditEvent.from_dict(e) for e in events]
        return ledger


# ==============================================================================
# RECEIPT CHAIN
# ==============================================================================

@dataclass
class Receipt:
    """
    Record of one completed execution.

    verified is derived state: True when minted, refreshed by
    ReceiptChain.verify(). It is not part of the sealed content.
    """
    id: str
    chain_index: int
    timestamp: str
    category: ActionCategory
    action_type: str
    summary: str
    details: Dict[str, Any]
    previous_hash: str
    hash: str = ""
    verified: bool = False

    def record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chain_index": self.chain_index,
            "timestamp": self.timestamp,
            "category": self.category.value,
            "action_type": self.action_type,
            "summary": self.summary,
            "details": self.details,
            "previous_hash": self.previous_hash,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {**self.record(), "hash": self.hash, "verified": self.verified}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Receipt:
        return cls(
            id=data["id"],
            chain_index=data["chain_index"],
            timestamp=data["timestamp"],
            category=ActionCategory(data["category"]),
            action_type=data["action_type"],
            summary=data["summary"],
            details=data["details"],
            previous_hash=data["previous_hash"],
            hash=data["hash"],
            verified=data["verified"],
        )


class ReceiptChain(HashChain[Receipt]):
    """Receipts chain to each other; chain_index is gapless from 0."""

    def _seal(self, entry: Receipt) -> str:
        return digest(entry.previous_hash + canonicalize(entry.record()))

    def _check_entry(self, index: int, entry: Receipt) -> bool:
        return entry.chain_index == index

    def mint(
        self,
        category: ActionCategory,
        action_type: str,
        summary: str,
        details: Mapping[str, Any],
        timestamp: datetime,
    ) -> Receipt:
        chain_index, previous_hash = self._next_link()
        receipt = Receipt(
            id=f"rcpt_{category.value}_{chain_index}_{uuid.uuid4().hex[:8]}",
            chain_index=chain_index,
            timestamp=timestamp.isoformat(),
            category=category,
            action_type=action_type,
            summary=summary,
            details=_plain_copy(details),
            previous_hash=previous_hash,
        )
        receipt.hash = self._seal(receipt)
        receipt.verified = True
        return self._push(receipt)

    def verify(self) -> ChainVerification:
        """Verify and refresh every receipt's verified flag."""
        result = super().verify()
        cutoff = len(self._entries) if result.valid else result.broken_at
        for i, receipt in enumerate(self._entries):
            receipt.verified = i < cutoff
        return result

    @property
    def receipts(self) -> List[Receipt]:
        return self.get_all()

    @classmethod
    def from_receipts(cls, receipts: Sequence[Receipt]) -> ReceiptChain:
        chain = cls()
        chain._entries = list(receipts)
        return chain


# ==============================================================================
# BLOCK LEDGER (rolling Merkle root)
# ==============================================================================

@dataclass
class LedgerBlock:
    """
    Block of the investor ledger.

    receipt_hash = H(canonical(payload)), payload = {data, event_type,
    created_at}, so the envelope fields are bound to the seal as well.
    """
    block_number: int
    block_hash: str
    previous_hash: str
    receipt_hash: str
    merkle_root: str
    created_at: str
    signature: str
    event_type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {"data": self.data, "event_type": self.event_type, "created_at": self.created_at}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block_number": self.block_number,
            "block_hash": self.block_hash,
            "previous_hash": self.previous_hash,
            "receipt_hash": self.receipt_hash,
            "merkle_root": self.merkle_root,
            "created_at": self.created_at,
            "signature": self.signature,
            "event_type": self.event_type,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LedgerBlock:
        return cls(**{k: data[k] for k in (
            "block_number", "block_hash", "previous_hash", "receipt_hash",
            "merkle_root", "created_at", "signature", "event_type", "data",
        )})


class BlockLedger(HashChain[LedgerBlock]):
    """
    Block chain used by the investor walkthrough.

    An explicit instance owned by its caller; reset() clears it in place.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG, clock: Optional[Clock] = None):
        super().__init__(config.max_entries)
        self._config = config
        self._clock = clock or utc_now

    @property
    def window(self) -> int:
        return self._config.merkle_window

    def _stored_hash(self, entry: LedgerBlock) -> str:
        return entry.block_hash

    def _seal(self, entry: LedgerBlock) -> str:
        return digest(
            f"{entry.previous_hash}{entry.receipt_hash}{entry.block_number}{entry.merkle_root}"
        )

    def sign(self, block_hash: str) -> str:
        """Placeholder signature. Not cryptographically meaningful."""
        return digest(self._config.signing_prefix + block_hash)

    def _window_root(self, upto: int) -> str:
        """Merkle root over the receipt hashes of the last window blocks ending at upto."""
        start = max(0, upto + 1 - self.window)
        return merkle_root([b.receipt_hash for b in self._entries[start:upto + 1]])

    def _check_entry(self, index: int, entry: LedgerBlock) -> bool:
        return (
            entry.block_number == index
            and constant_time_equals(entry.receipt_hash, digest_record(entry.payload()))
            and constant_time_equals(entry.merkle_root, self._window_root(index))
            and constant_time_equals(entry.signature, self.sign(entry.block_hash))
        )

    def append_block(self, event_type: str, data: Mapping[str, Any]) -> LedgerBlock:
        block_number, previous_hash = self._next_link()
        block = LedgerBlock(
            block_number=block_number,
            block_hash="",
            previous_hash=previous_hash,
            receipt_hash="",
            merkle_root="",
            created_at=self._clock().isoformat(),
            signature="",
            event_type=event_type,
            data=_plain_copy(data),
        )
        block.receipt_hash = digest_record(block.payload())
        start = max(0, block_number + 1 - self.window)
        recent = [b.receipt_hash for b in self._entries[start:]]
        block.merkle_root = merkle_root(recent + [block.receipt_hash])
        block.block_hash = self._seal(block)
        block.signature = self.sign(block.block_hash)
        logger.debug("block %d appended (%s)", block_number, event_type)
        return self._push(block)

    @property
    def blocks(self) -> List[LedgerBlock]:
        return self.get_all()

    @property
    def receipt_hashes(self) -> List[str]:
        return [b.receipt_hash for b in self._entries]

    def reset(self) -> None:
        self._entries = []

    def to_json(self) -> str:
        return json.dumps([b.to_dict() for b in self._entries], indent=2)
