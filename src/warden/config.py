"""
config.py — Engine configuration

Tunable constants of the simulation live here instead of being scattered
as literals. Defaults reproduce the reference demo exactly.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from .errors import SettingsError
from .money import Currency, Money


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine-wide settings.

    merkle_window is the number of most recent receipt hashes aggregated into
    each block's Merkle root. signing_prefix feeds the placeholder block
    signature, which is NOT a real signature.
    """
    currency: Currency = Currency.USD
    # Spend already booked by overnight background work at session start
    initial_budget_spent: str = "0.12"
    merkle_window: int = 8
    signing_prefix: str = "sig_demo_key_"
    reference_date: datetime = field(
        default_factory=lambda: datetime(2026, 2, 1, tzinfo=timezone.utc)
    )
    max_entries: int = 1_000_000
    policy_version: str = "WARDEN-2026-01"

    def __post_init__(self) -> None:
        if self.merkle_window < 1:
            raise SettingsError(f"merkle_window must be >= 1, got {self.merkle_window}")
        if self.max_entries < 1:
            raise SettingsError(f"max_entries must be >= 1, got {self.max_entries}")
        try:
            spent = Money.parse(self.initial_budget_spent, self.currency)
        except ValueError as e:
            raise SettingsError(f"initial_budget_spent: {e}") from None
        if spent.minor_units < 0:
            raise SettingsError("initial_budget_spent cannot be negative")

    @property
    def initial_spend(self) -> Money:
        return Money.parse(self.initial_budget_spent, self.currency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency.code,
            "initial_budget_spent": self.initial_budget_spent,
            "merkle_window": self.merkle_window,
            "signing_prefix": self.signing_prefix,
            "reference_date": self.reference_date.isoformat(),
            "max_entries": self.max_entries,
            "policy_version": self.policy_version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EngineConfig:
        """Build from a (possibly partial) mapping. Unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise SettingsError(f"Unknown config keys: {sorted(unknown)}")
        kwargs = dict(data)
        if "currency" in kwargs and not isinstance(kwargs["currency"], Currency):
            try:
                kwargs["currency"] = Currency[kwargs["currency"]]
            except KeyError:
                raise SettingsError(f"Unknown currency: {kwargs['currency']!r}") from None
        if "reference_date" in kwargs and isinstance(kwargs["reference_date"], str):
            kwargs["reference_date"] = datetime.fromisoformat(kwargs["reference_date"])
        return cls(**kwargs)


DEFAULT_CONFIG = EngineConfig()


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)
