"""
world.py — Seeded synthetic world

Builds the five domain catalogs the assistant works over (travel, gifts,
leads, insurance, investing). Every number that varies between sessions is
drawn from the session's SeededStream, so a catalog is a pure function of
(seed, config). Prices are whole currency units.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
import re

from .config import DEFAULT_CONFIG, EngineConfig
from .rng import SeededStream


# ==============================================================================
# CATALOG RECORDS
# ==============================================================================

@dataclass(frozen=True)
class FlightOption:
    id: str
    airline: str
    departure: str
    arrival: str
    duration: str
    price: int
    cabin: str
    stops: int


@dataclass(frozen=True)
class HotelOption:
    id: str
    name: str
    rating: float
    price_per_night: int
    nights: int
    total: int
    amenities: Tuple[str, ...]


@dataclass(frozen=True)
class TravelItinerary:
    id: str
    label: str
    description: str
    flight: FlightOption
    hotel: HotelOption
    total_cost: int


@dataclass(frozen=True)
class GiftOption:
    id: str
    name: str
    description: str
    price: int
    delivery_days: int
    memory_source: str
    category: str


@dataclass(frozen=True)
class RecoveredLead:
    id: str
    company: str
    contact: str
    email: str
    last_activity: str
    days_silent: int
    recovery_method: str
    replied: bool
    reply_snippet: Optional[str]
    consent_status: str
    estimated_value: int


@dataclass(frozen=True)
class InsuranceQuote:
    id: str
    provider: str
    monthly_premium: int
    annual_premium: int
    coverage: str
    deductible: int
    rating: float
    pros: Tuple[str, ...]
    cons: Tuple[str, ...]
    recommended: bool
    negotiation_snippet: str


@dataclass(frozen=True)
class InvestingOpportunity:
    id: str
    name: str
    sector: str
    type: str
    confidence: str
    projected_return: str
    risk_level: str
    risk_notes: Tuple[str, ...]
    minimum_investment: int
    time_horizon: str
    disclaimer: str


@dataclass(frozen=True)
class WorldCatalog:
    """Immutable for the lifetime of a session."""
    travel: Tuple[TravelItinerary, ...]
    gifts: Tuple[GiftOption, ...]
    leads: Tuple[RecoveredLead, ...]
    insurance: Tuple[InsuranceQuote, ...]
    investing: Tuple[InvestingOpportunity, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "travel": [_plain(t) for t in self.travel],
            "gifts": [_plain(g) for g in self.gifts],
            "leads": [_plain(l) for l in self.leads],
            "insurance": [_plain(q) for q in self.insurance],
            "investing": [_plain(o) for o in self.investing],
        }

    @property
    def recommended_quote(self) -> Optional[InsuranceQuote]:
        return next((q for q in self.insurance if q.recommended), None)


def _plain(record: Any) -> Dict[str, Any]:
    """asdict() with tuples turned into lists, JSON-ready."""
    def convert(value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [convert(v) for v in value]
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value
    return convert(asdict(record))


# ==============================================================================
# TRAVEL
# ==============================================================================

_AIRLINES = ("Emirates", "Singapore Airlines", "Delta", "United")
_HOTELS = ("The Ritz-Carlton", "Four Seasons", "Marriott", "Hilton Garden Inn")
_LUXURY_AMENITIES = ("Spa", "Pool", "Gym", "Concierge")
_BUDGET_AMENITIES = ("Gym", "WiFi", "Parking")


def generate_travel(stream: SeededStream) -> List[TravelItinerary]:
    """Two itineraries: A optimises cost, B optimises comfort."""
    itineraries = []

    flight_a = FlightOption(
        id="flight_a",
        airline=_AIRLINES[stream.int(2, 3)],
        departure="2026-03-01T08:30:00Z",
        arrival="2026-03-01T14:45:00Z",
        duration="6h 15m",
        price=340 + stream.int(0, 80),
        cabin="Economy",
        stops=1,
    )
    hotel_a_name = _HOTELS[stream.int(2, 3)]
    hotel_a_rating = 4.0 + stream.next() * 0.5
    hotel_a_rate = 120 + stream.int(0, 30)
    itineraries.append(_itinerary(
        "itinerary_a",
        "Option A — Cost Optimized",
        "Best value. Economy class with a comfortable 4-star hotel.",
        flight_a,
        HotelOption("hotel_a", hotel_a_name, round(hotel_a_rating, 1), hotel_a_rate,
                    3, hotel_a_rate * 3, _BUDGET_AMENITIES),
    ))

    flight_b = FlightOption(
        id="flight_b",
        airline=_AIRLINES[stream.int(0, 1)],
        departure="2026-03-01T10:00:00Z",
        arrival="2026-03-01T15:30:00Z",
        duration="5h 30m",
        price=1200 + stream.int(0, 300),
        cabin="Business",
        stops=0,
    )
    hotel_b_name = _HOTELS[stream.int(0, 1)]
    hotel_b_rating = 4.5 + stream.next() * 0.5
    hotel_b_rate = 350 + stream.int(0, 100)
    itineraries.append(_itinerary(
        "itinerary_b",
        "Option B — Comfort Optimized",
        "Premium experience. Business class with a 5-star luxury hotel.",
        flight_b,
        HotelOption("hotel_b", hotel_b_name, round(hotel_b_rating, 1), hotel_b_rate,
                    3, hotel_b_rate * 3, _LUXURY_AMENITIES),
    ))

    return itineraries


def _itinerary(id_, label, description, flight, hotel) -> TravelItinerary:
    return TravelItinerary(id_, label, description, flight, hotel, flight.price + hotel.total)


# ==============================================================================
# GIFTS
# ==============================================================================

def generate_gifts(stream: SeededStream) -> List[GiftOption]:
    return [
        GiftOption(
            id="gift_1",
            name="Personalized Star Map",
            description="A framed star map showing the night sky on your wedding date, printed on archival paper.",
            price=89 + stream.int(0, 20),
            delivery_days=5 + stream.int(0, 3),
            memory_source="Calendar event: Wedding Anniversary (extracted date)",
            category="Sentimental",
        ),
        GiftOption(
            id="gift_2",
            name="Weekend Spa Package",
            description="Couples spa day at a luxury resort with massage, facial, and champagne lunch.",
            price=250 + stream.int(0, 50),
            delivery_days=1,
            memory_source='Partner preference notes: "loves spa days"',
            category="Experience",
        ),
        GiftOption(
            id="gift_3",
            name="Custom Photo Book",
            description="A 40-page hardcover photo book curated from your shared photo library highlights.",
            price=65 + stream.int(0, 15),
            delivery_days=7 + stream.int(0, 3),
            memory_source="Shared photo library: top 50 moments by engagement",
            category="Keepsake",
        ),
    ]


# ==============================================================================
# LEADS (CRM)
# ==============================================================================

_COMPANIES = (
    "Acme Corp", "TechNova", "BrightPath", "Zenith Labs", "Pulse Digital",
    "NorthStar AI", "Apex Solutions", "FutureBridge", "ClearView Analytics", "OmniTech",
    "Stratosphere", "Quantum Leap", "BlueShift", "DataForge", "Nexus Systems",
    "PrimeScale", "VectorFlow", "CoreLogic", "SkyVault", "ArcReactor",
)

_CONTACTS = (
    "Sarah Chen", "Marcus Johnson", "Elena Rodriguez", "James Park", "Priya Sharma",
    "Tom Wilson", "Amara Obi", "David Kim", "Lisa Zhang", "Ryan O'Brien",
    "Mei Lin", "Carlos Diaz", "Fatima Al-Hassan", "Noah Fischer", "Anika Patel",
    "Brandon Lee", "Sophie Martin", "Alex Turner", "Kenji Tanaka", "Rachel Green",
)

_RECOVERY_METHODS = (
    "Personalized re-engagement email",
    "Value-add content share",
    "Case study matching their industry",
    "Product update notification",
    "Seasonal check-in",
)

_REPLIES = (
    "Thanks for reaching out! Let's set up a call next week.",
    "Interesting timing — we were just discussing this internally.",
    "Can you send over the updated pricing?",
    "We're evaluating options for Q2. Add me to the shortlist.",
    "Not right now, but keep me posted on the enterprise tier.",
)

LEAD_COUNT = 20


def generate_leads(stream: SeededStream, config: EngineConfig = DEFAULT_CONFIG) -> List[RecoveredLead]:
    leads = []
    for i in range(LEAD_COUNT):
        replied = stream.next() > 0.6
        activity_age = stream.int(30, 120)
        days_silent = stream.int(30, 120)
        contact, company = _CONTACTS[i], _COMPANIES[i]
        mailbox = re.sub(r"[^a-z]", ".", contact.lower())
        domain = re.sub(r"\s", "", company.lower())
        leads.append(RecoveredLead(
            id=f"lead_{i + 1}",
            company=company,
            contact=contact,
            email=f"{mailbox}@{domain}.com",
            last_activity=(config.reference_date - timedelta(days=activity_age)).isoformat(),
            days_silent=days_silent,
            recovery_method=stream.pick(_RECOVERY_METHODS),
            replied=replied,
            reply_snippet=stream.pick(_REPLIES) if replied else None,
            consent_status="opted-in",
            estimated_value=stream.int(5, 50) * 1000,
        ))
    return leads


# ==============================================================================
# INSURANCE
# ==============================================================================

def generate_insurance(stream: SeededStream) -> List[InsuranceQuote]:
    rows = [
        ("ins_1", "Shield Protect", 180 + stream.int(0, 30), "$2M comprehensive", 500, 4.6,
         ("Lowest deductible", "24/7 claims support", "No rate increases for 3 years"),
         ("Higher monthly premium", "Limited international coverage"),
         False, '"We can match any competitor within 5% if you commit annually."'),
        ("ins_2", "Aegis Insurance", 145 + stream.int(0, 20), "$2M comprehensive", 1000, 4.4,
         ("Best price-to-coverage ratio", "Strong digital claims process"),
         ("Higher deductible", "Phone wait times reported"),
         True, '"For annual prepayment, we offer an additional 8% discount."'),
        ("ins_3", "Fortress Mutual", 210 + stream.int(0, 25), "$3M comprehensive", 750, 4.8,
         ("Highest coverage", "Top-rated customer satisfaction", "Global coverage"),
         ("Premium pricing", "Complex policy documents"),
         False, '"Our platinum tier includes identity theft protection at no extra cost."'),
        ("ins_4", "QuickCover", 110 + stream.int(0, 15), "$1.5M basic", 2000, 3.9,
         ("Lowest premium", "Simple enrollment", "Month-to-month flexibility"),
         ("Lower coverage cap", "High deductible", "Limited add-ons"),
         False, '"We\'re the fastest to activate — coverage starts in 24 hours."'),
    ]
    return [
        InsuranceQuote(id_, provider, monthly, monthly * 12, coverage, deductible,
                       rating, pros, cons, recommended, snippet)
        for (id_, provider, monthly, coverage, deductible, rating,
             pros, cons, recommended, snippet) in rows
    ]


# ==============================================================================
# INVESTING
# ==============================================================================

def generate_investing(stream: SeededStream) -> List[InvestingOpportunity]:
    greengrid_return = f"{12 + stream.int(0, 6)}%-{18 + stream.int(0, 5)}% IRR (simulated)"
    medtech_return = f"{20 + stream.int(0, 10)}%-{35 + stream.int(0, 10)}% IRR (simulated)"
    return [
        InvestingOpportunity(
            id="inv_1",
            name="GreenGrid Energy Fund",
            sector="Clean Energy",
            type="Private Equity Fund",
            confidence="medium",
            projected_return=greengrid_return,
            risk_level="Moderate-High",
            risk_notes=(
                "Regulatory environment shifting — subsidy dependency",
                "Technology risk in battery storage component",
                "Fund is 60% deployed; remaining capital in pipeline",
            ),
            minimum_investment=25000,
            time_horizon="5-7 years",
            disclaimer=(
                "SIMULATION ONLY. This is not investment advice. Past performance does not "
                "guarantee future results. All figures are simulated for demonstration purposes."
            ),
        ),
        InvestingOpportunity(
            id="inv_2",
            name="MedTech Diagnostics Series B",
            sector="Healthcare Technology",
            type="Venture Capital",
            confidence="medium",
            projected_return=medtech_return,
            risk_level="High",
            risk_notes=(
                "Pre-revenue company; FDA approval pending",
                "Strong IP portfolio but competitive landscape intensifying",
                "Lead investor has strong track record in sector",
            ),
            minimum_investment=50000,
            time_horizon="7-10 years",
            disclaimer=(
                "SIMULATION ONLY. This is not investment advice. Venture capital investments "
                "carry significant risk of total loss. All figures are simulated."
            ),
        ),
    ]


# ==============================================================================
# CATALOG
# ==============================================================================

def generate_world(stream: SeededStream, config: EngineConfig = DEFAULT_CONFIG) -> WorldCatalog:
    """
    Draw the full catalog. Generator order is fixed; changing it changes
    every catalog produced from an existing seed.
    """
    return WorldCatalog(
        travel=tuple(generate_travel(stream)),
        gifts=tuple(generate_gifts(stream)),
        leads=tuple(generate_leads(stream, config)),
        insurance=tuple(generate_insurance(stream)),
        investing=tuple(generate_investing(stream)),
    )
