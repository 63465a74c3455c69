"""
Voucher sequence catalogue, type-key normalisation and number formatting.

Voucher numbers look like ``VS-00042``: an upper-case prefix, a dash and
the counter zero-padded to the sequence's pad width. Existing data depends
on this exact format.
"""

from dataclasses import dataclass

from .exceptions import InvalidInput, InvalidSequenceSettingsError
from .value_objects import SequenceType

DEFAULT_PAD_WIDTH = 5
MIN_PAD_WIDTH = 2
MAX_PAD_WIDTH = 12


@dataclass(frozen=True, slots=True)
class SequenceDefaults:
    label: str
    prefix: str
    pad_width: int = DEFAULT_PAD_WIDTH


SEQUENCE_CATALOGUE: dict[SequenceType, SequenceDefaults] = {
    SequenceType.RC: SequenceDefaults("Receipt voucher", "RC"),
    SequenceType.PV: SequenceDefaults("Payment voucher", "PV"),
    SequenceType.EX: SequenceDefaults("Expense voucher", "EX"),
    SequenceType.DS: SequenceDefaults("Distributed receipt", "DS"),
    SequenceType.JE: SequenceDefaults("Journal entry", "JE"),
    SequenceType.TR: SequenceDefaults("Transfer", "TR"),
    SequenceType.BK: SequenceDefaults("Ticket booking", "BK"),
    SequenceType.VS: SequenceDefaults("Visa application", "VS"),
    SequenceType.RF: SequenceDefaults("Refund", "RF"),
    SequenceType.EXC: SequenceDefaults("Ticket exchange", "EXC"),
    SequenceType.EXT: SequenceDefaults("Exchange transaction", "EXT"),
    SequenceType.EXP: SequenceDefaults("Exchange payment", "EXP"),
    SequenceType.VOID: SequenceDefaults("Ticket void", "VOID"),
    SequenceType.SEG: SequenceDefaults("Segment period", "SEG"),
    SequenceType.COMP: SequenceDefaults("Company segment share", "COMP"),
    SequenceType.PARTNER: SequenceDefaults("Partner share", "PARTNER"),
    SequenceType.SUB: SequenceDefaults("Subscription", "SUB"),
    SequenceType.SUBP: SequenceDefaults("Subscription payment", "SUBP"),
    SequenceType.PR: SequenceDefaults("Profit distribution", "PR"),
    SequenceType.CL: SequenceDefaults("Client", "CL"),
}

# Historical and business names, matched case-insensitively.
SEQUENCE_ALIASES: dict[str, SequenceType] = {
    "receipt": SequenceType.RC,
    "standard_receipt": SequenceType.RC,
    "payment": SequenceType.PV,
    "expense": SequenceType.EX,
    "manualexpense": SequenceType.EX,
    "manual_expense": SequenceType.EX,
    "distributed_receipt": SequenceType.DS,
    "journal": SequenceType.JE,
    "journal_voucher": SequenceType.JE,
    "manual": SequenceType.JE,
    "transfer": SequenceType.TR,
    "remittance": SequenceType.TR,
    "remittances": SequenceType.TR,
    "booking": SequenceType.BK,
    "bookings": SequenceType.BK,
    "ticket": SequenceType.BK,
    "tickets": SequenceType.BK,
    "visa": SequenceType.VS,
    "visas": SequenceType.VS,
    "refund": SequenceType.RF,
    "refunds": SequenceType.RF,
    "exchange": SequenceType.EXC,
    "exchange_transaction": SequenceType.EXT,
    "exchanges": SequenceType.EXT,
    "exchange_payment": SequenceType.EXP,
    "void": SequenceType.VOID,
    "segment": SequenceType.SEG,
    "segments": SequenceType.SEG,
    "segment_period": SequenceType.SEG,
    "company": SequenceType.COMP,
    "partner": SequenceType.PARTNER,
    "partners": SequenceType.PARTNER,
    "subscription": SequenceType.SUB,
    "subscriptions": SequenceType.SUB,
    "subscription_payment": SequenceType.SUBP,
    "subscription_installment": SequenceType.SUBP,
    "profit_distribution": SequenceType.PR,
    "profit_sharing": SequenceType.PR,
    "profit-sharing": SequenceType.PR,
    "client": SequenceType.CL,
    "clients": SequenceType.CL,
    "relation": SequenceType.CL,
}


@dataclass(frozen=True, slots=True)
class ResolvedSequenceKey:
    """A normalised type key; ``canonical`` is None for pass-through keys."""
    type_key: str
    canonical: SequenceType | None

    @property
    def defaults(self) -> SequenceDefaults:
        if self.canonical is not None:
            return SEQUENCE_CATALOGUE[self.canonical]
        return SequenceDefaults(label=self.type_key, prefix=self.type_key)


def normalize_type_key(raw: str) -> ResolvedSequenceKey:
    """Map a raw sequence name onto its canonical key, or pass it through."""
    trimmed = (raw or "").strip()
    if not trimmed:
        raise InvalidInput("Sequence type key is required")

    alias = SEQUENCE_ALIASES.get(trimmed.lower())
    if alias is not None:
        return ResolvedSequenceKey(alias.value, alias)

    upper = trimmed.upper()
    try:
        canonical = SequenceType(upper)
    except ValueError:
        return ResolvedSequenceKey(upper, None)
    return ResolvedSequenceKey(canonical.value, canonical)


def validate_pad_width(pad_width: int) -> int:
    if not MIN_PAD_WIDTH <= pad_width <= MAX_PAD_WIDTH:
        raise InvalidSequenceSettingsError(
            f"Pad width must be between {MIN_PAD_WIDTH} and {MAX_PAD_WIDTH}",
            ctx={"pad_width": pad_width},
        )
    return pad_width


def format_voucher_number(prefix: str, value: int, pad_width: int = DEFAULT_PAD_WIDTH) -> str:
    return f"{prefix.upper()}-{value:0{pad_width}d}"


def parse_voucher_number(number: str) -> tuple[str, int, int]:
    """Split ``PREFIX-000123`` into ``(prefix, 123, 6)``."""
    prefix, sep, digits = (number or "").strip().rpartition("-")
    if not sep or not prefix or not digits.isdigit():
        raise InvalidInput(f"Not a voucher number: {number!r}", ctx={"number": number})
    return prefix, int(digits), len(digits)
