"""
Royalty signalling interface shared by the token and marketplace contracts.

Scale: royalties are basis points, BASIS_POINTS = 10,000 = 100%.
  500    → 5%
  100    → 1%
  10000  → 100%

A token contract answers  royalty_info(uint64)(address,uint64)
A marketplace logs        ReceivedRoyalties(address,address,uint64,uint64)
Both answer               supports_interface(byte[4])bool
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Iterable, Iterator, Literal

from algosdk import abi as arc4
from algosdk import encoding
from pyteal import Bytes, Expr, Or, abi


# ─────────────────────────────────────────────
#  CONSTANTS
# ─────────────────────────────────────────────
BASIS_POINTS      = 10_000    # 100%
MIN_ROYALTY_BPS   = 1         # smallest configured royalty (0.01%)
MAX_ROYALTY_BPS   = 10_000    # 100%

ZERO_ADDRESS = encoding.encode_address(bytes(32))

ROYALTY_INFO_SIGNATURE       = "royalty_info(uint64)(address,uint64)"
SUPPORTS_INTERFACE_SIGNATURE = "supports_interface(byte[4])bool"
RECEIVED_ROYALTIES_SIGNATURE = "ReceivedRoyalties(address,address,uint64,uint64)"

# ARC-4 return values are logged with this prefix
RETURN_PREFIX = bytes.fromhex("151f7c75")

INVALID_INTERFACE_ID = b"\xff\xff\xff\xff"

_RECEIPT_TYPE = arc4.ABIType.from_string("(address,address,uint64,uint64)")


class RoyaltyConfigError(ValueError):
    """Raised when a royalty value does not fit the basis-point encoding."""


# ─────────────────────────────────────────────
#  SELECTORS & INTERFACE IDS
# ─────────────────────────────────────────────
def method_selector(signature: str) -> bytes:
    """ARC-4 selector: first 4 bytes of SHA-512/256 of the method signature."""
    return arc4.Method.from_signature(signature).get_selector()


def event_selector(signature: str) -> bytes:
    """ARC-28 selector for an event signature (no return type)."""
    return encoding.checksum(signature.encode())[:4]


def interface_id(*signatures: str) -> bytes:
    """
    Identifier of an interface: XOR of the selectors of all its methods.
    A single-method interface is identified by that method's selector.
    """
    if not signatures:
        raise ValueError("An interface needs at least one method signature")
    acc = 0
    for signature in signatures:
        acc ^= int.from_bytes(method_selector(signature), "big")
    return acc.to_bytes(4, "big")


ROYALTY_INTERFACE_ID       = interface_id(ROYALTY_INFO_SIGNATURE)
DISCOVERY_INTERFACE_ID     = interface_id(SUPPORTS_INTERFACE_SIGNATURE)
RECEIVED_ROYALTIES_SELECTOR = event_selector(RECEIVED_ROYALTIES_SIGNATURE)


# ─────────────────────────────────────────────
#  CAPABILITY TABLE
# ─────────────────────────────────────────────
class CapabilityTable(Mapping):
    """
    Read-only map of interface id → supported, fixed at construction.

    The same table answers queries off-chain (``supports``) and is compiled
    into the contract's ``supports_interface`` method (``teal_lookup``).
    """

    def __init__(self, interface_ids: Iterable[bytes]):
        table = {}
        for iid in interface_ids:
            if len(iid) != 4:
                raise ValueError(f"Interface id must be 4 bytes, got {len(iid)}")
            if iid == INVALID_INTERFACE_ID:
                raise ValueError("0xffffffff cannot be advertised")
            table[bytes(iid)] = True
        if not table:
            raise ValueError("Capability table cannot be empty")
        self._table = MappingProxyType(table)

    def __getitem__(self, iid: bytes) -> bool:
        return self._table[iid]

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def supports(self, iid: bytes) -> bool:
        return self._table.get(bytes(iid), False)

    def teal_lookup(self, iid: Expr) -> Expr:
        """1 if ``iid`` is advertised, else 0."""
        checks = [iid == Bytes(known) for known in self._table]
        if len(checks) == 1:
            return checks[0]
        return Or(*checks)


# ─────────────────────────────────────────────
#  ABI TYPES (on-chain)
# ─────────────────────────────────────────────
InterfaceId = abi.StaticBytes[Literal[4]]


class RoyaltyQuote(abi.NamedTuple):
    receiver: abi.Field[abi.Address]
    amount:   abi.Field[abi.Uint64]


class ReceivedRoyalties(abi.NamedTuple):
    royalty_recipient: abi.Field[abi.Address]
    buyer:             abi.Field[abi.Address]
    token_id:          abi.Field[abi.Uint64]
    amount:            abi.Field[abi.Uint64]


# ─────────────────────────────────────────────
#  OFF-CHAIN VALUES
# ─────────────────────────────────────────────
@dataclass(frozen=True)
class Quote:
    receiver: str
    basis_points: int

    @property
    def configured(self) -> bool:
        return self.receiver != ZERO_ADDRESS and self.basis_points > 0

    @property
    def percent(self) -> Decimal:
        return Decimal(self.basis_points) / 100

    def payment_for(self, sale_price: int) -> int:
        return royalty_payment(sale_price, self.basis_points)


@dataclass(frozen=True)
class RoyaltyReceipt:
    royalty_recipient: str
    buyer: str
    token_id: int
    amount: int


def percent_to_basis_points(percent) -> int:
    """
    Convert a human percentage ("5", 5.0, Decimal("2.5")) to basis points.
    Precision finer than 0.01% is rejected rather than rounded.
    """
    try:
        bps = Decimal(str(percent)) * 100
    except InvalidOperation:
        raise RoyaltyConfigError(f"Not a percentage: {percent!r}") from None
    if not bps.is_finite():
        raise RoyaltyConfigError(f"Not a finite percentage: {percent!r}")
    if bps != bps.to_integral_value():
        raise RoyaltyConfigError(f"{percent}% is finer than one basis point")
    bps = int(bps)
    if not 0 <= bps <= MAX_ROYALTY_BPS:
        raise RoyaltyConfigError(f"{percent}% is outside 0..100%")
    return bps


def validate_royalty(receiver: str, basis_points: int) -> None:
    """
    A configured royalty has a real receiver and 1..10000 bps.
    The zero address stands for "not configured" and must carry 0 bps.
    """
    if not encoding.is_valid_address(receiver):
        raise RoyaltyConfigError(f"Invalid receiver address: {receiver}")
    if receiver == ZERO_ADDRESS:
        if basis_points != 0:
            raise RoyaltyConfigError("Zero-address receiver must have 0 bps")
        return
    if not MIN_ROYALTY_BPS <= basis_points <= MAX_ROYALTY_BPS:
        raise RoyaltyConfigError(
            f"Royalty must be {MIN_ROYALTY_BPS}..{MAX_ROYALTY_BPS} bps, got {basis_points}"
        )


def royalty_payment(sale_price: int, basis_points: int) -> int:
    if sale_price < 0:
        raise RoyaltyConfigError("Sale price cannot be negative")
    if not 0 <= basis_points <= MAX_ROYALTY_BPS:
        raise RoyaltyConfigError(f"Royalty out of range: {basis_points} bps")
    return sale_price * basis_points // BASIS_POINTS


def quote_from_return(value) -> Quote:
    """Build a Quote from an ABI return value: [receiver, amount]."""
    receiver, basis_points = value
    return Quote(receiver=receiver, basis_points=int(basis_points))


# ─────────────────────────────────────────────
#  EVENT CODEC (ARC-28)
# ─────────────────────────────────────────────
def encode_received_royalties(receipt: RoyaltyReceipt) -> bytes:
    return RECEIVED_ROYALTIES_SELECTOR + _RECEIPT_TYPE.encode([
        receipt.royalty_recipient,
        receipt.buyer,
        receipt.token_id,
        receipt.amount,
    ])


def decode_received_royalties(log: bytes) -> RoyaltyReceipt:
    if log[:4] != RECEIVED_ROYALTIES_SELECTOR:
        raise ValueError("Log entry is not a ReceivedRoyalties event")
    recipient, buyer, token_id, amount = _RECEIPT_TYPE.decode(log[4:])
    return RoyaltyReceipt(
        royalty_recipient=recipient,
        buyer=buyer,
        token_id=token_id,
        amount=amount,
    )


def received_royalties_from_logs(logs: Iterable[bytes]) -> list[RoyaltyReceipt]:
    """Decode every ReceivedRoyalties entry, skipping unrelated logs."""
    return [
        decode_received_royalties(entry)
        for entry in logs
        if entry[:4] == RECEIVED_ROYALTIES_SELECTOR
    ]
