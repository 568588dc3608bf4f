"""
Royalty Marketplace: fixed-price sales that honour royalty_info()

Sale flow (single application call, grouped with the buyer's payment):
  1. token.supports_interface(ROYALTY_INTERFACE_ID) was recorded at listing
  2. token.royalty_info(token_id)  → (receiver, bps)
  3. pay receiver  price × bps / 10000
  4. log ReceivedRoyalties(receiver, buyer, token_id, amount)
  5. pay platform fee, pay seller the remainder
  6. token.transfer(token_id, buyer)

The event is emitted by this marketplace, never by the token contract.

Built with: Beaker + PyTeal
Build:      python -m contracts.royalty_marketplace
"""

from beaker import *
from beaker.lib.storage import BoxMapping
from pyteal import *

from contracts.royalty_standard import (
    BASIS_POINTS,
    DISCOVERY_INTERFACE_ID,
    MAX_ROYALTY_BPS,
    RECEIVED_ROYALTIES_SELECTOR,
    RETURN_PREFIX,
    ROYALTY_INFO_SIGNATURE,
    ROYALTY_INTERFACE_ID,
    SUPPORTS_INTERFACE_SIGNATURE,
    CapabilityTable,
    InterfaceId,
    ReceivedRoyalties,
    RoyaltyQuote,
)


MAX_FEE_BPS = 1000   # 10%

OWNER_OF_SIGNATURE = "owner_of(uint64)address"
TRANSFER_SIGNATURE = "transfer(uint64,address)void"

# Box key = "l" + itob(token_app) + itob(token_id)
LISTING_BOX_PREFIX = b"l"

# Marketplaces advertise discovery only; they do not quote royalties.
CAPABILITIES = CapabilityTable([DISCOVERY_INTERFACE_ID])


class ListingKey(abi.NamedTuple):
    token_app: abi.Field[abi.Uint64]
    token_id:  abi.Field[abi.Uint64]


class Listing(abi.NamedTuple):
    seller:        abi.Field[abi.Address]
    price:         abi.Field[abi.Uint64]
    royalty_aware: abi.Field[abi.Bool]   # token advertised the royalty interface


class MarketStats(abi.NamedTuple):
    total_sales:     abi.Field[abi.Uint64]
    total_volume:    abi.Field[abi.Uint64]
    total_royalties: abi.Field[abi.Uint64]


# ══════════════════════════════════════════════════════════════
#  STATE
# ══════════════════════════════════════════════════════════════

class RoyaltyMarketState:
    fee_bps         = GlobalStateValue(TealType.uint64, descr="Platform fee bps; 250 = 2.5%")
    total_sales     = GlobalStateValue(TealType.uint64, descr="Completed sales")
    total_volume    = GlobalStateValue(TealType.uint64, descr="Cumulative sale volume in microALGO")
    total_royalties = GlobalStateValue(TealType.uint64, descr="Cumulative royalties paid in microALGO")

    listings = BoxMapping(ListingKey, Listing, prefix=Bytes(LISTING_BOX_PREFIX))


app = Application(
    "RoyaltyMarketplace",
    descr="Fixed-price NFT marketplace paying royalties quoted by royalty_info()",
    state=RoyaltyMarketState(),
)


def listing_box_name(token_app: int, token_id: int) -> bytes:
    return LISTING_BOX_PREFIX + token_app.to_bytes(8, "big") + token_id.to_bytes(8, "big")


# ══════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════

def call_token(token_app: abi.Application, signature: str, args: list) -> Expr:
    """ABI call into the token contract from the marketplace account."""
    return InnerTxnBuilder.ExecuteMethodCall(
        app_id=token_app.application_id(),
        method_signature=signature,
        args=args,
    )


def method_return() -> Expr:
    """Encoded return value of the last inner ABI call."""
    return Seq(
        Assert(
            Extract(InnerTxn.last_log(), Int(0), Int(4)) == Bytes(RETURN_PREFIX),
            comment="Token call returned no ABI value",
        ),
        Suffix(InnerTxn.last_log(), Int(4)),
    )


def pay(receiver: Expr, amount: Expr, note: str) -> Expr:
    return Seq(
        InnerTxnBuilder.Begin(),
        InnerTxnBuilder.SetFields({
            TxnField.type_enum: TxnType.Payment,
            TxnField.receiver:  receiver,
            TxnField.amount:    amount,
            TxnField.note:      Bytes(note),
        }),
        InnerTxnBuilder.Submit(),
    )


def emit_received_royalties(
    recipient: abi.Address,
    buyer:     abi.Address,
    token_id:  abi.Uint64,
    amount:    abi.Uint64,
) -> Expr:
    """ARC-28 log: selector || (recipient, buyer, token_id, amount)."""
    event = ReceivedRoyalties()
    return Seq(
        event.set(recipient, buyer, token_id, amount),
        Log(Concat(Bytes(RECEIVED_ROYALTIES_SELECTOR), event.encode())),
    )


def listing_key(token_app: abi.Application, token_id: abi.Uint64, key: ListingKey) -> Expr:
    app_id = abi.Uint64()
    return Seq(
        app_id.set(token_app.application_id()),
        key.set(app_id, token_id),
    )


def listing_box(key: ListingKey) -> Expr:
    return Concat(Bytes(LISTING_BOX_PREFIX), key.encode())


def load_listing(key: ListingKey, listing: Listing) -> Expr:
    return Seq(
        Assert(app.state.listings[key].exists(), comment="Token not listed"),
        app.state.listings[key].store_into(listing),
    )


# ══════════════════════════════════════════════════════════════
#  LIFECYCLE
# ══════════════════════════════════════════════════════════════

@app.create
def create(fee_bps: abi.Uint64) -> Expr:
    """Deploy with a platform fee paid to the marketplace creator."""
    return Seq(
        Assert(fee_bps.get() <= Int(MAX_FEE_BPS), comment="Fee exceeds 10%"),
        app.initialize_global_state(),
        app.state.fee_bps.set(fee_bps.get()),
        app.state.total_sales.set(Int(0)),
        app.state.total_volume.set(Int(0)),
        app.state.total_royalties.set(Int(0)),
    )


# ══════════════════════════════════════════════════════════════
#  ABI: list_token
# ══════════════════════════════════════════════════════════════

@app.external
def list_token(
    token_app: abi.Application,
    token_id:  abi.Uint64,
    price:     abi.Uint64,
    *,
    output: abi.Bool,
) -> Expr:
    """
    Lists a token owned by the sender at a fixed price.

    The token contract is asked whether it supports the royalty interface;
    the answer is stored with the listing and returned. The seller must also
    approve this app's address on the token contract before a sale can settle.
    """
    owner   = abi.Address()
    seller  = abi.Address()
    aware   = abi.Bool()
    key     = ListingKey()
    listing = Listing()

    return Seq(
        Assert(price.get() > Int(0), comment="Price must be > 0"),

        call_token(token_app, OWNER_OF_SIGNATURE, [token_id]),
        owner.decode(method_return()),
        Assert(owner.get() == Txn.sender(), comment="Only the token owner can list"),

        call_token(token_app, SUPPORTS_INTERFACE_SIGNATURE, [Bytes(ROYALTY_INTERFACE_ID)]),
        aware.decode(method_return()),

        seller.set(Txn.sender()),
        listing_key(token_app, token_id, key),
        listing.set(seller, price, aware),
        app.state.listings[key].set(listing),

        output.set(aware),
    )


@app.external
def cancel_listing(token_app: abi.Application, token_id: abi.Uint64) -> Expr:
    key     = ListingKey()
    listing = Listing()
    seller  = abi.Address()
    return Seq(
        listing_key(token_app, token_id, key),
        load_listing(key, listing),
        listing.seller.store_into(seller),
        Assert(Txn.sender() == seller.get(), comment="Only the seller can cancel"),
        Pop(BoxDelete(listing_box(key))),
    )


# ══════════════════════════════════════════════════════════════
#  ABI: buy
# ══════════════════════════════════════════════════════════════

@app.external
def buy(
    token_app: abi.Application,
    token_id:  abi.Uint64,
    payment:   abi.PaymentTransaction,
    *,
    output: abi.Uint64,
) -> Expr:
    """
    Fixed-price purchase. Pays the royalty quoted by the token contract,
    logs exactly one ReceivedRoyalties event per royalty payment, pays the
    platform fee and the seller, then transfers the token to the buyer.
    Returns the royalty paid (0 when none is due).
    """
    key      = ListingKey()
    listing  = Listing()
    seller   = abi.Address()
    price    = abi.Uint64()
    aware    = abi.Bool()
    buyer    = abi.Address()
    quote    = RoyaltyQuote()
    receiver = abi.Address()
    bps      = abi.Uint64()
    royalty  = abi.Uint64()
    paid     = ScratchVar(TealType.uint64)
    fee      = ScratchVar(TealType.uint64)

    return Seq(
        listing_key(token_app, token_id, key),
        load_listing(key, listing),
        listing.seller.store_into(seller),
        listing.price.store_into(price),
        listing.royalty_aware.store_into(aware),

        Assert(payment.get().sender() == Txn.sender(), comment="Payment must come from the buyer"),
        Assert(payment.get().receiver() == Global.current_application_address(), comment="Payment must go to marketplace"),
        Assert(payment.get().amount() >= price.get(), comment="Insufficient payment"),

        paid.store(payment.get().amount()),
        buyer.set(Txn.sender()),
        royalty.set(Int(0)),

        # Royalty quote
        If(aware.get()).Then(
            call_token(token_app, ROYALTY_INFO_SIGNATURE, [token_id]),
            quote.decode(method_return()),
            quote.receiver.store_into(receiver),
            quote.amount.store_into(bps),
            Assert(bps.get() <= Int(MAX_ROYALTY_BPS), comment="Quoted royalty exceeds 100%"),
            If(receiver.get() != Global.zero_address()).Then(
                royalty.set(WideRatio([paid.load(), bps.get()], [Int(BASIS_POINTS)])),
            ),
        ),

        fee.store(WideRatio([paid.load(), app.state.fee_bps.get()], [Int(BASIS_POINTS)])),
        Assert(royalty.get() + fee.load() <= paid.load(), comment="Royalty and fee exceed sale price"),

        # Royalty payment, then its receipt
        If(royalty.get() > Int(0)).Then(
            pay(receiver.get(), royalty.get(), "RYLT:royalty"),
            emit_received_royalties(receiver, buyer, token_id, royalty),
        ),
        If(fee.load() > Int(0)).Then(
            pay(Global.creator_address(), fee.load(), "RYLT:fee"),
        ),
        pay(seller.get(), paid.load() - royalty.get() - fee.load(), "RYLT:seller-proceeds"),

        call_token(token_app, TRANSFER_SIGNATURE, [token_id, buyer]),
        Pop(BoxDelete(listing_box(key))),

        app.state.total_sales.set(app.state.total_sales.get() + Int(1)),
        app.state.total_volume.set(app.state.total_volume.get() + paid.load()),
        app.state.total_royalties.set(app.state.total_royalties.get() + royalty.get()),

        output.set(royalty),
    )


# ══════════════════════════════════════════════════════════════
#  READ-ONLY
# ══════════════════════════════════════════════════════════════

@app.external(read_only=True)
def get_listing(token_app: abi.Application, token_id: abi.Uint64, *, output: Listing) -> Expr:
    key = ListingKey()
    return Seq(
        listing_key(token_app, token_id, key),
        load_listing(key, output),
    )


@app.external(read_only=True)
def get_stats(*, output: MarketStats) -> Expr:
    sales     = abi.Uint64()
    volume    = abi.Uint64()
    royalties = abi.Uint64()
    return Seq(
        sales.set(app.state.total_sales.get()),
        volume.set(app.state.total_volume.get()),
        royalties.set(app.state.total_royalties.get()),
        output.set(sales, volume, royalties),
    )


@app.external(read_only=True)
def supports_interface(interface_id: InterfaceId, *, output: abi.Bool) -> Expr:
    return output.set(CAPABILITIES.teal_lookup(interface_id.get()))


# ══════════════════════════════════════════════════════════════
#  ENTRY POINT
# ══════════════════════════════════════════════════════════════

if __name__ == "__main__":
    spec = app.build()
    spec.export("./artifacts/royalty_marketplace")
    print()
    print("✓ RoyaltyMarketplace compiled → ./artifacts/royalty_marketplace/")
    print()
    print("  ✦ list_token()          — list with royalty capability check")
    print("  ✦ cancel_listing()      — seller withdraws a listing")
    print("  ✦ buy()                 — pay royalty, emit ReceivedRoyalties, transfer")
    print("  ✦ get_listing()         — listing details")
    print("  ✦ get_stats()           — sales / volume / royalties")
    print("  ✦ supports_interface()  — interface discovery")
    print()
