"""
Royalty Token: NFT registry that answers royalty_info()

Every token carries an optional royalty (receiver + basis points).
Tokens without their own royalty fall back to the contract default.

  royalty_info(token_id)        → (receiver, bps)   read-only
  royalty_amount(token_id, p)   → p × bps / 10000   read-only
  supports_interface(id)        → bool              read-only

Built with: Beaker + PyTeal
Build:      python -m contracts.royalty_token
"""

from beaker import *
from beaker.lib.storage import BoxMapping
from pyteal import *

from contracts.royalty_standard import (
    BASIS_POINTS,
    DISCOVERY_INTERFACE_ID,
    MAX_ROYALTY_BPS,
    MIN_ROYALTY_BPS,
    ROYALTY_INTERFACE_ID,
    CapabilityTable,
    InterfaceId,
    RoyaltyQuote,
)


# Box key = "t" + itob(token_id)
TOKEN_BOX_PREFIX = b"t"

CAPABILITIES = CapabilityTable([DISCOVERY_INTERFACE_ID, ROYALTY_INTERFACE_ID])


class TokenRecord(abi.NamedTuple):
    owner:        abi.Field[abi.Address]
    approved:     abi.Field[abi.Address]   # zero address = no operator
    receiver:     abi.Field[abi.Address]   # zero address = use default royalty
    basis_points: abi.Field[abi.Uint64]


# ══════════════════════════════════════════════════════════════
#  STATE
# ══════════════════════════════════════════════════════════════

class RoyaltyTokenState:
    admin               = GlobalStateValue(TealType.bytes,  descr="Account allowed to mint and configure royalties")
    token_count         = GlobalStateValue(TealType.uint64, descr="Tokens minted; also the last token id")
    default_receiver    = GlobalStateValue(TealType.bytes,  descr="Royalty receiver for tokens without their own")
    default_royalty_bps = GlobalStateValue(TealType.uint64, descr="Default royalty in basis points; 500 = 5%")

    tokens = BoxMapping(abi.Uint64, TokenRecord, prefix=Bytes(TOKEN_BOX_PREFIX))


app = Application(
    "RoyaltyToken",
    descr="NFT registry exposing per-token royalty quotes and interface discovery",
    state=RoyaltyTokenState(),
)


def token_box_name(token_id: int) -> bytes:
    """Box name holding ``token_id``; needed as a box reference by callers."""
    return TOKEN_BOX_PREFIX + token_id.to_bytes(8, "big")


# ══════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════

def assert_admin() -> Expr:
    return Assert(Txn.sender() == app.state.admin.get(), comment="Only admin")


def assert_valid_royalty(receiver: abi.Address, basis_points: abi.Uint64) -> Expr:
    """
    Zero receiver → royalty not configured, bps must be 0.
    Otherwise bps must lie in [MIN_ROYALTY_BPS, MAX_ROYALTY_BPS].
    """
    return If(receiver.get() == Global.zero_address()).Then(
        Assert(basis_points.get() == Int(0), comment="Zero receiver must have 0 bps")
    ).Else(
        Assert(basis_points.get() >= Int(MIN_ROYALTY_BPS), comment="Royalty below minimum"),
        Assert(basis_points.get() <= Int(MAX_ROYALTY_BPS), comment="Royalty exceeds 100%"),
    )


def load_token(token_id: abi.Uint64, record: TokenRecord) -> Expr:
    return Seq(
        Assert(app.state.tokens[token_id].exists(), comment="Unknown token"),
        app.state.tokens[token_id].store_into(record),
    )


def resolve_royalty(record: TokenRecord, receiver: abi.Address, basis_points: abi.Uint64) -> Expr:
    """Per-token royalty if set, else the contract default."""
    return Seq(
        record.receiver.store_into(receiver),
        record.basis_points.store_into(basis_points),
        If(receiver.get() == Global.zero_address()).Then(
            receiver.set(app.state.default_receiver.get()),
            basis_points.set(app.state.default_royalty_bps.get()),
        ),
    )


# ══════════════════════════════════════════════════════════════
#  LIFECYCLE
# ══════════════════════════════════════════════════════════════

@app.create
def create() -> Expr:
    """Deployer becomes admin. No default royalty."""
    return Seq(
        app.initialize_global_state(),
        app.state.admin.set(Txn.sender()),
        app.state.token_count.set(Int(0)),
        app.state.default_receiver.set(Global.zero_address()),
        app.state.default_royalty_bps.set(Int(0)),
    )


# ══════════════════════════════════════════════════════════════
#  ABI: mint
# ══════════════════════════════════════════════════════════════

@app.external
def mint(
    owner:        abi.Address,
    receiver:     abi.Address,   # zero address = follow contract default
    basis_points: abi.Uint64,
    *,
    output: abi.Uint64,
) -> Expr:
    """
    Mints the next token to ``owner`` with an optional per-token royalty.
    Returns the new token id (ids start at 1).
    """
    token_id = abi.Uint64()
    approved = abi.Address()
    record   = TokenRecord()

    return Seq(
        assert_admin(),
        assert_valid_royalty(receiver, basis_points),

        app.state.token_count.set(app.state.token_count.get() + Int(1)),
        token_id.set(app.state.token_count.get()),
        approved.set(Global.zero_address()),
        record.set(owner, approved, receiver, basis_points),
        app.state.tokens[token_id].set(record),

        output.set(token_id),
    )


# ══════════════════════════════════════════════════════════════
#  ABI: royalty configuration (admin only)
# ══════════════════════════════════════════════════════════════

@app.external
def set_default_royalty(receiver: abi.Address, basis_points: abi.Uint64) -> Expr:
    """Royalty used by every token without its own receiver."""
    return Seq(
        assert_admin(),
        assert_valid_royalty(receiver, basis_points),
        app.state.default_receiver.set(receiver.get()),
        app.state.default_royalty_bps.set(basis_points.get()),
    )


@app.external
def set_token_royalty(
    token_id:     abi.Uint64,
    receiver:     abi.Address,
    basis_points: abi.Uint64,
) -> Expr:
    record   = TokenRecord()
    owner    = abi.Address()
    approved = abi.Address()
    return Seq(
        assert_admin(),
        assert_valid_royalty(receiver, basis_points),
        load_token(token_id, record),
        record.owner.store_into(owner),
        record.approved.store_into(approved),
        record.set(owner, approved, receiver, basis_points),
        app.state.tokens[token_id].set(record),
    )


@app.external
def reset_token_royalty(token_id: abi.Uint64) -> Expr:
    """Drop the per-token royalty; the token follows the default again."""
    record       = TokenRecord()
    owner        = abi.Address()
    approved     = abi.Address()
    receiver     = abi.Address()
    basis_points = abi.Uint64()
    return Seq(
        assert_admin(),
        load_token(token_id, record),
        record.owner.store_into(owner),
        record.approved.store_into(approved),
        receiver.set(Global.zero_address()),
        basis_points.set(Int(0)),
        record.set(owner, approved, receiver, basis_points),
        app.state.tokens[token_id].set(record),
    )


# ══════════════════════════════════════════════════════════════
#  ABI: ownership
# ══════════════════════════════════════════════════════════════

@app.external
def approve(token_id: abi.Uint64, operator: abi.Address) -> Expr:
    """Owner names a single operator (e.g. a marketplace app address)."""
    record       = TokenRecord()
    owner        = abi.Address()
    receiver     = abi.Address()
    basis_points = abi.Uint64()
    return Seq(
        load_token(token_id, record),
        record.owner.store_into(owner),
        Assert(Txn.sender() == owner.get(), comment="Only owner can approve"),
        record.receiver.store_into(receiver),
        record.basis_points.store_into(basis_points),
        record.set(owner, operator, receiver, basis_points),
        app.state.tokens[token_id].set(record),
    )


@app.external
def transfer(token_id: abi.Uint64, to: abi.Address) -> Expr:
    """Owner or approved operator moves the token. Clears the approval."""
    record       = TokenRecord()
    owner        = abi.Address()
    approved     = abi.Address()
    receiver     = abi.Address()
    basis_points = abi.Uint64()
    return Seq(
        load_token(token_id, record),
        record.owner.store_into(owner),
        record.approved.store_into(approved),
        Assert(
            Or(Txn.sender() == owner.get(), Txn.sender() == approved.get()),
            comment="Only owner or approved operator can transfer",
        ),
        Assert(to.get() != Global.zero_address(), comment="Cannot transfer to zero address"),
        record.receiver.store_into(receiver),
        record.basis_points.store_into(basis_points),
        approved.set(Global.zero_address()),
        record.set(to, approved, receiver, basis_points),
        app.state.tokens[token_id].set(record),
    )


@app.external(read_only=True)
def owner_of(token_id: abi.Uint64, *, output: abi.Address) -> Expr:
    record = TokenRecord()
    return Seq(
        load_token(token_id, record),
        record.owner.store_into(output),
    )


# ══════════════════════════════════════════════════════════════
#  READ-ONLY: royalty_info  (the royalty interface)
# ══════════════════════════════════════════════════════════════

@app.external(read_only=True)
def royalty_info(token_id: abi.Uint64, *, output: RoyaltyQuote) -> Expr:
    """
    Returns (receiver, amount) for a token, amount in basis points.
    (zero address, 0) when neither the token nor the contract sets a royalty.
    Fails for unknown tokens.
    """
    record       = TokenRecord()
    receiver     = abi.Address()
    basis_points = abi.Uint64()
    return Seq(
        load_token(token_id, record),
        resolve_royalty(record, receiver, basis_points),
        output.set(receiver, basis_points),
    )


@app.external(read_only=True)
def royalty_amount(
    token_id:   abi.Uint64,
    sale_price: abi.Uint64,
    *,
    output: abi.Uint64,
) -> Expr:
    """Royalty owed on ``sale_price`` (rounded down)."""
    record       = TokenRecord()
    receiver     = abi.Address()
    basis_points = abi.Uint64()
    return Seq(
        load_token(token_id, record),
        resolve_royalty(record, receiver, basis_points),
        output.set(WideRatio([sale_price.get(), basis_points.get()], [Int(BASIS_POINTS)])),
    )


@app.external(read_only=True)
def supports_interface(interface_id: InterfaceId, *, output: abi.Bool) -> Expr:
    return output.set(CAPABILITIES.teal_lookup(interface_id.get()))


# ══════════════════════════════════════════════════════════════
#  ENTRY POINT
# ══════════════════════════════════════════════════════════════

if __name__ == "__main__":
    spec = app.build()
    spec.export("./artifacts/royalty_token")
    print()
    print("✓ RoyaltyToken compiled → ./artifacts/royalty_token/")
    print()
    print("  ✦ mint()                 — admin mints with optional royalty")
    print("  ✦ set_default_royalty()  — contract-wide fallback royalty")
    print("  ✦ set_token_royalty()    — per-token override")
    print("  ✦ approve() / transfer() — ownership")
    print("  ✦ royalty_info()         — (receiver, bps) quote")
    print("  ✦ supports_interface()   — interface discovery")
    print()
