"""
╔══════════════════════════════════════════════════════════════════════╗
║       Royalty Token + Marketplace: Deployment & Client Script        ║
║       deploy_and_interact.py                                         ║
║                                                                      ║
║  Usage:                                                              ║
║    python deploy_and_interact.py deploy-token                        ║
║    python deploy_and_interact.py mint --receiver ADDR --royalty 5    ║
║    python deploy_and_interact.py quote --token 1 --price 24          ║
║    python deploy_and_interact.py buy --token 1                       ║
╚══════════════════════════════════════════════════════════════════════╝
"""

import argparse
import base64
import os
from typing import Optional

from algosdk import account, mnemonic
from algosdk.atomic_transaction_composer import (
    AccountTransactionSigner,
    AtomicTransactionComposer,
    EmptySigner,
    TransactionWithSigner,
)
from algosdk.logic import get_application_address
from algosdk.transaction import PaymentTxn
from algosdk.v2client import algod, indexer
from beaker.client import ApplicationClient

from contracts.royalty_standard import (
    DISCOVERY_INTERFACE_ID,
    INVALID_INTERFACE_ID,
    ROYALTY_INTERFACE_ID,
    ZERO_ADDRESS,
    RoyaltyConfigError,
    RoyaltyReceipt,
    percent_to_basis_points,
    quote_from_return,
    received_royalties_from_logs,
    validate_royalty,
)

# ─────────────────────────────────────────────
#  CONFIGURATION
# ─────────────────────────────────────────────

# Algorand Testnet endpoints (free public nodes)
ALGOD_ADDRESS   = os.environ.get("ALGOD_ADDRESS", "https://testnet-api.algonode.cloud")
ALGOD_TOKEN     = os.environ.get("ALGOD_TOKEN", "")   # AlgoNode doesn't need a token
INDEXER_ADDRESS = os.environ.get("INDEXER_ADDRESS", "https://testnet-idx.algonode.cloud")
INDEXER_TOKEN   = os.environ.get("INDEXER_TOKEN", "")

# App IDs after first deploy (update these once you deploy)
TOKEN_APP_ID  = int(os.environ.get("ROYALTY_TOKEN_APP_ID", "0"))
MARKET_APP_ID = int(os.environ.get("ROYALTY_MARKET_APP_ID", "0"))

# Initial funding for box storage and inner transaction fees
APP_FUNDING_MICROALGO = 1_000_000

INTERFACES = {
    "royalty":   ROYALTY_INTERFACE_ID,
    "discovery": DISCOVERY_INTERFACE_ID,
    "invalid":   INVALID_INTERFACE_ID,
}


# ─────────────────────────────────────────────
#  CLIENTS
# ─────────────────────────────────────────────
def get_algod() -> algod.AlgodClient:
    return algod.AlgodClient(ALGOD_TOKEN, ALGOD_ADDRESS)


def get_indexer() -> indexer.IndexerClient:
    return indexer.IndexerClient(INDEXER_TOKEN, INDEXER_ADDRESS)


def load_account(env_var: str = "ROYALTY_MNEMONIC") -> tuple[str, str]:
    """
    Load an Algorand account from a mnemonic stored in env variable.
    Returns (private_key, address)
    """
    mn = os.environ.get(env_var)
    if not mn:
        # Generate a fresh testnet account for demo purposes
        private_key, address = account.generate_account()
        print(f"\n⚠  No {env_var} set. Generated fresh account:")
        print(f"   Address  : {address}")
        print(f"   Mnemonic : {mnemonic.from_private_key(private_key)}")
        print(f"\n   Fund this address at: https://bank.testnet.algorand.network/")
        print(f"   Then set: export {env_var}='<your mnemonic>'\n")
        return private_key, address
    private_key = mnemonic.to_private_key(mn)
    address     = account.address_from_private_key(private_key)
    return private_key, address


def reader_address(env_var: str = "ROYALTY_MNEMONIC") -> str:
    """Sender for read-only calls: the configured account, else the zero address."""
    mn = os.environ.get(env_var)
    if not mn:
        return ZERO_ADDRESS
    return account.address_from_private_key(mnemonic.to_private_key(mn))


def token_client(private_key: Optional[str] = None, sender: Optional[str] = None) -> ApplicationClient:
    from contracts.royalty_token import app as token_app
    signer = AccountTransactionSigner(private_key) if private_key else EmptySigner()
    return ApplicationClient(get_algod(), token_app, app_id=TOKEN_APP_ID, signer=signer, sender=sender)


def market_client(private_key: Optional[str] = None, sender: Optional[str] = None) -> ApplicationClient:
    from contracts.royalty_marketplace import app as market_app
    signer = AccountTransactionSigner(private_key) if private_key else EmptySigner()
    return ApplicationClient(get_algod(), market_app, app_id=MARKET_APP_ID, signer=signer, sender=sender)


def to_micro(algo: float) -> int:
    return int(round(algo * 1_000_000))


# ─────────────────────────────────────────────
#  BUILD & DEPLOY
# ─────────────────────────────────────────────
def build_contracts(out_dir: str = "./artifacts") -> list[str]:
    """Compile both applications and export their ARC-32 specs."""
    from contracts.royalty_marketplace import app as market_app
    from contracts.royalty_token import app as token_app

    exported = []
    for name, application in (("royalty_token", token_app), ("royalty_marketplace", market_app)):
        path = os.path.join(out_dir, name)
        application.build().export(path)
        exported.append(path)
        print(f"🔨 {application.name} → {path}")
    return exported


def deploy_token(private_key: str, address: str) -> int:
    """Deploy the royalty token contract; the deployer becomes admin."""
    client = token_client(private_key)

    print("🔨 Deploying RoyaltyToken...")
    app_id, app_addr, tx_id = client.create()
    print(f"   Transaction: {tx_id}")
    client.fund(APP_FUNDING_MICROALGO)

    print(f"✅ Deployed! App ID: {app_id}  ({app_addr})")
    print(f"   Set: export ROYALTY_TOKEN_APP_ID={app_id}")
    return app_id


def deploy_market(private_key: str, address: str, fee_pct: float) -> int:
    """Deploy the marketplace with a platform fee in percent."""
    fee_bps = percent_to_basis_points(fee_pct)
    client  = market_client(private_key)

    print(f"🔨 Deploying RoyaltyMarketplace (fee {fee_pct}%)...")
    app_id, app_addr, tx_id = client.create(fee_bps=fee_bps)
    print(f"   Transaction: {tx_id}")
    client.fund(APP_FUNDING_MICROALGO)

    print(f"✅ Deployed! App ID: {app_id}  ({app_addr})")
    print(f"   Set: export ROYALTY_MARKET_APP_ID={app_id}")
    return app_id


# ─────────────────────────────────────────────
#  TOKEN ADMIN
# ─────────────────────────────────────────────
def mint(
    private_key: str,
    address: str,
    owner: str,
    receiver: str,
    royalty_pct: float,
) -> int:
    """
    Mint the next token.

    Args:
        owner:        Account receiving the token
        receiver:     Royalty receiver (ZERO_ADDRESS = follow the default)
        royalty_pct:  Royalty percentage (e.g. 5 = 5% = 500 bps)

    Returns:
        New token id
    """
    from contracts.royalty_token import token_box_name

    royalty_bps = percent_to_basis_points(royalty_pct)
    validate_royalty(receiver, royalty_bps)

    client  = token_client(private_key)
    next_id = client.get_global_state().get("token_count", 0) + 1

    print(f"🎨 Minting token #{next_id} to {owner} ({royalty_bps} bps → {receiver})...")
    result = client.call(
        "mint",
        owner=owner,
        receiver=receiver,
        basis_points=royalty_bps,
        boxes=[(TOKEN_APP_ID, token_box_name(next_id))],
    )
    token_id = result.return_value
    print(f"✅ Minted! Token ID: {token_id}")
    return token_id


def set_default_royalty(private_key: str, address: str, receiver: str, royalty_pct: float) -> None:
    royalty_bps = percent_to_basis_points(royalty_pct)
    validate_royalty(receiver, royalty_bps)

    print(f"⚙  Default royalty → {royalty_bps} bps to {receiver}")
    token_client(private_key).call("set_default_royalty", receiver=receiver, basis_points=royalty_bps)
    print("✅ Default royalty updated.")


def set_token_royalty(
    private_key: str,
    address: str,
    token_id: int,
    receiver: str,
    royalty_pct: float,
) -> None:
    from contracts.royalty_token import token_box_name

    royalty_bps = percent_to_basis_points(royalty_pct)
    validate_royalty(receiver, royalty_bps)

    client = token_client(private_key)
    box    = [(TOKEN_APP_ID, token_box_name(token_id))]
    if receiver == ZERO_ADDRESS:
        print(f"⚙  Token {token_id} → follow default royalty")
        client.call("reset_token_royalty", token_id=token_id, boxes=box)
    else:
        print(f"⚙  Token {token_id} → {royalty_bps} bps to {receiver}")
        client.call("set_token_royalty", token_id=token_id, receiver=receiver, basis_points=royalty_bps, boxes=box)
    print("✅ Token royalty updated.")


def approve_market(private_key: str, address: str, token_id: int) -> None:
    """Token owner approves the marketplace app account as operator."""
    from contracts.royalty_token import token_box_name

    operator = get_application_address(MARKET_APP_ID)
    print(f"🤝 Approving marketplace {operator} for token {token_id}...")
    token_client(private_key).call(
        "approve",
        token_id=token_id,
        operator=operator,
        boxes=[(TOKEN_APP_ID, token_box_name(token_id))],
    )
    print("✅ Marketplace approved.")


# ─────────────────────────────────────────────
#  MARKETPLACE
# ─────────────────────────────────────────────
def list_token(private_key: str, address: str, token_id: int, price_algo: float) -> bool:
    """List a token; returns whether the token advertises royalties."""
    from contracts.royalty_marketplace import listing_box_name
    from contracts.royalty_token import token_box_name

    print(f"🏷  Listing token {token_id} for {price_algo} ALGO...")
    result = market_client(private_key).call(
        "list_token",
        token_app=TOKEN_APP_ID,
        token_id=token_id,
        price=to_micro(price_algo),
        boxes=[
            (MARKET_APP_ID, listing_box_name(TOKEN_APP_ID, token_id)),
            (TOKEN_APP_ID, token_box_name(token_id)),
        ],
    )
    aware = bool(result.return_value)
    print(f"✅ Listed! Royalty-aware: {'yes' if aware else 'no'}")
    return aware


def market_fee_sink() -> str:
    """The marketplace creator, which receives the platform fee."""
    return get_algod().application_info(MARKET_APP_ID)["params"]["creator"]


def buy_accounts(seller: str, fee_sink: str, quote=None) -> list[str]:
    """
    Accounts the buy call pays through inner transactions: seller, fee sink
    and, when a royalty is configured, its receiver. Duplicates dropped.
    """
    accounts = [seller, fee_sink]
    if quote is not None and quote.configured:
        accounts.append(quote.receiver)
    return list(dict.fromkeys(accounts))


def buy(private_key: str, address: str, token_id: int) -> list[RoyaltyReceipt]:
    """
    Buy a listed token at its list price.

    Grouped payment + app call. Returns the ReceivedRoyalties receipts
    logged by the purchase (empty when no royalty was due).
    """
    from contracts.royalty_marketplace import app as market_app
    from contracts.royalty_marketplace import listing_box_name
    from contracts.royalty_token import token_box_name

    boxes = [
        (MARKET_APP_ID, listing_box_name(TOKEN_APP_ID, token_id)),
        (TOKEN_APP_ID, token_box_name(token_id)),
    ]
    client = get_algod()
    signer = AccountTransactionSigner(private_key)
    market = market_client(private_key)

    seller, price, aware = market.call(
        "get_listing", token_app=TOKEN_APP_ID, token_id=token_id, boxes=boxes,
    ).return_value
    quote = fetch_quote(token_id, sender=address) if aware else None

    accounts = buy_accounts(seller, market_fee_sink(), quote)

    sp  = client.suggested_params()
    atc = AtomicTransactionComposer()
    payment_txn = PaymentTxn(
        sender=address,
        sp=sp,
        receiver=get_application_address(MARKET_APP_ID),
        amt=price,
    )
    atc.add_method_call(
        app_id=MARKET_APP_ID,
        method=market_app.contract.get_method_by_name("buy"),
        sender=address,
        sp=sp,
        signer=signer,
        method_args=[
            TOKEN_APP_ID,
            token_id,
            TransactionWithSigner(txn=payment_txn, signer=signer),
        ],
        accounts=accounts,
        boxes=boxes,
    )

    print(f"💰 Buying token {token_id} for {price / 1_000_000} ALGO...")
    result = atc.execute(client, 4)
    call   = result.abi_results[0]
    logs   = [base64.b64decode(entry) for entry in call.tx_info.get("logs", [])]
    receipts = received_royalties_from_logs(logs)

    print(f"✅ Purchase complete! Tx: {result.tx_ids[-1]}")
    print(f"   Royalty paid: {call.return_value / 1_000_000} ALGO")
    for receipt in receipts:
        print_receipt(receipt)
    return receipts


# ─────────────────────────────────────────────
#  READ-ONLY QUERIES
# ─────────────────────────────────────────────
def fetch_quote(token_id: int, sender: Optional[str] = None):
    """royalty_info(token_id) as a Quote."""
    from contracts.royalty_token import token_box_name

    if sender is None:
        sender = reader_address()
    result = token_client(sender=sender).call(
        "royalty_info",
        token_id=token_id,
        boxes=[(TOKEN_APP_ID, token_box_name(token_id))],
    )
    return quote_from_return(result.return_value)


def query_quote(token_id: int, price_algo: Optional[float] = None) -> dict:
    quote = fetch_quote(token_id)
    info  = {
        "token_id":     token_id,
        "receiver":     quote.receiver,
        "basis_points": quote.basis_points,
        "royalty_pct":  float(quote.percent),
        "configured":   quote.configured,
    }
    if price_algo is not None:
        info["royalty_algo"] = quote.payment_for(to_micro(price_algo)) / 1_000_000

    print(f"\n{'─'*50}")
    print(f"  ROYALTY QUOTE — Token {token_id}")
    print(f"{'─'*50}")
    for k, v in info.items():
        print(f"  {k:<25} {v}")
    print(f"{'─'*50}\n")
    return info


def query_supports(app_id: int, interface: str) -> bool:
    """Ask an app whether it supports one of INTERFACES."""
    from contracts.royalty_token import app as token_app

    iid    = INTERFACES[interface]
    client = ApplicationClient(
        get_algod(), token_app, app_id=app_id, signer=EmptySigner(), sender=reader_address(),
    )
    supported = bool(client.call("supports_interface", interface_id=iid).return_value)
    print(f"🔎 App {app_id} supports {interface} (0x{iid.hex()}): {supported}")
    return supported


def collect_receipts(transactions: list[dict]) -> list[tuple[str, RoyaltyReceipt]]:
    """(txid, receipt) for every ReceivedRoyalties log in indexer results."""
    found = []
    for txn in transactions:
        logs = [base64.b64decode(entry) for entry in txn.get("logs", [])]
        for receipt in received_royalties_from_logs(logs):
            found.append((txn.get("id", ""), receipt))
    return found


def query_receipts(limit: int = 100) -> list[tuple[str, RoyaltyReceipt]]:
    """Scan marketplace transactions on the indexer for royalty receipts."""
    response = get_indexer().search_transactions(application_id=MARKET_APP_ID, limit=limit)
    found = collect_receipts(response.get("transactions", []))

    print(f"\n{'─'*50}")
    print(f"  ROYALTY RECEIPTS — Marketplace {MARKET_APP_ID}")
    print(f"{'─'*50}")
    for tx_id, receipt in found:
        print(f"  {tx_id}")
        print_receipt(receipt)
    print(f"{'─'*50}\n")
    return found


def query_stats() -> dict:
    """Fetch marketplace statistics."""
    result = market_client(sender=reader_address()).call("get_stats").return_value
    stats  = {
        "total_sales":          result[0],
        "total_volume_algo":    result[1] / 1_000_000,
        "total_royalties_algo": result[2] / 1_000_000,
    }

    print(f"\n{'─'*50}")
    print(f"  MARKETPLACE STATS")
    print(f"{'─'*50}")
    for k, v in stats.items():
        print(f"  {k:<30} {v}")
    print(f"{'─'*50}\n")
    return stats


def print_receipt(receipt: RoyaltyReceipt) -> None:
    print(f"   📜 ReceivedRoyalties token={receipt.token_id} amount={receipt.amount}")
    print(f"      recipient={receipt.royalty_recipient}")
    print(f"      buyer    ={receipt.buyer}")


# ─────────────────────────────────────────────
#  CLI ENTRYPOINT
# ─────────────────────────────────────────────
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Royalty token + marketplace CLI for Algorand",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Compile both contracts to ./artifacts
  python deploy_and_interact.py build

  # Deploy
  python deploy_and_interact.py deploy-token
  python deploy_and_interact.py deploy-market --fee 2.5

  # Mint with a 5% royalty to a receiver
  python deploy_and_interact.py mint --owner OWNER... --receiver ARTIST... --royalty 5

  # Contract-wide default royalty
  python deploy_and_interact.py set-default --receiver ARTIST... --royalty 2

  # Sell
  python deploy_and_interact.py approve --token 1
  python deploy_and_interact.py list --token 1 --price 24
  python deploy_and_interact.py buy --token 1

  # Query
  python deploy_and_interact.py quote --token 1 --price 24
  python deploy_and_interact.py supports --app 1234 --interface royalty
  python deploy_and_interact.py receipts
  python deploy_and_interact.py stats
"""
    )

    sub = parser.add_subparsers(dest="cmd")

    p_build = sub.add_parser("build", help="Compile contracts to ARC-32 artifacts")
    p_build.add_argument("--out", default="./artifacts")

    sub.add_parser("deploy-token", help="Deploy the royalty token contract")

    p_dm = sub.add_parser("deploy-market", help="Deploy the marketplace contract")
    p_dm.add_argument("--fee", type=float, default=2.5, help="Platform fee in percent")

    p_mint = sub.add_parser("mint", help="Mint a token")
    p_mint.add_argument("--owner",    default=None, help="Defaults to the wallet address")
    p_mint.add_argument("--receiver", default=ZERO_ADDRESS, help="Royalty receiver; zero address = default")
    p_mint.add_argument("--royalty",  type=float, default=0.0, help="Royalty percent")

    p_def = sub.add_parser("set-default", help="Set the contract-wide default royalty")
    p_def.add_argument("--receiver", required=True)
    p_def.add_argument("--royalty",  type=float, required=True)

    p_set = sub.add_parser("set-royalty", help="Set or reset a token's royalty")
    p_set.add_argument("--token",    type=int, required=True)
    p_set.add_argument("--receiver", default=ZERO_ADDRESS, help="Zero address resets to default")
    p_set.add_argument("--royalty",  type=float, default=0.0)

    p_app = sub.add_parser("approve", help="Approve the marketplace for a token")
    p_app.add_argument("--token", type=int, required=True)

    p_list = sub.add_parser("list", help="List a token at a fixed price")
    p_list.add_argument("--token", type=int,   required=True)
    p_list.add_argument("--price", type=float, required=True, help="Price in ALGO")

    p_buy = sub.add_parser("buy", help="Buy a listed token")
    p_buy.add_argument("--token", type=int, required=True)

    p_quote = sub.add_parser("quote", help="Query royalty_info for a token")
    p_quote.add_argument("--token", type=int,   required=True)
    p_quote.add_argument("--price", type=float, default=None, help="Sale price in ALGO")

    p_sup = sub.add_parser("supports", help="Query supports_interface on an app")
    p_sup.add_argument("--app",       type=int, default=None, help="Defaults to the token app")
    p_sup.add_argument("--interface", choices=sorted(INTERFACES), default="royalty")

    p_rec = sub.add_parser("receipts", help="List ReceivedRoyalties events from the indexer")
    p_rec.add_argument("--limit", type=int, default=100)

    sub.add_parser("stats", help="View marketplace statistics")

    return parser


READ_ONLY_COMMANDS = {"build", "quote", "supports", "receipts", "stats"}


def main(argv: Optional[list[str]] = None):
    parser = build_parser()
    args   = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return

    try:
        if args.cmd in READ_ONLY_COMMANDS:
            run_query(args)
        else:
            run_transaction(args)
    except RoyaltyConfigError as exc:
        parser.error(str(exc))


def run_query(args: argparse.Namespace) -> None:
    if args.cmd == "build":
        build_contracts(args.out)

    elif args.cmd == "quote":
        query_quote(args.token, args.price)

    elif args.cmd == "supports":
        query_supports(args.app or TOKEN_APP_ID, args.interface)

    elif args.cmd == "receipts":
        query_receipts(args.limit)

    elif args.cmd == "stats":
        query_stats()


def run_transaction(args: argparse.Namespace) -> None:
    private_key, address = load_account()
    print(f"\n👛 Wallet: {address}")
    print(f"   Token App ID : {TOKEN_APP_ID}")
    print(f"   Market App ID: {MARKET_APP_ID}\n")

    if args.cmd == "deploy-token":
        deploy_token(private_key, address)

    elif args.cmd == "deploy-market":
        deploy_market(private_key, address, args.fee)

    elif args.cmd == "mint":
        mint(private_key, address, args.owner or address, args.receiver, args.royalty)

    elif args.cmd == "set-default":
        set_default_royalty(private_key, address, args.receiver, args.royalty)

    elif args.cmd == "set-royalty":
        set_token_royalty(private_key, address, args.token, args.receiver, args.royalty)

    elif args.cmd == "approve":
        approve_market(private_key, address, args.token)

    elif args.cmd == "list":
        list_token(private_key, address, args.token, args.price)

    elif args.cmd == "buy":
        buy(private_key, address, args.token)


if __name__ == "__main__":
    main()
