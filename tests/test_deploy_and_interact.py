from __future__ import annotations

import base64

import pytest
from algosdk import account, encoding, mnemonic

import deploy_and_interact as cli
from contracts.royalty_standard import (
    RETURN_PREFIX,
    ROYALTY_INTERFACE_ID,
    ZERO_ADDRESS,
    Quote,
    RoyaltyReceipt,
    encode_received_royalties,
)

ARTIST = encoding.encode_address(bytes([1]) * 32)
BUYER = encoding.encode_address(bytes([2]) * 32)
SELLER = encoding.encode_address(bytes([3]) * 32)
CREATOR = encoding.encode_address(bytes([4]) * 32)


def b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode()


def test_collect_receipts_from_indexer_transactions() -> None:
    receipt = RoyaltyReceipt(royalty_recipient=ARTIST, buyer=BUYER, token_id=3, amount=12_500)
    transactions = [
        {"id": "LISTTX", "logs": [b64(RETURN_PREFIX + b"\x80")]},
        {"id": "BUYTX", "logs": [b64(encode_received_royalties(receipt)), b64(RETURN_PREFIX + (12_500).to_bytes(8, "big"))]},
        {"id": "PAYTX"},
    ]
    assert cli.collect_receipts(transactions) == [("BUYTX", receipt)]


def test_load_account_from_mnemonic(monkeypatch: pytest.MonkeyPatch) -> None:
    private_key, address = account.generate_account()
    monkeypatch.setenv("ROYALTY_MNEMONIC", mnemonic.from_private_key(private_key))

    loaded_key, loaded_address = cli.load_account()
    assert loaded_address == address
    assert loaded_key == private_key


def test_load_account_generates_when_unset(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv("ROYALTY_MNEMONIC", raising=False)

    _, address = cli.load_account()
    assert encoding.is_valid_address(address)
    assert "No ROYALTY_MNEMONIC set" in capsys.readouterr().out


def test_to_micro() -> None:
    assert cli.to_micro(24) == 24_000_000
    assert cli.to_micro(0.1) == 100_000


def test_interfaces_table() -> None:
    assert cli.INTERFACES["royalty"] == ROYALTY_INTERFACE_ID
    assert cli.INTERFACES["invalid"] == b"\xff\xff\xff\xff"


def test_main_without_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main([])
    assert "Royalty token + marketplace CLI" in capsys.readouterr().out


@pytest.mark.parametrize(
    "argv",
    [
        ["mint", "--receiver", ARTIST, "--royalty", "0.001"],
        ["mint", "--receiver", ZERO_ADDRESS, "--royalty", "5"],
        ["mint", "--receiver", ARTIST, "--royalty", "0"],
        ["set-default", "--receiver", ARTIST, "--royalty", "150"],
        ["deploy-market", "--fee", "-1"],
        ["deploy-market", "--fee", "inf"],
        ["mint", "--receiver", ARTIST, "--royalty", "nan"],
        ["set-default", "--receiver", ARTIST, "--royalty", "inf"],
    ],
)
def test_invalid_royalty_is_a_usage_error(argv: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
    # Validation happens before any node is contacted.
    monkeypatch.delenv("ROYALTY_MNEMONIC", raising=False)
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    assert exc.value.code == 2


def test_supports_rejects_unknown_interface_name() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["supports", "--interface", "erc721"])


def test_buy_accounts_include_fee_sink_and_royalty_receiver() -> None:
    quote = Quote(receiver=ARTIST, basis_points=500)
    assert cli.buy_accounts(SELLER, CREATOR, quote) == [SELLER, CREATOR, ARTIST]


def test_buy_accounts_without_royalty() -> None:
    assert cli.buy_accounts(SELLER, CREATOR) == [SELLER, CREATOR]
    assert cli.buy_accounts(SELLER, CREATOR, Quote(receiver=ZERO_ADDRESS, basis_points=0)) == [SELLER, CREATOR]


def test_buy_accounts_drop_duplicates() -> None:
    # Creator selling their own token, royalties to themselves.
    quote = Quote(receiver=CREATOR, basis_points=250)
    assert cli.buy_accounts(CREATOR, CREATOR, quote) == [CREATOR]


def test_reader_address_defaults_to_zero_address(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv("ROYALTY_MNEMONIC", raising=False)
    assert cli.reader_address() == ZERO_ADDRESS
    assert capsys.readouterr().out == ""


def test_reader_address_uses_configured_account(monkeypatch: pytest.MonkeyPatch) -> None:
    private_key, address = account.generate_account()
    monkeypatch.setenv("ROYALTY_MNEMONIC", mnemonic.from_private_key(private_key))
    assert cli.reader_address() == address


class FakeResult:
    def __init__(self, return_value) -> None:
        self.return_value = return_value


class FakeClient:
    def __init__(self, return_value) -> None:
        self.return_value = return_value
        self.calls: list[tuple[str, dict]] = []

    def call(self, method: str, **kwargs) -> FakeResult:
        self.calls.append((method, kwargs))
        return FakeResult(self.return_value)


def test_read_only_queries_do_not_create_accounts(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv("ROYALTY_MNEMONIC", raising=False)
    senders = []
    market = FakeClient([2, 3_000_000, 150_000])
    token = FakeClient([ARTIST, 500])

    def fake_market_client(private_key=None, sender=None):
        senders.append(sender)
        return market

    def fake_token_client(private_key=None, sender=None):
        senders.append(sender)
        return token

    monkeypatch.setattr(cli, "market_client", fake_market_client)
    monkeypatch.setattr(cli, "token_client", fake_token_client)

    stats = cli.query_stats()
    info = cli.query_quote(1, price_algo=1)

    assert stats["total_sales"] == 2
    assert stats["total_royalties_algo"] == 0.15
    assert info["basis_points"] == 500
    assert info["royalty_algo"] == 0.05
    assert senders == [ZERO_ADDRESS, ZERO_ADDRESS]
    assert "Mnemonic" not in capsys.readouterr().out


def test_usage_examples_parse() -> None:
    parser = cli.build_parser()
    examples = [
        line.split("deploy_and_interact.py", 1)[1].strip(" ║").split()
        for line in cli.__doc__.splitlines()
        if "python deploy_and_interact.py " in line
    ]
    assert examples
    for argv in examples:
        args = parser.parse_args(argv)
        if args.cmd == "mint":
            # A royalty without a receiver is rejected by validation.
            assert args.receiver != ZERO_ADDRESS
