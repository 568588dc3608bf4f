from __future__ import annotations

from decimal import Decimal

import pytest
from algosdk import encoding

from contracts import royalty_standard as rs

ARTIST = encoding.encode_address(bytes([1]) * 32)
BUYER = encoding.encode_address(bytes([2]) * 32)


def test_royalty_interface_id_is_the_royalty_info_selector() -> None:
    selector = rs.method_selector(rs.ROYALTY_INFO_SIGNATURE)
    assert len(selector) == 4
    assert rs.ROYALTY_INTERFACE_ID == selector
    assert rs.interface_id(rs.ROYALTY_INFO_SIGNATURE) == selector


def test_interface_id_xors_method_selectors() -> None:
    a = rs.method_selector(rs.ROYALTY_INFO_SIGNATURE)
    b = rs.method_selector(rs.SUPPORTS_INTERFACE_SIGNATURE)
    combined = rs.interface_id(rs.ROYALTY_INFO_SIGNATURE, rs.SUPPORTS_INTERFACE_SIGNATURE)
    assert combined == bytes(x ^ y for x, y in zip(a, b))

    with pytest.raises(ValueError):
        rs.interface_id()


def test_event_selector_hashes_signature_without_return_type() -> None:
    expected = encoding.checksum(rs.RECEIVED_ROYALTIES_SIGNATURE.encode())[:4]
    assert rs.RECEIVED_ROYALTIES_SELECTOR == expected
    assert rs.RECEIVED_ROYALTIES_SELECTOR != rs.RETURN_PREFIX


def test_capability_table_answers_and_is_read_only() -> None:
    table = rs.CapabilityTable([rs.DISCOVERY_INTERFACE_ID, rs.ROYALTY_INTERFACE_ID])

    assert table.supports(rs.ROYALTY_INTERFACE_ID)
    assert table.supports(rs.DISCOVERY_INTERFACE_ID)
    assert not table.supports(rs.INVALID_INTERFACE_ID)
    assert not table.supports(b"\x00\x00\x00\x00")
    assert len(table) == 2
    assert set(table) == {rs.DISCOVERY_INTERFACE_ID, rs.ROYALTY_INTERFACE_ID}

    with pytest.raises(TypeError):
        table[b"\x01\x02\x03\x04"] = True  # type: ignore[index]


def test_capability_table_rejects_bad_entries() -> None:
    with pytest.raises(ValueError):
        rs.CapabilityTable([rs.INVALID_INTERFACE_ID])
    with pytest.raises(ValueError):
        rs.CapabilityTable([b"\x01\x02"])
    with pytest.raises(ValueError):
        rs.CapabilityTable([])


@pytest.mark.parametrize(
    "percent, expected",
    [(5, 500), ("2.5", 250), (1.0, 100), (Decimal("0.01"), 1), (100, 10_000), (0, 0)],
)
def test_percent_to_basis_points(percent, expected) -> None:
    assert rs.percent_to_basis_points(percent) == expected


@pytest.mark.parametrize("percent", ["0.001", 101, -1, "five", "inf", float("inf"), "nan", float("-inf")])
def test_percent_to_basis_points_rejects(percent) -> None:
    with pytest.raises(rs.RoyaltyConfigError):
        rs.percent_to_basis_points(percent)


def test_validate_royalty_bounds() -> None:
    rs.validate_royalty(ARTIST, rs.MIN_ROYALTY_BPS)
    rs.validate_royalty(ARTIST, rs.MAX_ROYALTY_BPS)
    rs.validate_royalty(rs.ZERO_ADDRESS, 0)

    with pytest.raises(rs.RoyaltyConfigError):
        rs.validate_royalty(ARTIST, 0)
    with pytest.raises(rs.RoyaltyConfigError):
        rs.validate_royalty(ARTIST, rs.MAX_ROYALTY_BPS + 1)
    with pytest.raises(rs.RoyaltyConfigError):
        rs.validate_royalty(rs.ZERO_ADDRESS, 500)
    with pytest.raises(rs.RoyaltyConfigError):
        rs.validate_royalty("not-an-address", 500)


def test_royalty_payment_rounds_down() -> None:
    assert rs.royalty_payment(1_000_000, 500) == 50_000
    assert rs.royalty_payment(999, 500) == 49
    assert rs.royalty_payment(10, 1) == 0
    assert rs.royalty_payment(1_000_000, rs.MAX_ROYALTY_BPS) == 1_000_000

    with pytest.raises(rs.RoyaltyConfigError):
        rs.royalty_payment(-1, 500)
    with pytest.raises(rs.RoyaltyConfigError):
        rs.royalty_payment(100, rs.MAX_ROYALTY_BPS + 1)


def test_quote_from_return_value() -> None:
    quote = rs.quote_from_return([ARTIST, 500])
    assert quote == rs.Quote(receiver=ARTIST, basis_points=500)
    assert quote.configured
    assert quote.percent == Decimal(5)
    assert quote.payment_for(2_000_000) == 100_000

    unset = rs.quote_from_return([rs.ZERO_ADDRESS, 0])
    assert not unset.configured
    assert unset.payment_for(2_000_000) == 0


def test_received_royalties_log_codec() -> None:
    receipt = rs.RoyaltyReceipt(royalty_recipient=ARTIST, buyer=BUYER, token_id=7, amount=50_000)
    log = rs.encode_received_royalties(receipt)

    assert log[:4] == rs.RECEIVED_ROYALTIES_SELECTOR
    assert len(log) == 4 + 32 + 32 + 8 + 8
    assert rs.decode_received_royalties(log) == receipt

    with pytest.raises(ValueError):
        rs.decode_received_royalties(rs.RETURN_PREFIX + log[4:])


def test_received_royalties_from_logs_skips_other_entries() -> None:
    receipt = rs.RoyaltyReceipt(royalty_recipient=ARTIST, buyer=BUYER, token_id=1, amount=10)
    logs = [
        b"unrelated",
        rs.encode_received_royalties(receipt),
        rs.RETURN_PREFIX + (10).to_bytes(8, "big"),
    ]
    assert rs.received_royalties_from_logs(logs) == [receipt]
    assert rs.received_royalties_from_logs([]) == []


def test_five_percent_round_trip() -> None:
    # Configure 5% → quote 500 bps → sale pays 5% → one receipt with that amount.
    bps = rs.percent_to_basis_points(5)
    rs.validate_royalty(ARTIST, bps)
    quote = rs.quote_from_return([ARTIST, bps])
    assert quote.basis_points == 500

    sale_price = 1_000_000
    paid = quote.payment_for(sale_price)
    assert paid == 50_000

    log = rs.encode_received_royalties(
        rs.RoyaltyReceipt(royalty_recipient=quote.receiver, buyer=BUYER, token_id=1, amount=paid)
    )
    receipts = rs.received_royalties_from_logs([log])
    assert len(receipts) == 1
    assert receipts[0].royalty_recipient == ARTIST
    assert receipts[0].buyer == BUYER
    assert receipts[0].token_id == 1
    assert receipts[0].amount == paid


@pytest.mark.parametrize("percent", ["inf", "-inf", "nan"])
def test_non_finite_percent_names_the_problem(percent) -> None:
    with pytest.raises(rs.RoyaltyConfigError, match="finite"):
        rs.percent_to_basis_points(float(percent))
