"""
Provider payload and ledger parsing tests.
"""

import pytest

from conviction.core.dto import (
    BirdeyeHistoryResponse,
    BirdeyePriceResponse,
    DexTokenResponse,
    FairScaleScoreResponse,
    NeynarBulkByAddress,
    Web3BioProfiles,
    map_birdeye_history,
    map_birdeye_price,
    map_neynar_users,
    map_web3bio_profiles,
    parse_ledger,
    parse_payload,
    select_dex_pair,
)
from conviction.core.exceptions import InvalidLedgerError, ProviderPayloadError
from conviction.core.models import TradeDirection

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
EVM = "0xd8da6bf26964af9d7eed9e10c65c3b6e0e4ebdaf"


def ledger_trade(hash_, ts, amount, price):
    return {"hash": hash_, "timestamp": ts, "amount": amount, "priceUsd": price, "valueUsd": amount * price}


class TestParseLedger:

    def test_builds_positions_in_order(self):
        payload = [
            {
                "tokenAddress": "BBB",
                "tokenSymbol": "BEE",
                "entries": [ledger_trade("b2", 2000, 5, 1.0), ledger_trade("b1", 1000, 5, 2.0)],
                "exits": [ledger_trade("s1", 3000, 10, 3.0)],
            },
            {"tokenAddress": "AAA", "entries": [ledger_trade("a1", 1000, 1, 1.0)]},
        ]

        positions = parse_ledger(WALLET, payload)

        assert [p.token_address for p in positions] == ["BBB", "AAA"]
        bbb = positions[0]
        assert bbb.token_symbol == "BEE"
        assert [e.hash for e in bbb.entries] == ["b1", "b2"], "Entries are sorted by time"
        assert bbb.exits[0].direction == TradeDirection.SELL
        assert bbb.total_invested == pytest.approx(15.0)
        assert positions[1].exits == []

    def test_extra_fields_are_ignored(self):
        payload = [{"tokenAddress": "AAA", "chain": "solana",
                    "entries": [dict(ledger_trade("a1", 1, 1, 1.0), fee=0.1)]}]
        assert len(parse_ledger(WALLET, payload)) == 1

    @pytest.mark.parametrize("payload", [
        {"not": "a list"},
        [{"tokenAddress": "AAA", "entries": []}],
        [{"tokenAddress": "", "entries": [ledger_trade("a", 1, 1, 1.0)]}],
        [{"tokenAddress": "AAA", "entries": [ledger_trade("a", 1, -1, 1.0)]}],
        [{"tokenAddress": "AAA", "entries": [{"hash": "a", "timestamp": 1, "amount": 1}]}],
        [{"tokenAddress": "AAA", "entries": [ledger_trade("a", 1, 1, float("nan"))]}],
    ])
    def test_malformed_ledger_raises(self, payload):
        with pytest.raises(InvalidLedgerError):
            parse_ledger(WALLET, payload)

    def test_duplicate_token_raises(self):
        position = {"tokenAddress": "AAA", "entries": [ledger_trade("a", 1, 1, 1.0)]}
        with pytest.raises(InvalidLedgerError, match="duplicate"):
            parse_ledger(WALLET, [position, position])

    def test_wallet_required(self):
        with pytest.raises(InvalidLedgerError):
            parse_ledger("", [])

    def test_invalid_ledger_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_ledger(WALLET, "garbage")


class TestBirdeyePayloads:

    def test_price_accepts_either_change_field(self):
        response = parse_payload("birdeye", BirdeyePriceResponse, {
            "success": True,
            "data": {"value": 1.25, "priceChange24hPercent": -4.5, "updateUnixTime": 1700000000},
        })
        quote = map_birdeye_price(response)
        assert quote.price == 1.25
        assert quote.price_change_24h == -4.5
        assert quote.source == "birdeye"

    def test_success_false_is_a_payload_error(self):
        response = parse_payload("birdeye", BirdeyePriceResponse, {"success": False, "data": None})
        with pytest.raises(ProviderPayloadError):
            map_birdeye_price(response)

    def test_schema_mismatch_is_a_payload_error(self):
        with pytest.raises(ProviderPayloadError) as exc:
            parse_payload("birdeye", BirdeyePriceResponse, {"data": {"value": "n/a"}})
        assert exc.value.provider == "birdeye"

    def test_history_seconds_become_milliseconds(self):
        response = parse_payload("birdeye", BirdeyeHistoryResponse, {
            "success": True,
            "data": {"items": [{"unixTime": 200, "value": 2.0}, {"unixTime": 100, "value": 1.0}]},
        })
        points = map_birdeye_history(response)
        assert [(p.timestamp, p.price) for p in points] == [(100_000, 1.0), (200_000, 2.0)]


class TestDexScreenerPayloads:

    def test_prefers_pairs_where_token_is_base(self):
        response = parse_payload("dexscreener", DexTokenResponse, {"pairs": [
            {"chainId": "base", "baseToken": {"address": "0xweth"}, "priceUsd": "3000",
             "liquidity": {"usd": 1e9}},
            {"chainId": "base", "baseToken": {"address": "0xTOKEN"}, "priceUsd": "0.01",
             "liquidity": {"usd": 1e4}},
        ]})
        pair = select_dex_pair("0xtoken", "base", response)
        assert pair.price_usd == pytest.approx(0.01)

    def test_no_pairs(self):
        response = parse_payload("dexscreener", DexTokenResponse, {"schemaVersion": "1.0.0", "pairs": None})
        assert select_dex_pair("X", "solana", response) is None

    def test_unpriced_pairs_are_skipped(self):
        response = parse_payload("dexscreener", DexTokenResponse, {"pairs": [
            {"chainId": "solana", "baseToken": {"address": "X"}, "priceUsd": None},
        ]})
        assert select_dex_pair("X", "solana", response) is None


class TestIdentityPayloads:

    def test_web3bio_profiles(self):
        profiles = parse_payload("web3bio", Web3BioProfiles, [
            {"address": EVM, "identity": "vitalik.eth", "platform": "ens",
             "links": {"twitter": {"handle": "@VitalikButerin"}}},
            {"address": WALLET, "identity": WALLET, "platform": "solana"},
            {"identity": "vitalik", "platform": "farcaster"},
        ])
        links = map_web3bio_profiles(profiles)
        assert links.evm_addresses == [EVM]
        assert links.solana_addresses == [WALLET]
        assert links.social_handle == "VitalikButerin"

    def test_neynar_match_is_case_insensitive(self):
        response = parse_payload("neynar", NeynarBulkByAddress, {
            EVM.upper().replace("0X", "0x"): [{
                "fid": 5650,
                "username": "vitalik.eth",
                "verified_addresses": {"eth_addresses": [EVM], "sol_addresses": [WALLET]},
                "verified_accounts": [{"platform": "x", "username": "VitalikButerin"}],
            }],
        })
        links = map_neynar_users(EVM, response)
        assert links.solana_addresses == [WALLET]
        assert links.social_handle == "VitalikButerin"

    def test_neynar_unknown_address(self):
        response = parse_payload("neynar", NeynarBulkByAddress, {})
        links = map_neynar_users(EVM, response)
        assert links.social_handle is None
        assert links.evm_addresses == []


class TestReputationPayloads:

    def test_fairscale_badges(self):
        response = parse_payload("fairscale", FairScaleScoreResponse, {
            "wallet": WALLET, "fairscore": 71.3, "tier": "gold",
            "badges": [{"id": "diamond_hands", "label": "Diamond Hands"}],
            "actions": [],
        })
        assert response.fairscore == pytest.approx(71.3)
        assert response.badges[0].label == "Diamond Hands"

    def test_fairscale_negative_score_rejected(self):
        with pytest.raises(ProviderPayloadError):
            parse_payload("fairscale", FairScaleScoreResponse, {"wallet": WALLET, "fairscore": -1})
