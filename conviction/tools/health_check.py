#!/usr/bin/env python3
"""
Conviction Analytics - Live API Health Check
Verifies connectivity to DexScreener, Birdeye, Ethos, FairScale, web3.bio and Neynar.

Usage:
    python -m conviction.tools.health_check
"""
import sys
from typing import Dict, Optional

import requests

from conviction.config import ConvictionConfig

SOL_MINT = "So11111111111111111111111111111111111111112"
# vitalik.eth; has Ethos, web3.bio and Farcaster profiles
TEST_EVM_ADDRESS = "0xd8da6bf26964af9d7eed9e10c65c3b6e0e4ebdaf"


def _get(url: str, headers: Optional[Dict[str, str]] = None, params: Optional[dict] = None) -> requests.Response:
    return requests.get(url, headers=headers, params=params, timeout=ConvictionConfig.get_provider_timeout_seconds())


def check_dexscreener() -> bool:
    print("\n[1/6] Checking DexScreener (No key required)...")
    try:
        resp = _get(f"{ConvictionConfig.get_dexscreener_base_url()}/latest/dex/tokens/{SOL_MINT}")
        resp.raise_for_status()
        pairs = resp.json().get("pairs") or []
        if pairs:
            print(f"✅ DexScreener connected. {len(pairs)} SOL pairs found.")
            return True
        print("❌ DexScreener returned no pairs.")
        return False
    except (requests.RequestException, ValueError) as e:
        print(f"❌ DexScreener failed: {e}")
        return False


def check_birdeye() -> bool:
    print("\n[2/6] Checking Birdeye API...")
    key = ConvictionConfig.get_birdeye_api_key()
    if not key:
        print("⚠️  BIRDEYE_API_KEY not found. Solana market data will use DexScreener only.")
        return True  # Not fatal
    try:
        resp = _get(
            f"{ConvictionConfig.get_birdeye_base_url()}/defi/price",
            headers={"X-API-KEY": key, "x-chain": "solana"},
            params={"address": SOL_MINT},
        )
        resp.raise_for_status()
        data = resp.json().get("data") or {}
        if data.get("value"):
            print(f"✅ Birdeye connected. SOL Price: ${float(data['value']):.2f}")
            return True
        print("❌ Birdeye returned no data for SOL.")
        return False
    except (requests.RequestException, ValueError) as e:
        print(f"❌ Birdeye failed: {e}")
        return False


def check_ethos() -> bool:
    print("\n[3/6] Checking Ethos API...")
    try:
        resp = _get(
            f"{ConvictionConfig.get_ethos_base_url()}/score/address",
            headers={"X-Ethos-Client": ConvictionConfig.get_ethos_client_id()},
            params={"address": TEST_EVM_ADDRESS},
        )
        if resp.status_code == 404:
            print("⚠️  Ethos connected but has no profile for the test address.")
            return True
        resp.raise_for_status()
        print(f"✅ Ethos connected. Score: {resp.json().get('score')}")
        return True
    except (requests.RequestException, ValueError) as e:
        print(f"❌ Ethos failed: {e}")
        return False


def check_fairscale() -> bool:
    print("\n[4/6] Checking FairScale API...")
    key = ConvictionConfig.get_fairscale_api_key()
    if not key:
        print("⚠️  FAIRSCALE_API_KEY not found. Solana trust scores will be unavailable.")
        return True  # Not fatal
    try:
        resp = _get(
            f"{ConvictionConfig.get_fairscale_base_url()}/score",
            headers={"fairkey": key},
            params={"wallet": SOL_MINT},
        )
        resp.raise_for_status()
        print(f"✅ FairScale connected. FairScore: {resp.json().get('fairscore')}")
        return True
    except (requests.RequestException, ValueError) as e:
        print(f"❌ FairScale failed: {e}")
        return False


def check_web3bio() -> bool:
    print("\n[5/6] Checking web3.bio...")
    headers = {}
    key = ConvictionConfig.get_web3bio_api_key()
    if key:
        headers["X-API-KEY"] = f"Bearer {key}"
    try:
        resp = _get(f"{ConvictionConfig.get_web3bio_base_url()}/profile/{TEST_EVM_ADDRESS}", headers=headers)
        if resp.status_code == 404:
            print("⚠️  web3.bio connected but found no profiles.")
            return True
        resp.raise_for_status()
        print(f"✅ web3.bio connected. {len(resp.json())} linked profiles.")
        return True
    except (requests.RequestException, ValueError) as e:
        print(f"❌ web3.bio failed: {e}")
        return False


def check_neynar() -> bool:
    print("\n[6/6] Checking Neynar API...")
    key = ConvictionConfig.get_neynar_api_key()
    if not key:
        print("⚠️  NEYNAR_API_KEY not found. Farcaster identity bridging disabled.")
        return True  # Not fatal
    try:
        resp = _get(
            f"{ConvictionConfig.get_neynar_base_url()}/farcaster/user/bulk-by-address",
            headers={"x-api-key": key},
            params={"addresses": TEST_EVM_ADDRESS},
        )
        if resp.status_code == 404:
            print("⚠️  Neynar connected but found no Farcaster user.")
            return True
        resp.raise_for_status()
        print("✅ Neynar connected.")
        return True
    except (requests.RequestException, ValueError) as e:
        print(f"❌ Neynar failed: {e}")
        return False


def main() -> int:
    print("=== Conviction Connectivity Check ===")
    results = [
        check_dexscreener(),
        check_birdeye(),
        check_ethos(),
        check_fairscale(),
        check_web3bio(),
        check_neynar(),
    ]

    if all(results):
        print("\n✅ All systems GO.")
        return 0
    print("\n❌ Some systems failed checks.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
