"""
Provider and ledger DTOs.

Each external payload is validated by a pydantic model before anything is
read from it, then converted into internal models by an explicit map_*
function. A provider changing its response shape fails here, as a
ProviderPayloadError, instead of leaking None into the scoring math.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, RootModel, ValidationError

from .exceptions import InvalidLedgerError, ProviderPayloadError
from .models import (
    Position,
    PricePoint,
    PriceQuote,
    TokenMetadata,
    TradeDirection,
    TradeEvent,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class ProviderModel(BaseModel):
    """Base for provider payloads: unknown fields are ignored, known ones validated."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def parse_payload(provider: str, model: Type[M], payload: Any) -> M:
    """
    Validate a decoded JSON payload against a provider model.

    Raises:
        ProviderPayloadError: the payload does not match the model
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ProviderPayloadError(
            provider, f"unexpected {model.__name__} payload ({e.error_count()} errors)"
        ) from e


# ============================================================================
# Birdeye (Solana, keyed)
# ============================================================================

class BirdeyePrice(ProviderModel):
    value: float
    price_change_24h: Optional[float] = Field(
        None, validation_alias=AliasChoices("priceChange24h", "priceChange24hPercent")
    )
    update_unix_time: Optional[int] = Field(None, alias="updateUnixTime")


class BirdeyePriceResponse(ProviderModel):
    success: bool
    data: Optional[BirdeyePrice] = None


class BirdeyeOverview(ProviderModel):
    address: Optional[str] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    logo_uri: Optional[str] = Field(None, alias="logoURI")


class BirdeyeOverviewResponse(ProviderModel):
    success: bool
    data: Optional[BirdeyeOverview] = None


class BirdeyeHistoryItem(ProviderModel):
    unix_time: int = Field(alias="unixTime")
    value: float


class BirdeyeHistoryData(ProviderModel):
    items: List[BirdeyeHistoryItem] = Field(default_factory=list)


class BirdeyeHistoryResponse(ProviderModel):
    success: bool
    data: Optional[BirdeyeHistoryData] = None


def _require_success(provider: str, response) -> None:
    if not response.success:
        raise ProviderPayloadError(provider, "response flagged success=false")


def map_birdeye_price(response: BirdeyePriceResponse) -> Optional[PriceQuote]:
    _require_success("birdeye", response)
    if response.data is None:
        return None
    return PriceQuote(price=response.data.value,
                      price_change_24h=response.data.price_change_24h,
                      source="birdeye")


def map_birdeye_overview(token_address: str, response: BirdeyeOverviewResponse) -> Optional[TokenMetadata]:
    _require_success("birdeye", response)
    data = response.data
    if data is None:
        return None
    return TokenMetadata(address=token_address, name=data.name, symbol=data.symbol,
                         logo_uri=data.logo_uri, decimals=data.decimals, source="birdeye")


def map_birdeye_history(response: BirdeyeHistoryResponse) -> List[PricePoint]:
    _require_success("birdeye", response)
    if response.data is None:
        return []
    points = [PricePoint(timestamp=item.unix_time * 1000, price=item.value)
              for item in response.data.items]
    return sorted(points, key=lambda p: p.timestamp)


# ============================================================================
# DexScreener (both chains, unauthenticated)
# ============================================================================

class DexToken(ProviderModel):
    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None


class DexPriceChange(ProviderModel):
    h24: Optional[float] = None


class DexInfo(ProviderModel):
    image_url: Optional[str] = Field(None, alias="imageUrl")


class DexLiquidity(ProviderModel):
    usd: Optional[float] = None


class DexPair(ProviderModel):
    chain_id: str = Field(alias="chainId")
    pair_address: Optional[str] = Field(None, alias="pairAddress")
    base_token: DexToken = Field(alias="baseToken")
    price_usd: Optional[float] = Field(None, alias="priceUsd")
    price_change: Optional[DexPriceChange] = Field(None, alias="priceChange")
    liquidity: Optional[DexLiquidity] = None
    info: Optional[DexInfo] = None


class DexTokenResponse(ProviderModel):
    pairs: Optional[List[DexPair]] = None


def select_dex_pair(token_address: str, chain_id: str, response: DexTokenResponse) -> Optional[DexPair]:
    """
    Pick the most liquid priced pair on the requested chain whose base token is the token.

    Falls back to any priced pair on the chain when none lists the token as base.
    """
    pairs = [p for p in (response.pairs or [])
             if p.chain_id == chain_id and p.price_usd is not None and p.price_usd > 0]
    if not pairs:
        return None
    as_base = [p for p in pairs if p.base_token.address.lower() == token_address.lower()]
    candidates = as_base or pairs
    return max(candidates, key=lambda p: (p.liquidity.usd or 0.0) if p.liquidity else 0.0)


def map_dex_price(pair: Optional[DexPair]) -> Optional[PriceQuote]:
    if pair is None:
        return None
    change = pair.price_change.h24 if pair.price_change else None
    return PriceQuote(price=pair.price_usd, price_change_24h=change, source="dexscreener")


def map_dex_metadata(token_address: str, pair: Optional[DexPair]) -> Optional[TokenMetadata]:
    if pair is None:
        return None
    return TokenMetadata(
        address=token_address,
        name=pair.base_token.name,
        symbol=pair.base_token.symbol,
        logo_uri=pair.info.image_url if pair.info else None,
        source="dexscreener",
    )


# ============================================================================
# Ethos (EVM reputation)
# ============================================================================

class EthosScoreResponse(ProviderModel):
    score: float = Field(ge=0)
    level: Optional[str] = None


# ============================================================================
# FairScale (Solana reputation)
# ============================================================================

class FairScaleBadge(ProviderModel):
    id: str
    label: Optional[str] = None
    tier: Optional[str] = None


class FairScaleScoreResponse(ProviderModel):
    wallet: str
    fairscore: float = Field(ge=0)
    fairscore_base: Optional[float] = None
    social_score: Optional[float] = None
    tier: Optional[str] = None
    badges: List[FairScaleBadge] = Field(default_factory=list)


# ============================================================================
# Identity bridging: web3.bio and Neynar
# ============================================================================

class IdentityLinks(BaseModel):
    """Provider-neutral identity lookup result."""
    evm_addresses: List[str] = Field(default_factory=list)
    solana_addresses: List[str] = Field(default_factory=list)
    social_handle: Optional[str] = None


class Web3BioLink(ProviderModel):
    handle: Optional[str] = None


class Web3BioLinks(ProviderModel):
    twitter: Optional[Web3BioLink] = None


class Web3BioProfile(ProviderModel):
    address: Optional[str] = None
    identity: str
    platform: str
    display_name: Optional[str] = Field(None, alias="displayName")
    links: Optional[Web3BioLinks] = None


class Web3BioProfiles(RootModel[List[Web3BioProfile]]):
    pass


class NeynarVerifiedAddresses(ProviderModel):
    eth_addresses: List[str] = Field(default_factory=list)
    sol_addresses: List[str] = Field(default_factory=list)


class NeynarVerifiedAccount(ProviderModel):
    platform: str
    username: Optional[str] = None


class NeynarUser(ProviderModel):
    fid: int
    username: str
    verified_addresses: NeynarVerifiedAddresses = Field(default_factory=NeynarVerifiedAddresses)
    verified_accounts: List[NeynarVerifiedAccount] = Field(default_factory=list)


class NeynarBulkByAddress(RootModel[Dict[str, List[NeynarUser]]]):
    pass


def _is_evm(address: str) -> bool:
    return address.lower().startswith("0x")


def map_web3bio_profiles(profiles: Web3BioProfiles) -> IdentityLinks:
    links = IdentityLinks()
    for profile in profiles.root:
        if profile.address:
            target = links.evm_addresses if _is_evm(profile.address) else links.solana_addresses
            if profile.address not in target:
                target.append(profile.address)
        if links.social_handle is None and profile.links and profile.links.twitter:
            handle = profile.links.twitter.handle
            if handle:
                links.social_handle = handle.lstrip("@")
    return links


def map_neynar_users(address: str, response: NeynarBulkByAddress) -> IdentityLinks:
    users: List[NeynarUser] = []
    for key, value in response.root.items():
        if key.lower() == address.lower():
            users = value
            break
    links = IdentityLinks()
    if not users:
        return links
    user = users[0]
    links.evm_addresses = list(user.verified_addresses.eth_addresses)
    links.solana_addresses = list(user.verified_addresses.sol_addresses)
    for account in user.verified_accounts:
        if account.platform in ("x", "twitter") and account.username:
            links.social_handle = account.username.lstrip("@")
            break
    return links


# ============================================================================
# Input ledger
# ============================================================================

class LedgerTrade(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    hash: str = Field(min_length=1)
    timestamp: int = Field(ge=0)
    amount: float = Field(ge=0, allow_inf_nan=False)
    price_usd: float = Field(alias="priceUsd", ge=0, allow_inf_nan=False)
    value_usd: float = Field(alias="valueUsd", ge=0, allow_inf_nan=False)


class LedgerPosition(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    token_address: str = Field(alias="tokenAddress", min_length=1)
    token_symbol: Optional[str] = Field(None, alias="tokenSymbol")
    entries: List[LedgerTrade] = Field(min_length=1)
    exits: List[LedgerTrade] = Field(default_factory=list)


class Ledger(RootModel[List[LedgerPosition]]):
    pass


def _to_event(token_address: str, direction: TradeDirection, trade: LedgerTrade) -> TradeEvent:
    return TradeEvent(
        hash=trade.hash,
        timestamp=trade.timestamp,
        token_address=token_address,
        direction=direction,
        amount=trade.amount,
        price_usd=trade.price_usd,
        value_usd=trade.value_usd,
    )


def parse_ledger(wallet: str, payload: Any) -> List[Position]:
    """
    Validate a wallet's ledger and build one Position per token.

    Args:
        wallet: Wallet address the ledger belongs to
        payload: Decoded JSON list of {tokenAddress, entries[], exits[]}

    Returns:
        Positions in ledger order

    Raises:
        InvalidLedgerError: malformed or duplicated positions
    """
    if not wallet:
        raise InvalidLedgerError("wallet address is required")
    try:
        ledger = Ledger.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidLedgerError(f"invalid ledger at {location}: {first['msg']}") from e

    positions = []
    seen = set()
    for item in ledger.root:
        if item.token_address in seen:
            raise InvalidLedgerError(f"duplicate position for token {item.token_address}")
        seen.add(item.token_address)
        positions.append(Position(
            wallet=wallet,
            token_address=item.token_address,
            entries=[_to_event(item.token_address, TradeDirection.BUY, t) for t in item.entries],
            exits=[_to_event(item.token_address, TradeDirection.SELL, t) for t in item.exits],
            token_symbol=item.token_symbol,
        ))
    logger.debug(f"Parsed ledger for {wallet}: {len(positions)} positions")
    return positions
