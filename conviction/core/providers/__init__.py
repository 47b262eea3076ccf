"""HTTP clients for market data, reputation and identity providers."""

from .base import ProviderClient
from .birdeye_client import BirdeyeClient
from .dexscreener_client import DexScreenerClient
from .ethos_client import EthosClient, x_userkey
from .fairscale_client import FairScaleClient
from .neynar_client import NeynarClient
from .web3bio_client import Web3BioClient

__all__ = [
    "ProviderClient",
    "BirdeyeClient",
    "DexScreenerClient",
    "EthosClient",
    "x_userkey",
    "FairScaleClient",
    "NeynarClient",
    "Web3BioClient",
]
