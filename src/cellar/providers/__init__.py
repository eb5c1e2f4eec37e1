"""Collaborator protocols and stub implementations."""

from cellar.providers.position_adaptor import PositionAdaptor
from cellar.providers.swap_router import SwapRouter
from cellar.providers.custodian import AssetCustodian
from cellar.providers.price_inputs import (
    FeedRound,
    RateFeed,
    TwapPool,
    RateSource,
    StablePool,
    SourceResolver,
    DictSourceResolver,
)
from cellar.providers.stub_provider import (
    StubPositionAdaptor,
    StubSwapRouter,
    StubRateFeed,
    StubTwapPool,
    StubRateSource,
    StubStablePool,
    StubCustodian,
)

__all__ = [
    "PositionAdaptor",
    "SwapRouter",
    "AssetCustodian",
    "FeedRound",
    "RateFeed",
    "TwapPool",
    "RateSource",
    "StablePool",
    "SourceResolver",
    "DictSourceResolver",
    "StubPositionAdaptor",
    "StubSwapRouter",
    "StubRateFeed",
    "StubTwapPool",
    "StubRateSource",
    "StubStablePool",
    "StubCustodian",
]
