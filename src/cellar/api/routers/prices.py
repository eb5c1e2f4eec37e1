"""Price oracle endpoints."""

from fastapi import APIRouter, Depends

from cellar.api.deps import get_price_router
from cellar.api.schemas import PriceResponse, PriceSourceListResponse, PriceSourceResponse
from cellar.services import PriceRouter

router = APIRouter(prefix="/prices", tags=["prices"])


@router.get("", response_model=PriceSourceListResponse)
def list_price_sources(prices: PriceRouter = Depends(get_price_router)) -> PriceSourceListResponse:
    """List configured price sources."""
    return PriceSourceListResponse(
        sources=[
            PriceSourceResponse(
                asset=entry.asset,
                derivative_kind=entry.derivative_kind,
                source_reference=entry.source_reference,
                decimals=entry.decimals,
            )
            for entry in prices.list_sources()
        ]
    )


@router.get("/{asset}", response_model=PriceResponse)
def get_price(asset: str, prices: PriceRouter = Depends(get_price_router)) -> PriceResponse:
    """Get the current USD price of an asset."""
    return PriceResponse(asset=asset, price_usd=prices.price_in_usd(asset))
