"""Pydantic schemas for price endpoints."""

from decimal import Decimal

from pydantic import BaseModel

from cellar.domain.models import DerivativeKind


class PriceResponse(BaseModel):
    """Response schema for a single USD price."""

    asset: str
    price_usd: Decimal


class PriceSourceResponse(BaseModel):
    """Response schema for a configured price source."""

    asset: str
    derivative_kind: DerivativeKind
    source_reference: str
    decimals: int


class PriceSourceListResponse(BaseModel):
    """Response schema for price source listing."""

    sources: list[PriceSourceResponse]
