"""SQLAlchemy implementation of PriceSourceRepository."""

import json
from typing import Optional

from sqlalchemy.orm import Session

from cellar.domain.models import (
    DerivativeKind,
    PriceSourceEntry,
    FeedSettings,
    TwapSettings,
    ExtensionSettings,
)
from cellar.repositories.sqlalchemy.orm_models import PriceSourceORM


class SqlAlchemyPriceSourceRepository:
    """SQLAlchemy-backed price source configuration store."""

    def __init__(self, db: Session):
        self._db = db

    def get(self, asset: str) -> Optional[PriceSourceEntry]:
        """Retrieve the price source for an asset."""
        orm_entry = self._db.get(PriceSourceORM, asset)
        return self._to_domain(orm_entry) if orm_entry else None

    def upsert(self, entry: PriceSourceEntry) -> PriceSourceEntry:
        """Insert or replace the price source for entry.asset."""
        orm_entry = self._db.get(PriceSourceORM, entry.asset)
        if orm_entry is None:
            orm_entry = PriceSourceORM(asset=entry.asset)
            self._db.add(orm_entry)

        orm_entry.derivative_kind = entry.derivative_kind
        orm_entry.source_reference = entry.source_reference
        orm_entry.decimals = entry.decimals

        # Only the settings block of the current kind survives an update
        feed, twap, ext = entry.feed, entry.twap, entry.extension
        orm_entry.min_price = feed.min_price if feed else None
        orm_entry.max_price = feed.max_price if feed else None
        orm_entry.max_staleness = feed.max_staleness if feed else None
        orm_entry.denomination_asset = feed.denomination_asset if feed else None
        orm_entry.twap_window = twap.window_seconds if twap else None
        orm_entry.quote_asset = twap.quote_asset if twap else None
        orm_entry.extension_name = ext.extension_name if ext else None
        orm_entry.extension_storage = json.dumps(ext.storage) if ext else None

        self._db.commit()
        self._db.refresh(orm_entry)
        return self._to_domain(orm_entry)

    def list_all(self) -> list[PriceSourceEntry]:
        """List all configured price sources."""
        orm_entries = self._db.query(PriceSourceORM).order_by(PriceSourceORM.asset).all()
        return [self._to_domain(e) for e in orm_entries]

    @staticmethod
    def _to_domain(orm: PriceSourceORM) -> PriceSourceEntry:
        """Convert ORM row to domain model."""
        kind = DerivativeKind(orm.derivative_kind)
        entry = PriceSourceEntry(
            asset=orm.asset,
            derivative_kind=kind,
            source_reference=orm.source_reference,
            decimals=orm.decimals,
        )
        if kind == DerivativeKind.FIXED_RATE_FEED:
            entry.feed = FeedSettings(
                min_price=orm.min_price,
                max_price=orm.max_price,
                max_staleness=orm.max_staleness or 0,
                denomination_asset=orm.denomination_asset,
            )
        elif kind == DerivativeKind.TIME_WEIGHTED_POOL:
            entry.twap = TwapSettings(
                window_seconds=orm.twap_window,
                quote_asset=orm.quote_asset,
            )
        elif kind == DerivativeKind.EXTENSION:
            entry.extension = ExtensionSettings(
                extension_name=orm.extension_name,
                storage=json.loads(orm.extension_storage or "{}"),
            )
        return entry
