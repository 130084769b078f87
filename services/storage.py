"""
Storage Service
Select/insert primitives over the order import tables
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, insert, func
from typing import List, Optional, Dict, Any, Sequence, Type
import logging
import time
from decimal import Decimal

from database import (
    AsyncSessionLocal, Base, Company, Product, Order, PriceAuditLog,
)
from settings import (
    COMPANIES_TABLE, PRODUCTS_TABLE, ORDERS_TABLE, PRICE_AUDIT_TABLE,
)

logger = logging.getLogger(__name__)

TABLE_MODELS: Dict[str, Type[Base]] = {
    COMPANIES_TABLE: Company,
    PRODUCTS_TABLE: Product,
    ORDERS_TABLE: Order,
    PRICE_AUDIT_TABLE: PriceAuditLog,
}

# Entity names are matched the way users type them
CASE_INSENSITIVE_FIELDS = {"name"}


class SqlAlchemyImportStore:
    """Storage service providing the importer's database operations"""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory or AsyncSessionLocal

    # ---------- helpers ----------

    def _model_for(self, table: str) -> Type[Base]:
        try:
            return TABLE_MODELS[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table!r}") from None

    def _table_column_names(self, table):
        return {c.name for c in table.columns}

    def _filter_columns(self, table, rows: List[dict]) -> List[dict]:
        """Drop keys that don't exist on the SQLAlchemy table (prevents invalid kw errors)."""
        allowed = self._table_column_names(table)
        return [{k: v for k, v in row.items() if k in allowed} for row in rows]

    def _as_decimal(self, v, default="0"):
        if v in (None, "", "NULL", "null"):
            return Decimal(default)
        try:
            return Decimal(str(v))
        except ArithmeticError:
            return Decimal(default)

    def _sanitize(self, model: Type[Base], row: dict) -> dict:
        """Coerce numeric columns to Decimal so float inputs store exactly as rounded text."""
        for column in model.__table__.columns:
            if column.name in row and row[column.name] is not None and hasattr(column.type, "scale"):
                if column.type.scale is not None:
                    row[column.name] = self._as_decimal(row[column.name])
        return row

    def _to_dict(self, obj) -> Dict[str, Any]:
        return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}

    def get_session(self) -> AsyncSession:
        """Get database session context manager"""
        return self._session_factory()

    # ---------- import store primitives ----------

    async def select(self, table: str, field: str, values: Sequence[Any]) -> List[Dict[str, Any]]:
        """Return every record of `table` whose `field` is one of `values`."""
        model = self._model_for(table)
        if field not in self._table_column_names(model.__table__):
            raise ValueError(f"Unknown column {field!r} on table {table!r}")
        if not values:
            return []
        column = getattr(model, field)
        if field in CASE_INSENSITIVE_FIELDS:
            condition = func.lower(column).in_([str(v).lower() for v in values])
        else:
            condition = column.in_(list(values))
        async with self.get_session() as session:
            result = await session.execute(select(model).where(condition))
            rows = [self._to_dict(obj) for obj in result.scalars().all()]
        logger.debug("select table=%s field=%s values=%d rows=%d", table, field, len(values), len(rows))
        return rows

    async def insert(self, table: str, records: List[Dict[str, Any]]) -> None:
        """Insert records in one transaction; raises on failure."""
        if not records:
            return
        model = self._model_for(table)
        rows = self._filter_columns(model.__table__, [dict(r) for r in records])
        rows = [self._sanitize(model, r) for r in rows]
        t0 = time.time()
        async with self.get_session() as session:
            try:
                await session.execute(insert(model), rows)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        dur_ms = int((time.time() - t0) * 1000)
        logger.info(f"Inserted {len(rows)} rows into {table} durMs={dur_ms}")

    # ---------- reference data ----------

    async def create_companies(self, companies_data: List[Dict[str, Any]]) -> None:
        await self.insert(COMPANIES_TABLE, companies_data)

    async def create_products(self, products_data: List[Dict[str, Any]]) -> None:
        await self.insert(PRODUCTS_TABLE, products_data)

    async def get_orders_by_hash(self, import_hash: str) -> List[Order]:
        async with self.get_session() as session:
            result = await session.execute(select(Order).where(Order.import_hash == import_hash))
            return list(result.scalars().all())

    async def get_price_audit_entries(self, product_id: Optional[str] = None) -> List[PriceAuditLog]:
        async with self.get_session() as session:
            query = select(PriceAuditLog)
            if product_id:
                query = query.where(PriceAuditLog.product_id == product_id)
            result = await session.execute(query)
            return list(result.scalars().all())


# Global storage instance
storage = SqlAlchemyImportStore()
