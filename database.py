# --- engine, session and models for the order import tables ---

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import (
    String, Text, Numeric, DateTime, Boolean, JSON,
    ForeignKey, func, Index, text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.pool import StaticPool
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
import logging, os, uuid

# Load environment variables early (before reading DATABASE_URL)
from dotenv import load_dotenv
load_dotenv()

# -------------------------------------------------------------------
# Engine / Session
# -------------------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "")

if DATABASE_URL:
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
    # asyncpg takes 'ssl', not libpq's 'sslmode'
    if "sslmode=require" in DATABASE_URL:
        DATABASE_URL = DATABASE_URL.replace("?sslmode=require", "").replace("&sslmode=require", "")
        _connect_args: Dict[str, Any] = {"ssl": "require"}
    else:
        _connect_args = {}
    _connect_args["server_settings"] = {"application_name": "order_import"}

    engine = create_async_engine(
        DATABASE_URL,
        echo=os.getenv("SQL_ECHO", "false").lower() == "true",
        pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=1800,  # Recycle connections after 30 minutes
        pool_timeout=15,
        connect_args=_connect_args,
    )
else:
    DATABASE_URL = "sqlite+aiosqlite:///:memory:"
    engine = create_async_engine(
        DATABASE_URL,
        echo=os.getenv("SQL_ECHO", "false").lower() == "true",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

def _redact_db_url(url: str) -> str:
    try:
        if "@" in url and "://" in url:
            head, tail = url.split("://", 1)
            creds, hostpart = tail.split("@", 1)
            if ":" in creds:
                user, _pwd = creds.split(":", 1)
                return f"{head}://{user}:******@{hostpart}"
        elif url.startswith("sqlite"):
            return url
    except ValueError:
        pass
    return "******"

logger = logging.getLogger(__name__)
logger.info(f"Creating SQL engine for { _redact_db_url(DATABASE_URL) }")

async def probe_db_connection():
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("DB connectivity probe: OK")
    except Exception as e:
        logger.exception(f"DB connectivity probe failed: {e}")

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests and local runs)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# -------------------------------------------------------------------
# Base
# -------------------------------------------------------------------
class Base(DeclarativeBase):
    pass

# -------------------------------------------------------------------
# MODELS
# -------------------------------------------------------------------

class Company(Base):
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # Branches point at their owning company; an orphan branch owns itself
    is_branch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_company_id: Mapped[Optional[str]] = mapped_column(String, ForeignKey("companies.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id: Mapped[str] = mapped_column(String, ForeignKey("companies.id"), nullable=False)
    branch_id: Mapped[Optional[str]] = mapped_column(String, ForeignKey("companies.id"), nullable=True)
    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    branch_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    area: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    payment_status: Mapped[str] = mapped_column(String, nullable=False)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status_history: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    # Line items are stored inline: [{product_id, product_name, quantity, price, ...}]
    items: Mapped[list] = mapped_column(JSONType, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    grand_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    import_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PriceAuditLog(Base):
    __tablename__ = "price_audit_log"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(String, nullable=False)
    product_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    order_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# Indexes
Index('ix_orders_import_hash', Order.import_hash)
Index('ix_orders_company_date', Order.company_id, Order.order_date)
Index('ix_companies_name', Company.name)
Index('ix_products_name', Product.name)
Index('ix_price_audit_log_product', PriceAuditLog.product_id)
# -------------------------------------------------------------------
# DI + init helpers
# -------------------------------------------------------------------
async def init_db():
    """Ensure tables exist."""
    await probe_db_connection()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("DB init complete (tables ensured).")

async def check_db_health() -> Dict[str, Any]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "healthy", "database": _redact_db_url(DATABASE_URL)}
    except Exception as e:
        logger.warning(f"DB health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}
