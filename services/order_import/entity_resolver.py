"""
Entity Resolver
Maps free-text company/branch and product names in import rows to known records
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from settings import COMPANIES_TABLE, PRODUCTS_TABLE, IMPORT_LOOKUP_CHUNK_SIZE

from .errors import ErrorCollector
from .field_reader import read_field
from .models import Company, Product, Row
from .normalizers import parse_number
from .store import ImportStore, select_in_chunks

logger = logging.getLogger(__name__)


def _index_by_name(records: Iterable, kind: str, log: logging.Logger) -> Dict[str, object]:
    index: Dict[str, object] = {}
    duplicates: List[str] = []
    for record in records:
        key = record.name.strip().lower()
        if not key:
            continue
        if key in index:
            duplicates.append(record.name)
            continue
        index[key] = record
    if duplicates:
        log.warning(f"Duplicate {kind} names in lookup data, first record wins: {sorted(set(duplicates))}")
    return index


class LookupTables:
    """Read-only name/id indexes built once per import run."""

    def __init__(self, companies: Sequence[Company], products: Sequence[Product],
                 log: Optional[logging.Logger] = None):
        log = log or logger
        self.companies: List[Company] = list(companies)
        self.products: List[Product] = list(products)
        self._companies_by_name: Mapping[str, Company] = _index_by_name(companies, "company", log)
        self._companies_by_id: Mapping[str, Company] = {}
        for company in companies:
            self._companies_by_id.setdefault(company.id, company)
        self._products_by_name: Mapping[str, Product] = _index_by_name(products, "product", log)

    def company_by_name(self, name: str) -> Optional[Company]:
        return self._companies_by_name.get(name.strip().lower())

    def company_by_id(self, company_id: Optional[str]) -> Optional[Company]:
        if not company_id:
            return None
        return self._companies_by_id.get(company_id)

    def product_by_name(self, name: str) -> Optional[Product]:
        return self._products_by_name.get(name.strip().lower())

    @property
    def company_count(self) -> int:
        return len(self._companies_by_id)

    @property
    def product_count(self) -> int:
        return len(self._products_by_name)


@dataclass(frozen=True)
class ResolvedRow:
    company: Company
    branch: Optional[Company]
    matched: Company
    product: Product

    @property
    def company_id(self) -> str:
        return self.company.id

    @property
    def branch_id(self) -> Optional[str]:
        return self.branch.id if self.branch else None

    @property
    def grouping_id(self) -> str:
        return self.matched.id


async def prefetch_lookup_tables(
    rows: Sequence[Row],
    store: ImportStore,
    chunk_size: int = IMPORT_LOOKUP_CHUNK_SIZE,
    log: Optional[logging.Logger] = None,
) -> LookupTables:
    """Fetch only the companies, parent companies and products the rows mention."""
    log = log or logger
    company_names = []
    product_names = []
    for row in rows:
        company_name = read_field(row, "company")
        if company_name:
            company_names.append(company_name)
        product_name = read_field(row, "product")
        if product_name:
            product_names.append(product_name)

    async def fetch_companies() -> List[Company]:
        records = await select_in_chunks(store, COMPANIES_TABLE, "name", company_names, chunk_size)
        companies = [Company.from_record(r) for r in records]
        known_ids = {c.id for c in companies}
        parent_ids = [
            c.parent_company_id for c in companies
            if c.is_branch and c.parent_company_id and c.parent_company_id not in known_ids
        ]
        if parent_ids:
            parents = await select_in_chunks(store, COMPANIES_TABLE, "id", parent_ids, chunk_size)
            companies.extend(Company.from_record(r) for r in parents)
        return companies

    async def fetch_products() -> List[Product]:
        records = await select_in_chunks(store, PRODUCTS_TABLE, "name", product_names, chunk_size)
        return [Product.from_record(r) for r in records]

    companies, products = await asyncio.gather(fetch_companies(), fetch_products())
    log.info(
        "Import prefetch: companies=%d (names=%d) products=%d (names=%d)",
        len(companies), len(set(company_names)), len(products), len(set(product_names)),
    )
    return LookupTables(companies, products, log=log)


class EntityResolver:
    """Resolves each row to its company, branch and product, or records why it cannot."""

    def __init__(self, tables: LookupTables, errors: ErrorCollector):
        self.tables = tables
        self.errors = errors

    def resolve(self, row: Row, row_index: int) -> Optional[ResolvedRow]:
        company_name = read_field(row, "company") or ""
        matched = self.tables.company_by_name(company_name) if company_name else None
        if matched is None:
            self.errors.missing_entity(
                row_index,
                f"Could not find a valid company or branch named '{company_name}'.",
                entity="company",
                suggested_data={"name": company_name, "is_branch": False},
            )
            return None

        company, branch = self._split_hierarchy(matched)

        product_name = read_field(row, "product") or ""
        product = self.tables.product_by_name(product_name) if product_name else None
        if product is None:
            self.errors.missing_entity(
                row_index,
                f"Product '{product_name}' not found.",
                entity="product",
                suggested_data={"name": product_name, "price": float(parse_number(read_field(row, "price")))},
            )
            return None

        return ResolvedRow(company=company, branch=branch, matched=matched, product=product)

    def _split_hierarchy(self, matched: Company):
        if not matched.is_branch:
            return matched, None
        parent = self.tables.company_by_id(matched.parent_company_id)
        if parent is not None:
            return parent, matched
        # Orphan branch: it is its own financial owner.
        return matched, matched
