"""
Excel workbook backed ledger, budget and benchmark store.
"""

import asyncio
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from config.account_mapping import Account, AccountType
from data.models import (
    LedgerEntry, Company, BudgetAssumption, BudgetAssumptionValue, BudgetMapping,
    BudgetBook, Benchmark, ReferenceData, normalize_nature
)
from data.sources import InMemoryDataStore, DataSourceError
from utils.periods import is_valid_month, normalize_month


# Canonical column -> accepted header spellings (English and the console's Portuguese exports)
COLUMN_ALIASES = {
    'tenant_id': ['tenant_id', 'organizacao_id', 'organization_id'],
    'year': ['year', 'ano'],
    'month': ['month', 'mes', 'mês'],
    'account_name': ['account_name', 'conta_dre', 'conta', 'account'],
    'department': ['department', 'departamento'],
    'company_reference': ['company_reference', 'company', 'loja', 'empresa'],
    'amount': ['amount', 'valor', 'value'],
    'value': ['value', 'valor', 'amount'],
    'nature': ['nature', 'natureza'],
    'id': ['id'],
    'name': ['name', 'nome'],
    'nickname': ['nickname', 'apelido'],
    'kind': ['kind', 'tipo'],
    'brand_id': ['brand_id', 'marca_id'],
    'code': ['code', 'codigo', 'código'],
    'account_type': ['account_type', 'tipo'],
    'assumption_id': ['assumption_id', 'premissa_id'],
    'account_id': ['account_id', 'conta_dre_id'],
    'department_id': ['department_id', 'departamento_id'],
    'target_type': ['target_type', 'tipo_destino'],
    'benchmark_account': ['account_name', 'conta_nome', 'conta'],
}

SHEET_NAMES = {
    'ledger': ['ledger', 'lancamentos', 'lancamentoscontabeis'],
    'assumptions': ['assumptions', 'premissas'],
    'assumption_values': ['assumptionvalues', 'valorespremissas', 'budgetvalues'],
    'mappings': ['mappings', 'budgetmappings', 'mapeamentos'],
    'benchmarks': ['benchmarks'],
    'companies': ['companies', 'empresas'],
    'accounts': ['accounts', 'contasdre', 'chartofaccounts'],
}


def _clean(value) -> Optional[str]:
    """Stringify a cell, None for blanks and NaN."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _number(value) -> float:
    """Numeric cell, 0.0 for blanks and NaN."""
    try:
        if pd.isna(value):
            return 0.0
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class WorkbookDataStore(InMemoryDataStore):
    """Store loaded lazily from one organization's .xlsx export."""

    def __init__(self, file_path: str, tenant_id: str):
        super().__init__()
        self.file_path = file_path
        self.tenant_id = tenant_id
        self.reference_data = ReferenceData()
        self._loaded = False
        self._load_lock = asyncio.Lock()

    async def _ensure_loaded(self) -> None:
        async with self._load_lock:
            if self._loaded:
                return
            await asyncio.to_thread(self.load)

    def load(self) -> None:
        """
        Read every sheet of the workbook into memory.

        Raises:
            DataSourceError: If the file is missing or unreadable
        """
        self.logger.info(f"Loading workbook: {self.file_path}")

        if not Path(self.file_path).exists():
            raise DataSourceError("workbook", f"File not found: {self.file_path}")

        try:
            excel_data = pd.read_excel(self.file_path, sheet_name=None, engine='openpyxl')
        except (OSError, ValueError) as e:
            raise DataSourceError("workbook", f"Cannot read {self.file_path}: {e}") from e

        sheets = self._match_sheets(excel_data)
        self.entries = self._parse_ledger(sheets['ledger'])
        self.assumptions = [
            BudgetAssumption(id=_clean(r['id']), name=_clean(r['name']) or '')
            for r in self._standardize(sheets['assumptions'], ['id', 'name']).to_dict('records')
        ]
        self.assumption_values = self._parse_assumption_values(sheets['assumption_values'])
        self.mappings = [
            BudgetMapping(
                id=_clean(r['id']) or f"mapping-{i}",
                assumption_id=_clean(r['assumption_id']),
                account_id=_clean(r['account_id']),
                department_id=_clean(r['department_id']),
                target_type=_clean(r['target_type']),
            )
            for i, r in enumerate(self._standardize(
                sheets['mappings'], ['id', 'assumption_id', 'account_id', 'department_id', 'target_type']
            ).to_dict('records'))
        ]
        self.benchmarks = [
            Benchmark(account_name=_clean(r['benchmark_account']) or '', value=_number(r['value']))
            for r in self._standardize(sheets['benchmarks'], ['benchmark_account', 'value']).to_dict('records')
        ]
        self.reference_data = ReferenceData(
            companies=self._parse_companies(sheets['companies']),
            accounts=self._parse_accounts(sheets['accounts']),
        )
        self._loaded = True

        self.logger.info(
            f"Loaded workbook: {len(self.entries)} ledger rows, {len(self.assumptions)} assumptions, "
            f"{len(self.assumption_values)} assumption values, {len(self.mappings)} mappings, "
            f"{len(self.benchmarks)} benchmarks"
        )

    def _match_sheets(self, excel_data: Dict[str, pd.DataFrame]) -> Dict[str, pd.DataFrame]:
        """Pick each table's sheet by normalized name; missing sheets become empty frames."""
        normalized = {
            name.lower().replace(' ', '').replace('_', ''): frame
            for name, frame in excel_data.items()
        }
        sheets = {}
        for table, candidates in SHEET_NAMES.items():
            frame = next((normalized[c] for c in candidates if c in normalized), None)
            if frame is None:
                if table == 'ledger':
                    raise DataSourceError("workbook", f"No ledger sheet in {self.file_path}")
                self.logger.warning(f"Sheet for '{table}' not found, treating it as empty")
                frame = pd.DataFrame()
            sheets[table] = frame
        return sheets

    def _standardize(self, df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
        """Rename aliased headers to canonical names and add missing columns as blanks."""
        df = df.copy()
        lowered = {str(col).strip().lower(): col for col in df.columns}
        result = pd.DataFrame(index=df.index)
        for column in columns:
            source = next((lowered[a] for a in COLUMN_ALIASES.get(column, [column]) if a in lowered), None)
            result[column] = df[source] if source is not None else None
        return result

    def _parse_ledger(self, df: pd.DataFrame) -> List[LedgerEntry]:
        df = self._standardize(df, [
            'tenant_id', 'year', 'month', 'account_name', 'department',
            'company_reference', 'amount', 'nature'
        ])
        valid = df['month'].map(lambda m: _clean(m) is not None and is_valid_month(m)).astype(bool)
        if not valid.all():
            self.logger.warning(f"Dropping {int((~valid).sum())} ledger rows with unknown month labels")
        df = df[valid]

        return [
            LedgerEntry(
                tenant_id=_clean(r['tenant_id']) or self.tenant_id,
                year=int(_number(r['year'])),
                month=normalize_month(r['month']),
                account_name=_clean(r['account_name']) or '',
                department=_clean(r['department']),
                company_reference=_clean(r['company_reference']) or '',
                amount=_number(r['amount']),
                nature=normalize_nature(_clean(r['nature'])),
            )
            for r in df.to_dict('records')
        ]

    def _parse_assumption_values(self, df: pd.DataFrame) -> List[BudgetAssumptionValue]:
        df = self._standardize(df, ['assumption_id', 'year', 'month', 'value'])
        values = []
        for r in df.to_dict('records'):
            month = _clean(r['month'])
            if month is None or not is_valid_month(month):
                self.logger.warning(f"Skipping assumption value with month {r['month']!r}")
                continue
            values.append(BudgetAssumptionValue(
                assumption_id=_clean(r['assumption_id']),
                year=int(_number(r['year'])),
                month=normalize_month(month),
                value=_number(r['value']),
            ))
        return values

    def _parse_companies(self, df: pd.DataFrame) -> List[Company]:
        df = self._standardize(df, ['id', 'name', 'nickname', 'kind', 'brand_id'])
        return [
            Company(
                id=_clean(r['id']),
                name=_clean(r['name']) or '',
                nickname=_clean(r['nickname']),
                kind=_clean(r['kind']),
                brand_id=_clean(r['brand_id']),
            )
            for r in df.to_dict('records')
            if _clean(r['id'])
        ]

    def _parse_accounts(self, df: pd.DataFrame) -> List[Account]:
        df = self._standardize(df, ['id', 'name', 'code', 'account_type'])
        return [
            Account(
                id=_clean(r['id']),
                name=_clean(r['name']) or '',
                code=_clean(r['code']),
                account_type=self._parse_account_type(r['account_type']),
            )
            for r in df.to_dict('records')
            if _clean(r['id'])
        ]

    def _parse_account_type(self, value) -> Optional[AccountType]:
        try:
            return AccountType.parse(value)
        except ValueError as e:
            self.logger.warning(f"{e}; falling back to name keywords")
            return None

    async def load_reference_data(self) -> ReferenceData:
        """Companies and chart of accounts contained in the workbook."""
        await self._ensure_loaded()
        return self.reference_data

    async def fetch_entries(self, tenant_id: str, year: int, month: str,
                            company_references: Optional[Sequence[str]] = None) -> List[LedgerEntry]:
        await self._ensure_loaded()
        return await super().fetch_entries(tenant_id, year, month, company_references)

    async def fetch_page(self, tenant_id: str, year: int, offset: int, limit: int) -> List[LedgerEntry]:
        await self._ensure_loaded()
        return await super().fetch_page(tenant_id, year, offset, limit)

    async def fetch_budget(self, tenant_id: str) -> BudgetBook:
        await self._ensure_loaded()
        return await super().fetch_budget(tenant_id)

    async def fetch_benchmarks(self, tenant_id: str) -> List[Benchmark]:
        await self._ensure_loaded()
        return await super().fetch_benchmarks(tenant_id)
