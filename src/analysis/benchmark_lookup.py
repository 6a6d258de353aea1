"""
Organization benchmark lookup by account name.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from data.sources import BenchmarkSource, DataSourceError


@dataclass
class BenchmarkTable:
    """Reference values keyed by exact account name."""
    values: Dict[str, float] = field(default_factory=dict)
    error: Optional[str] = None

    def get(self, account_name: str) -> Optional[float]:
        return self.values.get(account_name)


class BenchmarkLookup:
    """Loads benchmark values; a missing source means no benchmarks."""

    def __init__(self, source: Optional[BenchmarkSource] = None):
        self.source = source
        self.logger = logging.getLogger(__name__)

    async def load(self, tenant_id: str) -> BenchmarkTable:
        if self.source is None or not tenant_id:
            return BenchmarkTable()

        try:
            rows = await self.source.fetch_benchmarks(tenant_id)
        except DataSourceError as e:
            self.logger.error(f"Error fetching benchmarks: {e}")
            return BenchmarkTable(error=str(e))

        values = {}
        for row in rows:
            # First row per account wins
            values.setdefault(row.account_name, float(row.value))
        self.logger.debug(f"Loaded {len(values)} benchmarks for {tenant_id}")
        return BenchmarkTable(values=values)
