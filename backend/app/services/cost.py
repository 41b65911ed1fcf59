"""
cost.py - Per-target cost estimates for "money saved" reporting.

Lookup: exact hostname match, then the "*" wildcard row, then
FALLBACK_COST. Never an input to the gating decision.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

import httpx
import yaml
from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from app.models import CostConfig

logger = logging.getLogger(__name__)

WILDCARD = "*"
FALLBACK_COST = 0.01


def target_domain(target_url: str) -> str:
    try:
        host = httpx.URL(target_url).host
    except (httpx.InvalidURL, TypeError, ValueError):
        return target_url
    return host or target_url


class CostTable:
    def __init__(self, db: DBSession):
        self.db = db

    def all(self) -> list[CostConfig]:
        return list(self.db.scalars(select(CostConfig).order_by(CostConfig.domain_pattern)))

    def _lookup(self, pattern: str) -> CostConfig | None:
        return self.db.scalars(
            select(CostConfig).where(CostConfig.domain_pattern == pattern)
        ).first()

    def cost_per_request(self, target_url: str) -> float:
        row = self._lookup(target_domain(target_url)) or self._lookup(WILDCARD)
        return row.cost_per_request if row is not None else FALLBACK_COST

    def estimate_saved(self, targets: Iterable[str]) -> float:
        """Summed cost of the blocked calls to `targets`, rounded to cents."""
        cache: dict[str, float] = {}
        total = 0.0
        for target in targets:
            domain = target_domain(target)
            if domain not in cache:
                cache[domain] = self.cost_per_request(target)
            total += cache[domain]
        return round(total, 2)

    def upsert(self, domain_pattern: str, cost_per_request: float, label: str | None = None) -> CostConfig:
        row = self._lookup(domain_pattern)
        if row is None:
            row = CostConfig(domain_pattern=domain_pattern)
            self.db.add(row)
        row.cost_per_request = cost_per_request
        row.label = label
        self.db.commit()
        return row

    def load_yaml(self, path: str | Path) -> int:
        """
        Upsert cost entries from a YAML file.

        Expected shape::

            costs:
              - domain_pattern: api.openai.com
                cost_per_request: 0.03
                label: OpenAI
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        entries = data.get("costs", [])
        for entry in entries:
            self.upsert(
                entry["domain_pattern"],
                float(entry["cost_per_request"]),
                entry.get("label"),
            )
        logger.info("Loaded %d cost entries from %s", len(entries), path)
        return len(entries)
