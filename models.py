# models.py
# Immutable records shared by the parser, the enrichment steps and the exporters.

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, replace
from typing import Pattern, Union


DEFAULT_RULE_PRIORITY = 999


@dataclass(frozen=True)
class ParsedTransaction:
    """One statement row as cut out of the extracted text."""

    date: str
    merchant: str
    amount: float
    raw_description: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CategorizationRule:
    pattern: Union[Pattern[str], str]
    category: str
    priority: int = DEFAULT_RULE_PRIORITY

    def compiled(self) -> Pattern[str]:
        if isinstance(self.pattern, str):
            return re.compile(self.pattern, re.IGNORECASE)
        return self.pattern


@dataclass(frozen=True)
class MerchantMapEntry:
    key: str
    canonical_name: str


@dataclass(frozen=True)
class LedgerEntry:
    """A parsed transaction after merchant normalisation and categorisation."""

    date: str
    merchant: str
    normalized_merchant: str
    amount: float
    currency: str
    raw_description: str
    category: str

    @classmethod
    def from_parsed(
        cls,
        txn: ParsedTransaction,
        normalized_merchant: str,
        category: str,
        currency: str,
    ) -> "LedgerEntry":
        return cls(
            date=txn.date,
            merchant=txn.merchant,
            normalized_merchant=normalized_merchant,
            amount=txn.amount,
            currency=currency,
            raw_description=txn.raw_description,
            category=category,
        )

    def with_enrichment(self, normalized_merchant: str, category: str) -> "LedgerEntry":
        return replace(self, normalized_merchant=normalized_merchant, category=category)

    def to_dict(self) -> dict:
        return asdict(self)
