# merchants.py
# Raw statement merchant text -> display name.

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Iterable

from models import MerchantMapEntry


# Declaration order matters: the substring pass returns the first entry that matches.
DEFAULT_MERCHANT_MAP: tuple[MerchantMapEntry, ...] = tuple(
    MerchantMapEntry(key, name)
    for key, name in (
        # Entertainment / Webnovels
        ("cloudary holdings", "Cloudary Holdings (Webnovel)"),
        ("cloudary holdings ho", "Cloudary Holdings (Webnovel)"),
        ("cloudary", "Cloudary Holdings (Webnovel)"),
        # Education
        ("pg *concursos", "Concursos Inteligentes"),
        ("concursos", "Concursos Inteligentes"),
        ("concurso inteligente", "Concursos Inteligentes"),
        # E-commerce
        ("amazon", "Amazon"),
        ("amazon.com.br", "Amazon"),
        ("mercado livre", "Mercado Livre"),
        ("magazine luiza", "Magazine Luiza"),
        ("americanas", "Lojas Americanas"),
        # Food delivery
        ("ifood", "iFood"),
        ("uber eats", "Uber Eats"),
        ("rappi", "Rappi"),
        # Transportation
        ("uber", "Uber"),
        ("99", "99 Pop"),
        ("cabify", "Cabify"),
        # Streaming
        ("netflix", "Netflix"),
        ("spotify", "Spotify"),
        ("disney", "Disney+"),
        ("prime video", "Prime Video"),
        # Utilities
        ("oi", "OI"),
        ("vivo", "Vivo"),
        ("claro", "Claro"),
        ("tim", "TIM"),
        ("energia", "Concessionária de Energia"),
        ("agua", "Concessionária de Água"),
        ("saneamento", "Concessionária de Saneamento"),
        # Banking
        ("c6 bank", "C6 Bank"),
        ("nubank", "Nubank"),
        ("inter", "Banco Inter"),
        ("itau", "Itaú"),
        ("bradesco", "Bradesco"),
        ("santander", "Santander"),
        # Supermarkets
        ("carrefour", "Carrefour"),
        ("pao de acucar", "Pão de Açúcar"),
        ("extra", "Extra"),
        ("atacadao", "Atacadão"),
        ("assai", "Assaí"),
        # Gas stations
        ("shell", "Shell"),
        ("ipiranga", "Ipiranga"),
        ("petrobras", "Petrobras"),
        ("texaco", "Texaco"),
        # Fast food
        ("mcdonalds", "McDonald's"),
        ("burger king", "Burger King"),
        ("subway", "Subway"),
        ("pizza hut", "Pizza Hut"),
        ("dominos", "Domino's Pizza"),
        # Retail
        ("centauro", "Centauro"),
        ("nike", "Nike"),
        ("adidas", "Adidas"),
        ("zara", "Zara"),
        ("renner", "Renner"),
        ("riachuelo", "Riachuelo"),
        # Pharmacies
        ("drogasil", "Drogasil"),
        ("raia", "Raia Drogasil"),
        ("pacheco", "Pacheco"),
        ("ultrafarma", "Ultrafarma"),
    )
)

# Alternatives are tried in this order, so "pago" and "pagamento" lose only "pag".
_PAYMENT_PREFIX_RE = re.compile(r"^(pg|pag|pago|pagamento|debito|credito)\s*\*?\s*", re.IGNORECASE)
_SPACED_ASTERISKS_RE = re.compile(r"\s+\*+")
_WS_RE = re.compile(r"\s+")


def clean_merchant_key(merchant: str) -> str:
    cleaned = (merchant or "").lower().strip()
    cleaned = _PAYMENT_PREFIX_RE.sub("", cleaned, count=1)
    cleaned = _SPACED_ASTERISKS_RE.sub(" ", cleaned)
    cleaned = _WS_RE.sub(" ", cleaned)
    return cleaned.strip()


def title_case(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in value.lower().split(" "))


class MerchantNormalizer:
    def __init__(self, entries: Iterable[MerchantMapEntry] = DEFAULT_MERCHANT_MAP):
        self._entries = tuple(entries)
        exact: dict[str, str] = {}
        for entry in self._entries:
            # First declaration wins, same as the substring pass.
            exact.setdefault(entry.key, entry.canonical_name)
        self._exact = MappingProxyType(exact)

    @property
    def entries(self) -> tuple[MerchantMapEntry, ...]:
        return self._entries

    def normalize(self, merchant: str) -> str:
        if not merchant or not merchant.strip():
            return merchant

        cleaned = clean_merchant_key(merchant)

        found = self._exact.get(cleaned)
        if found is not None:
            return found

        # An empty key is contained in every map key, so it takes the first entry.
        for entry in self._entries:
            if entry.key in cleaned or cleaned in entry.key:
                return entry.canonical_name

        return title_case(merchant)


_DEFAULT_NORMALIZER = MerchantNormalizer()


def normalize_merchant(merchant: str) -> str:
    return _DEFAULT_NORMALIZER.normalize(merchant)
