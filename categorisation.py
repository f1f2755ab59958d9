# categorisation.py
# Ordered, prioritised pattern rules: merchant + description -> category label.

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Iterable, Optional

from models import DEFAULT_RULE_PRIORITY, CategorizationRule


logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Other"


def _rule(pattern: str, category: str, priority: int = DEFAULT_RULE_PRIORITY) -> CategorizationRule:
    return CategorizationRule(re.compile(pattern, re.IGNORECASE), category, priority)


# First match wins after a stable sort on priority, so order inside a priority matters
# ("netflix" must reach Streaming before the "net" of Internet).
DEFAULT_RULES: tuple[CategorizationRule, ...] = (
    _rule(r"cloudary|webnovel", "Entertainment/Webnovels", 1),
    _rule(r"concurso|curso|educacao|ensino|estudo|preparatorio", "Education/Exam Prep", 1),
    _rule(r"amazon|mercado livre|magazine luiza|americanas|casas bahia|shoptime", "Shopping/E-commerce", 1),
    _rule(r"ifood|uber eats|rappi|i food", "Food/Delivery", 1),
    _rule(r"restaurante|lanchonete|padaria|confeitaria|buffet", "Food/Restaurant", 2),
    _rule(r"mcdonalds|burger king|subway|pizza hut|dominos|habibs|spoleto", "Food/Fast Food", 1),
    _rule(r"uber|99|cabify|taxi|transporte", "Transportation/Ride Share", 1),
    _rule(r"metro|onibus|bilhete unico|metroviario", "Transportation/Public", 1),
    _rule(r"posto|combustivel|gasolina|etanol|shell|ipiranga|petrobras|texaco", "Transportation/Gas", 1),
    _rule(r"netflix|spotify|disney|prime video|hbo|paramount|youtube premium|apple music", "Entertainment/Streaming", 1),
    _rule(r"steam|playstation|xbox|nintendo|epic games", "Entertainment/Gaming", 1),
    _rule(r"^(oi|vivo|claro|tim|nextel)", "Utilities/Phone", 1),
    _rule(r"internet|banda larga|fibra|tim|vivo|claro|oi|net", "Utilities/Internet", 1),
    _rule(r"energia|eletrica|light|cemig|copel|ceb|cpfl", "Utilities/Energy", 1),
    _rule(r"agua|saneamento|sabesp|copasa|caesb", "Utilities/Water", 1),
    _rule(r"taxa|anuidade|tarifa|manutencao|juros|iof", "Financial/Fees", 1),
    _rule(r"carrefour|pao de acucar|extra|atacadao|assai|walmart|big|supermercado", "Shopping/Supermarket", 1),
    _rule(r"drogasil|raia|pacheco|ultrafarma|drogaria|farmacia", "Health/Pharmacy", 1),
    _rule(r"hospital|clinica|medico|dentista|laboratorio|unimed|amil|bradesco saude", "Health/Medical", 1),
    _rule(r"zara|renner|riachuelo|c&a|h&m|gucci|nike|adidas", "Shopping/Clothing", 1),
    _rule(r"extra|fast shop|casas bahia|magazine|multilaser|positivo", "Shopping/Electronics", 1),
    _rule(r"centauro|decathlon|artwalk|netshoes", "Shopping/Sports", 1),
    _rule(r"auto pecas|ferragem|oficina|troca de oleo|pneus", "Transportation/Auto Maintenance", 1),
    _rule(r"seguro|insurance|porto seguro|sul america", "Financial/Insurance", 1),
    _rule(r"investimento|tesouro|cdb|lci|lca|acoes|b3", "Financial/Investment", 1),
)


def _priority(rule: CategorizationRule) -> int:
    return DEFAULT_RULE_PRIORITY if rule.priority is None else rule.priority


def _merchant_and_description(item) -> tuple[str, str]:
    if isinstance(item, dict):
        return item.get("merchant") or "", item.get("raw_description") or ""
    return getattr(item, "merchant", "") or "", getattr(item, "raw_description", "") or ""


def _with_category(item, category: str):
    if isinstance(item, dict):
        return {**item, "category": category}
    if dataclasses.is_dataclass(item) and not isinstance(item, type):
        if any(f.name == "category" for f in dataclasses.fields(item)):
            return dataclasses.replace(item, category=category)
        return {**dataclasses.asdict(item), "category": category}
    raise TypeError(f"Cannot categorise {type(item).__name__!r}; expected a dict or a dataclass record")


class Categorizer:
    def __init__(
        self,
        rules: Iterable[CategorizationRule] = DEFAULT_RULES,
        default_category: str = DEFAULT_CATEGORY,
    ):
        # sorted() is stable: equal priorities keep declaration order.
        self._rules = tuple(sorted(rules, key=_priority))
        self._compiled = tuple((r.compiled(), r.category) for r in self._rules)
        self.default_category = default_category

    @property
    def rules(self) -> tuple[CategorizationRule, ...]:
        return self._rules

    def categorize(self, merchant: str, description: Optional[str] = None) -> str:
        search_text = f"{merchant or ''} {description or ''}".lower()
        for pattern, category in self._compiled:
            if pattern.search(search_text):
                return category
        return self.default_category

    def categorize_many(self, transactions: Iterable) -> list:
        """Copies of each transaction carrying its category, in input order.

        Dicts come back as dicts with a ``category`` key. Dataclass records with
        a ``category`` field are copied with it replaced; other dataclass records
        (e.g. ``ParsedTransaction``) come back as dicts. Inputs are never mutated.
        """
        return [_with_category(t, self.categorize(*_merchant_and_description(t))) for t in transactions]


_DEFAULT_CATEGORIZER = Categorizer()


def categorize_transaction(merchant: str, description: Optional[str] = None) -> str:
    return _DEFAULT_CATEGORIZER.categorize(merchant, description)


def categorize_transactions(transactions: Iterable) -> list:
    return _DEFAULT_CATEGORIZER.categorize_many(transactions)


# ----------------------------
# User rules file
# ----------------------------

def _read_rules_csv(path: str, pd):
    encodings = ["utf-8-sig", "utf-8", "cp1252", "latin1"]
    last_err = None
    for enc in encodings:
        try:
            return pd.read_csv(path, encoding=enc, dtype=str, keep_default_na=False)
        except Exception as e:
            last_err = e
    logger.warning("Failed to read rules CSV '%s': %s", path, last_err)
    return None


def _as_bool(v, default: bool = True) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"", "nan"}:
        return default
    if s in {"true", "1", "yes", "y", "sim", "on"}:
        return True
    if s in {"false", "0", "no", "n", "nao", "off"}:
        return False
    return default


def _as_priority(v) -> int:
    if v is None:
        return DEFAULT_RULE_PRIORITY
    try:
        s = str(v).strip()
        if not s or s.lower() == "nan":
            return DEFAULT_RULE_PRIORITY
        return int(float(s))
    except (TypeError, ValueError):
        return DEFAULT_RULE_PRIORITY


def _pattern_for(match_type: str, pattern: str) -> str:
    match_type = (match_type or "").strip().lower() or "contains"
    if match_type == "regex":
        return pattern
    if match_type == "startswith":
        return "^" + re.escape(pattern)
    return re.escape(pattern)


def load_rules_file(path: str) -> list[CategorizationRule]:
    """Read user rules from an .xlsx ("Category Rules" sheet if present) or .csv file.

    Columns: Priority, Category, Match Type (contains / startswith / regex),
    Pattern, Active. Unreadable files give an empty list.
    """
    import pandas as pd

    if path.lower().endswith(".csv"):
        df = _read_rules_csv(path, pd)
        if df is None:
            return []
    else:
        try:
            excel = pd.ExcelFile(path)
            sheet_name = "Category Rules" if "Category Rules" in excel.sheet_names else excel.sheet_names[0]
            df = pd.read_excel(path, sheet_name=sheet_name, dtype=str, keep_default_na=False)
        except Exception as e:
            logger.warning("Failed to read rules file '%s': %s", path, e)
            return []

    rules: list[CategorizationRule] = []
    for idx, row in df.iterrows():
        category = str(row.get("Category", "") or "").strip()
        pattern = str(row.get("Pattern", "") or "").strip()
        if not _as_bool(row.get("Active"), default=True):
            continue
        if not category or category.lower() == "nan":
            continue
        if not pattern or pattern.lower() == "nan":
            continue

        try:
            compiled = re.compile(_pattern_for(str(row.get("Match Type", "") or ""), pattern), re.IGNORECASE)
        except re.error as e:
            logger.warning("Skipping rule on row %s of '%s': bad pattern %r (%s)", idx, path, pattern, e)
            continue

        rules.append(CategorizationRule(compiled, category, _as_priority(row.get("Priority"))))

    logger.info("Loaded %d categorisation rule(s) from '%s'", len(rules), path)
    return rules
