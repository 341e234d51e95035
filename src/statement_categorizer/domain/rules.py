"""Keyword rule categorization.

Rules are evaluated in list order and keywords in rule order; the first keyword
found in the description decides the category. Manual overrides are never
touched by automatic (re)categorization.
"""

from collections.abc import Sequence

from statement_categorizer.models import UNCATEGORIZED, CategoryRule, Transaction

DEFAULT_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        category="Groceries",
        keywords=["kroger", "walmart", "aldi", "costco", "meijer", "whole foods"],
    ),
    CategoryRule(
        category="Dining",
        keywords=["mcdonald", "wendy", "chipotle", "restaurant", "cafe", "coffee"],
    ),
    CategoryRule(
        category="Shopping",
        keywords=["amazon", "target", "best buy", "home depot", "lowes"],
    ),
    CategoryRule(
        category="Gas",
        keywords=["shell", "exxon", "bp", "chevron", "sunoco", "marathon"],
    ),
)


def _normalize_keyword(keyword: str) -> str:
    return keyword.strip().lower()


def categorize(description: str, rules: Sequence[CategoryRule]) -> str:
    text = description.lower()
    for rule in rules:
        for keyword in rule.keywords:
            needle = _normalize_keyword(keyword)
            if needle and needle in text:
                return rule.category
    return UNCATEGORIZED


def categorize_transaction(transaction: Transaction, rules: Sequence[CategoryRule]) -> str:
    return categorize(transaction.description, rules)


def apply_rules(
    transactions: Sequence[Transaction],
    rules: Sequence[CategoryRule],
) -> list[Transaction]:
    """Recategorize every non-manual transaction, returning a new list."""
    result: list[Transaction] = []
    for tx in transactions:
        if tx.manual:
            result.append(tx)
            continue
        category = categorize_transaction(tx, rules)
        result.append(tx if category == tx.category else tx.model_copy(update={"category": category}))
    return result


def reset_manual_overrides(
    transactions: Sequence[Transaction],
    rules: Sequence[CategoryRule],
) -> list[Transaction]:
    return [
        tx.model_copy(update={"manual": False, "category": categorize_transaction(tx, rules)})
        for tx in transactions
    ]


def add_keyword_rule(
    rules: Sequence[CategoryRule],
    keyword: str,
    category: str,
) -> list[CategoryRule]:
    """Attach ``keyword`` to the rule for ``category``, creating the rule if needed.

    The rule keeps its position when extended; a new rule goes last so existing
    rules keep their precedence.
    """
    normalized = keyword.strip().lower()
    if not normalized or not category.strip():
        return list(rules)

    for index, rule in enumerate(rules):
        if rule.category != category:
            continue
        if any(_normalize_keyword(item) == normalized for item in rule.keywords):
            return list(rules)
        updated = rule.model_copy(update={"keywords": [*rule.keywords, normalized]})
        return [*rules[:index], updated, *rules[index + 1:]]

    return [*rules, CategoryRule(category=category, keywords=[normalized])]


def rule_categories(rules: Sequence[CategoryRule]) -> list[str]:
    categories: list[str] = []
    seen = set()
    for rule in rules:
        if rule.category not in seen:
            categories.append(rule.category)
            seen.add(rule.category)
    if UNCATEGORIZED not in seen:
        categories.append(UNCATEGORIZED)
    return categories
