import json
import os
from collections.abc import Sequence

from pydantic import TypeAdapter, ValidationError

from statement_categorizer.domain.rules import DEFAULT_RULES
from statement_categorizer.logger import get_logger
from statement_categorizer.models import CategoryRule

logger = get_logger(__name__)

_RULES_ADAPTER = TypeAdapter(list[CategoryRule])


class RuleStore:
    """Ordered rule list persisted as a JSON array."""

    def __init__(self, data_path: str = "rules.json"):
        self.data_path = data_path
        self.rules: list[CategoryRule] = list(DEFAULT_RULES)
        self.load()

    def load(self) -> None:
        if not os.path.exists(self.data_path):
            return
        try:
            with open(self.data_path, encoding="utf-8") as f:
                self.rules = _RULES_ADAPTER.validate_python(json.load(f))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("[STORE] Ignoring unreadable rules file %s: %s", self.data_path, exc)
            self.rules = list(DEFAULT_RULES)

    def save(self) -> None:
        with open(self.data_path, "w", encoding="utf-8") as f:
            json.dump(_RULES_ADAPTER.dump_python(self.rules, mode="json"), f, indent=2)

    def replace(self, rules: Sequence[CategoryRule]) -> list[CategoryRule]:
        self.rules = list(rules)
        self.save()
        logger.info("[RULES] Saved %d rules.", len(self.rules))
        return list(self.rules)
