from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from sequencing_engine.core.model import Relationship


ALLOWED_RELATIONSHIPS: set[str] = {"FS", "SS", "FF", "SF"}


@dataclass(frozen=True)
class DependencyRule:
    from_name: str
    to_name: str
    relationship: Relationship
    lag: int = 0

    def describe(self) -> str:
        lag = f"+{self.lag}" if self.lag >= 0 else str(self.lag)
        return f"{self.from_name} -> {self.to_name} ({self.relationship}{lag})"


# Typical construction sequence. Order is preserved when rules are applied.
DEFAULT_RULES: list[DependencyRule] = [
    DependencyRule("Foundation", "Structural", "FS", 0),
    DependencyRule("Structural", "Envelope", "FS", 2),
    DependencyRule("Envelope", "MEP", "FS", 1),
    DependencyRule("Electrical Rough", "Electrical Trim", "FS", 7),
    DependencyRule("Rough", "Finish", "FS", 3),
]


class RulesConfigError(ValueError):
    pass


def parse_rules(raw: Any) -> list[DependencyRule]:
    """Parse a list of {from, to, relationship, lag} mappings."""
    if not isinstance(raw, list):
        raise RulesConfigError("rules must be a list of {from, to, relationship, lag}")

    out: list[DependencyRule] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise RulesConfigError(f"rules[{i}] must be a mapping")
        src, dst = item.get("from"), item.get("to")
        if not isinstance(src, str) or not src.strip() or not isinstance(dst, str) or not dst.strip():
            raise RulesConfigError(f"rules[{i}] from/to must be non-empty strings")
        rel = item.get("relationship", "FS")
        if rel not in ALLOWED_RELATIONSHIPS:
            raise RulesConfigError(f"rules[{i}] relationship must be one of {sorted(ALLOWED_RELATIONSHIPS)}, got {rel!r}")
        lag = item.get("lag", 0)
        if not isinstance(lag, int) or isinstance(lag, bool):
            raise RulesConfigError(f"rules[{i}] lag must be an integer number of days")
        out.append(DependencyRule(src.strip(), dst.strip(), rel, lag))
    return out


def load_rules_file(path: str | Path) -> tuple[list[DependencyRule], bool]:
    """Load rules from YAML.

    Format:
      replace: false          # true drops DEFAULT_RULES
      rules:
        - {from: Demolition, to: Foundation, relationship: FS, lag: 1}

    A bare list is accepted and is appended to the defaults.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return [], False
    if isinstance(raw, list):
        return parse_rules(raw), False
    if not isinstance(raw, dict):
        raise RulesConfigError("rules file must be a list or a mapping with 'rules'")
    return parse_rules(raw.get("rules", [])), bool(raw.get("replace", False))


def load_and_merge_rules(rules_file: str | None) -> list[DependencyRule]:
    if not rules_file:
        return list(DEFAULT_RULES)
    extra, replace = load_rules_file(rules_file)
    if replace:
        return extra
    return list(DEFAULT_RULES) + extra
