"""
Condition text parser.

Format, one rule per line:

    identifier|assigned_role|days_per_copy|default_role

Numeric identifiers match products by id, anything else matches by slug.
Lines missing an identifier or a role are dropped without complaint since
the text is free-form operator input.
"""

import re
from typing import List, Optional, Tuple

from .models import Rule

_LINE_SPLIT_RE = re.compile(r"\r\n|\n|\r")


def parse_rules(raw: Optional[str]) -> Tuple[Rule, ...]:
    rules: List[Rule] = []
    for line in _LINE_SPLIT_RE.split((raw or "").strip()):
        line = line.strip()
        if not line:
            continue

        parts = [part.strip() for part in line.split("|")]
        identifier = parts[0] if len(parts) > 0 else ""
        role = parts[1] if len(parts) > 1 else ""
        days = parts[2] if len(parts) > 2 else "0"
        default_role = parts[3] if len(parts) > 3 else ""

        if not identifier or not role:
            continue

        rules.append(
            Rule(
                identifier=identifier,
                assigned_role=role,
                days=days,
                default_role=default_role,
            )
        )
    return tuple(rules)
