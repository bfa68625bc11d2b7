"""Clause evaluation and rule matching.

Both functions are pure: the result depends only on the clause/rule and the facts.
Unknown operators have a raw result of False (negate still applies), so a clause
written by a newer editor never breaks dispatch.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from ..contracts.v1 import AutomationClause, AutomationRule
from .facts import EventFacts, FactValue, ListFact, TextFact, normalize_mention_handle

MENTIONS_FIELD = "comment.mentions"


def _is_id_field(field: str) -> bool:
    return field.endswith("Ids") or field.endswith("Id")


def _clean(values: Optional[List[str]]) -> List[str]:
    return [v.strip() for v in (values or []) if v.strip()]


def _text_of(fact: FactValue) -> Optional[str]:
    if isinstance(fact, TextFact):
        return fact.value.strip()
    return None


def _items_of(fact: FactValue) -> Tuple[str, ...]:
    if isinstance(fact, ListFact):
        return tuple(v.strip() for v in fact.values if v.strip())
    if isinstance(fact, TextFact) and fact.value.strip():
        return (fact.value.strip(),)
    return ()


def _op_equals(clause: AutomationClause, fact: FactValue) -> bool:
    text = _text_of(fact)
    if text is None or clause.value is None:
        return False
    return text.casefold() == clause.value.strip().casefold()


def _op_in(clause: AutomationClause, fact: FactValue) -> bool:
    text = _text_of(fact)
    if text is None:
        return False
    return text in _clean(clause.values)


def _op_contains_any(clause: AutomationClause, fact: FactValue) -> bool:
    items = _items_of(fact)
    wanted = _clean(clause.values)
    if not items or not wanted:
        return False
    if clause.field == MENTIONS_FIELD:
        have = {normalize_mention_handle(v) for v in items} - {""}
        return any(normalize_mention_handle(v) in have for v in wanted)
    if _is_id_field(clause.field):
        return not set(items).isdisjoint(wanted)
    return not {v.casefold() for v in items}.isdisjoint(v.casefold() for v in wanted)


def _op_matches_any(clause: AutomationClause, fact: FactValue) -> bool:
    text = _text_of(fact)
    if text is None:
        return False
    return text in _clean(clause.values)


def _op_exists(clause: AutomationClause, fact: FactValue) -> bool:
    return bool(_items_of(fact))


def _op_text_contains_any(clause: AutomationClause, fact: FactValue) -> bool:
    if isinstance(fact, ListFact):
        blob = " ".join(fact.values)
    elif isinstance(fact, TextFact):
        blob = fact.value
    else:
        return False
    blob = blob.casefold()
    return any(k.casefold() in blob for k in _clean(clause.values))


_OPS: Dict[str, Callable[[AutomationClause, FactValue], bool]] = {
    "equals": _op_equals,
    "in": _op_in,
    "containsAny": _op_contains_any,
    "matchesAny": _op_matches_any,
    "exists": _op_exists,
    "textContainsAny": _op_text_contains_any,
}


def evaluate_clause(clause: AutomationClause, facts: EventFacts) -> bool:
    fn = _OPS.get(clause.op)
    ok = fn(clause, facts.fact(clause.field)) if fn is not None else False
    return not ok if clause.negate else ok


def rule_matches(rule: AutomationRule, facts: EventFacts) -> bool:
    if not rule.enabled:
        return False
    match = rule.match
    if match is None:
        return True
    if not all(evaluate_clause(c, facts) for c in (match.all or [])):
        return False
    any_ = match.any or []
    # An emptied "any" list must not block the rule.
    return not any_ or any(evaluate_clause(c, facts) for c in any_)
