"""
Static restriction extraction from skill trigger expressions.

A trigger expression is an OR ('@') of AND-branches ('&') of comparison atoms
such as ``ground_type==2`` or ``distance_type>=3``. Only atoms over the static
scenario fields are understood; every other atom is ignored, so the result
over-approximates where the skill can fire.
"""

import re
from typing import Dict, FrozenSet, Optional, Tuple, Any

from ..config import FIELD_MAX_VALUES
from ..types import RestrictionSet, STATIC_FIELDS


_TERM_RE = re.compile(r'^([a-z_]+)(==|>=|<=|>|<)(\d+)$')


def expand_comparison(field_name: str, operator: str, value: int) -> FrozenSet[int]:
    """
    Enumerate the field values satisfying ``field <op> value``.

    Fields without a declared maximum (track_id) are treated as opaque
    equality and always yield {value}.
    """
    max_value = FIELD_MAX_VALUES.get(field_name)
    if max_value is None or operator == '==':
        return frozenset([value])
    if operator == '>=':
        return frozenset(range(value, max_value + 1))
    if operator == '<=':
        return frozenset(range(1, value + 1))
    if operator == '>':
        return frozenset(range(value + 1, max_value + 1))
    if operator == '<':
        return frozenset(range(1, value))
    return frozenset([value])


def parse_condition_term(term: str) -> Optional[Tuple[str, str, FrozenSet[int]]]:
    """
    Parse a single comparison atom.

    Args:
        term: Atom such as 'season==1' or 'distance_type>=3'

    Returns:
        (field, operator, allowed values), or None for unknown fields and
        atoms that are not a plain integer comparison
    """
    match = _TERM_RE.match(term.strip())
    if not match:
        return None
    field_name, operator, raw = match.groups()
    if field_name not in STATIC_FIELDS:
        return None
    return field_name, operator, expand_comparison(field_name, operator, int(raw))


def parse_and_branch(branch: str) -> RestrictionSet:
    """
    Fold the atoms of an AND-branch into one restriction set.

    A field constrained by several atoms keeps the values allowed by all of them.
    """
    allowed: Dict[str, FrozenSet[int]] = {}
    for term in branch.split('&'):
        parsed = parse_condition_term(term)
        if parsed is None:
            continue
        field_name, _, values = parsed
        if field_name in allowed:
            allowed[field_name] = allowed[field_name] & values
        else:
            allowed[field_name] = values
    return RestrictionSet(allowed)


def merge_restrictions(a: RestrictionSet, b: RestrictionSet) -> RestrictionSet:
    """
    OR-merge two restriction sets.

    A field survives only if both sides constrain it, and then allows the
    union. A branch that leaves a field open leaves it open for the skill.
    """
    merged = {
        name: a.allowed[name] | b.allowed[name]
        for name in STATIC_FIELDS
        if name in a.allowed and name in b.allowed
    }
    return RestrictionSet(merged)


def intersect_restrictions(a: RestrictionSet, b: RestrictionSet) -> RestrictionSet:
    """
    AND-combine a condition with its precondition.

    Fields on both sides intersect (an empty result marks the skill
    impossible); fields on one side are kept as they are.
    """
    result = dict(a.allowed)
    for name, values in b.allowed.items():
        if name in result:
            result[name] = result[name] & values
        else:
            result[name] = values
    return RestrictionSet(result)


def _parse_or_expression(expression: str) -> RestrictionSet:
    merged: Optional[RestrictionSet] = None
    for branch in expression.split('@'):
        branch_set = parse_and_branch(branch)
        merged = branch_set if merged is None else merge_restrictions(merged, branch_set)
    return merged if merged is not None else RestrictionSet()


def extract_condition(condition: str, precondition: Optional[str] = None) -> RestrictionSet:
    """
    Restriction set of one condition/precondition pair.

    Args:
        condition: OR-of-AND trigger expression (empty = unconstrained)
        precondition: Optional expression that must also hold

    Returns:
        RestrictionSet for the pair
    """
    if not condition:
        return RestrictionSet()

    restrictions = _parse_or_expression(condition)
    if precondition:
        restrictions = intersect_restrictions(restrictions, _parse_or_expression(precondition))
    return restrictions


def extract_skill_restrictions(entry: Dict[str, Any]) -> RestrictionSet:
    """
    OR-merge the restrictions of every alternative of a skill data entry.

    Args:
        entry: {'alternatives': [{'condition': ..., 'precondition': ...}, ...]}

    Returns:
        RestrictionSet; unconstrained when the entry has no alternatives
    """
    merged: Optional[RestrictionSet] = None
    for alternative in entry.get('alternatives') or []:
        alt_set = extract_condition(
            alternative.get('condition', ''),
            alternative.get('precondition') or None,
        )
        merged = alt_set if merged is None else merge_restrictions(merged, alt_set)
    return merged if merged is not None else RestrictionSet()
