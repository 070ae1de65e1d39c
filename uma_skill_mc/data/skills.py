"""
Skill catalog: name resolution, ability groups and the cost model.

Built once per run from the static tables and owned by the coordinator.
"""

import logging
import math
import re
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import DEFAULT_BASE_COST, SKILLS_TO_IGNORE
from ..types import SkillConfig, StaticData

logger = logging.getLogger(__name__)

_VARIANT_RE = re.compile(r'^(.+) ([○◎])$')
_MARKS_RE = re.compile(r'[◎○×]')

# Inherited versions of unique skills use ids starting with this digit
INHERITED_UNIQUE_PREFIX = '9'


def normalize_skill_name(name: str) -> str:
    """Lowercase, strip ○/◎/× marks and collapse whitespace."""
    return ' '.join(_MARKS_RE.sub('', name.lower()).split())


def base_skill_name(name: str) -> str:
    """Name without a trailing ○/◎ mark."""
    return re.sub(r'[◎○]$', '', name).strip()


class SkillCatalog:
    """
    Lookup context over skill names and metadata.

    Holds the name lookup and the ○/◎ variant cache so nothing is kept in
    module-level state.
    """

    def __init__(self, static_data: StaticData):
        self.static_data = static_data
        self.skill_meta = static_data.skill_meta
        self.skill_names = static_data.skill_names

        self._canonical: Dict[str, str] = {}
        self._ids_by_name: Dict[str, List[str]] = {}
        self._ids_by_normalized: Dict[str, List[str]] = {}
        self._variants: Dict[str, List[str]] = {}

        for skill_id, names in self.skill_names.items():
            if not isinstance(names, list) or not names or not names[0]:
                continue
            primary = names[0]
            self._canonical.setdefault(primary.lower().strip(), primary)
            self._ids_by_name.setdefault(primary, []).append(skill_id)
            self._ids_by_normalized.setdefault(normalize_skill_name(primary), []).append(skill_id)

            match = _VARIANT_RE.match(primary)
            if match:
                variants = self._variants.setdefault(match.group(1), [])
                if primary not in variants:
                    variants.append(primary)

        for variants in self._variants.values():
            variants.sort(key=lambda n: n.endswith('◎'))

    # === NAMES ===

    def canonical_name(self, name: str) -> str:
        return self._canonical.get(name.lower().strip(), name)

    def primary_name(self, skill_id: str) -> Optional[str]:
        names = self.skill_names.get(skill_id)
        if isinstance(names, list) and names:
            return names[0]
        return None

    def variants_of(self, base_name: str) -> List[str]:
        return list(self._variants.get(base_name, []))

    @staticmethod
    def _pick(ids: List[str], prefer_inherited: bool) -> str:
        preferred = [
            i for i in ids
            if i.startswith(INHERITED_UNIQUE_PREFIX) == prefer_inherited
        ]
        return (preferred or ids)[0]

    def find_skill_id(self, name: str, prefer_inherited: bool = True) -> Optional[str]:
        """
        Resolve a skill name to an id.

        Exact (case-insensitive) names win over normalised matches. When a name
        maps to both a unique skill and its inherited version, prefer_inherited
        picks between them.

        Args:
            name: Display name as typed by the user
            prefer_inherited: Prefer inherited-unique ids (owned skills) over
                the base unique id (the horse's own unique)

        Returns:
            Skill id or None when unknown
        """
        canonical = self.canonical_name(name)
        ids = self._ids_by_name.get(canonical)
        if not ids:
            ids = self._ids_by_normalized.get(normalize_skill_name(name))
        if not ids:
            return None
        return self._pick(sorted(ids), prefer_inherited)

    def find_variants(self, name: str) -> List[Tuple[str, str]]:
        """
        (skill_id, name) for a candidate name expanded to its ○/◎ variants.

        A name with an explicit mark resolves to itself only.
        """
        canonical = self.canonical_name(name)
        names = [canonical]
        if not _VARIANT_RE.match(canonical):
            variants = self.variants_of(base_skill_name(canonical))
            if variants:
                names = variants

        found = []
        for variant_name in names:
            skill_id = self.find_skill_id(variant_name, prefer_inherited=False)
            if skill_id is not None:
                found.append((skill_id, self.primary_name(skill_id) or variant_name))
        return found

    # === METADATA ===

    def group_id(self, skill_id: str) -> Optional[str]:
        group = (self.skill_meta.get(skill_id) or {}).get('groupId')
        return str(group) if group not in (None, '') else None

    def order(self, skill_id: str) -> int:
        return int((self.skill_meta.get(skill_id) or {}).get('order') or 0)

    def base_cost(self, skill_id: str) -> int:
        cost = (self.skill_meta.get(skill_id) or {}).get('baseCost')
        return int(cost) if cost is not None else DEFAULT_BASE_COST

    def group_map(self, skill_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        return {skill_id: self.group_id(skill_id) for skill_id in skill_ids}

    def has_upgraded_version(self, skill_id: str, owned_ids: Iterable[str]) -> bool:
        """True when an owned skill is a lower-order (upgraded) member of the same group."""
        group = self.group_id(skill_id)
        if group is None:
            return False
        order = self.order(skill_id)
        return any(
            self.group_id(owned) == group and self.order(owned) < order
            for owned in owned_ids
        )

    # === COST MODEL ===

    def calculate_skill_cost(
        self,
        skill_id: str,
        discount: Optional[float],
        owned_ids: Iterable[str],
        config_skills: Optional[Dict[str, SkillConfig]] = None,
    ) -> int:
        """
        Discounted cost of a skill plus unowned prerequisites.

        Prerequisites are same-group skills with a higher order (the basic
        versions). Debuff skills (' ×') and SKILLS_TO_IGNORE are never
        prerequisites. Each prerequisite uses its own configured discount.

        Args:
            skill_id: Skill being priced
            discount: Discount percentage of the skill itself
            owned_ids: Skill ids the horse already has
            config_skills: Scenario skill table, for prerequisite discounts

        Returns:
            Total cost in skill points
        """
        config_skills = config_skills or {}
        owned = set(owned_ids)
        total = discounted_cost(self.base_cost(skill_id), discount)

        group = self.group_id(skill_id)
        if group is None:
            return total
        order = self.order(skill_id)

        for other_id in self.skill_meta:
            if other_id == skill_id or other_id in owned:
                continue
            if self.group_id(other_id) != group or self.order(other_id) <= order:
                continue
            primary = self.primary_name(other_id)
            if primary is None or primary.endswith(' ×') or primary in SKILLS_TO_IGNORE:
                continue
            prereq_config = config_skills.get(primary)
            prereq_discount = prereq_config.discount if prereq_config else None
            total += discounted_cost(self.base_cost(other_id), prereq_discount)

        return total


def discounted_cost(base_cost: float, discount: Optional[float]) -> int:
    """ceil(base * (1 - discount/100)), rounded first to drop float noise."""
    pct = discount or 0
    return int(math.ceil(round(base_cost * (1 - pct / 100.0), 6)))
