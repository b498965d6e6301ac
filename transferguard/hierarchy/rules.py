from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

from transferguard.models.recipient import AgreementType, HierarchyType, RecipientType


@dataclass(frozen=True)
class HierarchyRules:
    can_have_parent: bool
    allowed_parent_types: FrozenSet[RecipientType]
    max_depth: int
    hierarchy_type: Optional[HierarchyType]
    requires_external_org: bool
    required_agreement_types: Tuple[AgreementType, ...] = ()


class RuleTable:
    """
    Immutable per-type structural rules.

    Injected into traversal and validation so an alternate regulatory
    framework can be swapped in.
    """

    def __init__(self, rules: Mapping[RecipientType, HierarchyRules]):
        missing = [t.value for t in RecipientType if t not in rules]
        if missing:
            raise ValueError(f"Rule table missing recipient types: {', '.join(missing)}")
        self._rules = MappingProxyType(dict(rules))

    def rules_for(self, recipient_type: RecipientType) -> HierarchyRules:
        return self._rules[recipient_type]

    def max_depth(self, recipient_type: RecipientType) -> int:
        return self._rules[recipient_type].max_depth

    @property
    def longest_chain(self) -> int:
        return max(r.max_depth for r in self._rules.values())

    def items(self):
        return self._rules.items()


_ROOT_ONLY = frozenset()

# GDPR Art. 28 processor chains, Art. 26 joint controllers, internal org charts.
DEFAULT_RULE_TABLE = RuleTable({
    RecipientType.PROCESSOR: HierarchyRules(
        can_have_parent=False,
        allowed_parent_types=_ROOT_ONLY,
        max_depth=0,
        hierarchy_type=None,
        requires_external_org=True,
        required_agreement_types=(AgreementType.DPA,),
    ),
    RecipientType.SUB_PROCESSOR: HierarchyRules(
        can_have_parent=True,
        allowed_parent_types=frozenset({RecipientType.PROCESSOR, RecipientType.SUB_PROCESSOR}),
        max_depth=5,
        hierarchy_type=HierarchyType.PROCESSOR_CHAIN,
        requires_external_org=True,
    ),
    RecipientType.JOINT_CONTROLLER: HierarchyRules(
        can_have_parent=False,
        allowed_parent_types=_ROOT_ONLY,
        max_depth=0,
        hierarchy_type=None,
        requires_external_org=True,
        required_agreement_types=(AgreementType.JOINT_CONTROLLER_AGREEMENT,),
    ),
    RecipientType.SERVICE_PROVIDER: HierarchyRules(
        can_have_parent=False,
        allowed_parent_types=_ROOT_ONLY,
        max_depth=0,
        hierarchy_type=None,
        requires_external_org=True,
    ),
    RecipientType.SEPARATE_CONTROLLER: HierarchyRules(
        can_have_parent=False,
        allowed_parent_types=_ROOT_ONLY,
        max_depth=0,
        hierarchy_type=None,
        requires_external_org=True,
    ),
    RecipientType.PUBLIC_AUTHORITY: HierarchyRules(
        can_have_parent=False,
        allowed_parent_types=_ROOT_ONLY,
        max_depth=0,
        hierarchy_type=None,
        requires_external_org=True,
    ),
    RecipientType.INTERNAL_DEPARTMENT: HierarchyRules(
        can_have_parent=True,
        allowed_parent_types=frozenset({RecipientType.INTERNAL_DEPARTMENT}),
        max_depth=10,
        hierarchy_type=HierarchyType.ORGANIZATIONAL,
        requires_external_org=False,
    ),
})
