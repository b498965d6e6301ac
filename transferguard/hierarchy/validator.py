import logging
from typing import List, Optional

from transferguard.hierarchy.rules import DEFAULT_RULE_TABLE, RuleTable
from transferguard.hierarchy.traversal import GraphTraversal
from transferguard.models.recipient import HierarchyType, RecipientType
from transferguard.models.validation_result import ValidationResult
from transferguard.runtime.cancellation import CancellationToken
from transferguard.storage import RecipientStore

logger = logging.getLogger("transferguard.hierarchy")


class HierarchyValidator:
    """
    Checks a proposed recipient/parent assignment before it is written.

    Rule violations come back as ValidationResult errors; nothing here
    raises for a bad hierarchy. The caller must run validation and the
    write inside one store transaction.
    """

    def __init__(
        self,
        store: RecipientStore,
        rules: RuleTable = DEFAULT_RULE_TABLE,
        traversal: Optional[GraphTraversal] = None,
    ):
        self.store = store
        self.rules = rules
        self.traversal = traversal or GraphTraversal(store, rules)

    def validate_recipient_hierarchy(
        self,
        recipient_id: str,
        recipient_type: RecipientType,
        parent_recipient_id: Optional[str],
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        if not parent_recipient_id:
            return ValidationResult.from_lists(errors, warnings)

        rules = self.rules.rules_for(recipient_type)

        # 1. Type may carry a parent at all
        if not rules.can_have_parent:
            errors.append(
                f"Recipient type {recipient_type.value} cannot have a parent according to hierarchy rules"
            )

        # 2. Parent exists
        parent = self.store.get_recipient(parent_recipient_id)
        if parent is None:
            errors.append(f"Parent recipient with ID {parent_recipient_id} not found")
            return ValidationResult.from_lists(errors, warnings)

        # 3. Parent type allowed
        if parent.type not in rules.allowed_parent_types:
            allowed = ", ".join(sorted(t.value for t in rules.allowed_parent_types)) or "none"
            errors.append(
                f"Parent recipient type {parent.type.value} is not an allowed parent type "
                f"for {recipient_type.value}. Allowed types: {allowed}"
            )

        # 4. Same tenant
        if parent.organization_id != organization_id:
            errors.append(
                "Parent recipient is in a different organization. "
                "Cross-organization hierarchies are not allowed."
            )

        # 5-6 only run on an otherwise clean request; only the first class
        # of violation is reported.
        if not errors:
            if self.traversal.check_circular_reference(
                recipient_id, parent_recipient_id, organization_id, cancellation
            ):
                errors.append("Setting this parent would create a circular reference in the hierarchy")

        if not errors:
            parent_depth = self.traversal.calculate_hierarchy_depth(
                parent_recipient_id, organization_id, cancellation
            )
            new_depth = parent_depth + 1
            if new_depth > rules.max_depth:
                errors.append(
                    f"Setting this parent would result in depth {new_depth}, which exceeds "
                    f"maximum depth of {rules.max_depth} for type {recipient_type.value}"
                )

        if errors:
            logger.info(
                f"Hierarchy validation rejected recipient {recipient_id} "
                f"({len(errors)} error(s))"
            )
        return ValidationResult.from_lists(errors, warnings)

    def validate_recipient_data(
        self,
        recipient_type: RecipientType,
        external_organization_id: Optional[str],
    ) -> ValidationResult:
        """Pure check, no store access."""
        errors: List[str] = []
        warnings: List[str] = []
        rules = self.rules.rules_for(recipient_type)

        if rules.requires_external_org and not external_organization_id:
            errors.append(f"Recipient type {recipient_type.value} requires an external organization")

        if recipient_type == RecipientType.INTERNAL_DEPARTMENT and external_organization_id:
            warnings.append(f"Recipient type {recipient_type.value} should not have an external organization")

        return ValidationResult.from_lists(errors, warnings)

    def validate_required_agreements(self, recipient_id: str, organization_id: str) -> ValidationResult:
        """
        Warn for every required agreement type with no ACTIVE agreement.
        Missing agreements never block a write.
        """
        recipient = self.store.get_recipient_for_organization(recipient_id, organization_id)
        if recipient is None:
            return ValidationResult(errors=[f"Recipient with ID {recipient_id} not found in organization"])

        required = self.rules.rules_for(recipient.type).required_agreement_types
        if not required or not recipient.external_organization_id:
            return ValidationResult()

        external = self.store.get_external_organization(recipient.external_organization_id)
        if external is None or external.organization_id != organization_id:
            return ValidationResult()

        existing = {a.type for a in self.store.list_active_agreements(external.id)}
        warnings = [
            f"Recipient type {recipient.type.value} is missing required {agreement_type.value} "
            f"agreement with {external.legal_name}"
            for agreement_type in required
            if agreement_type not in existing
        ]
        return ValidationResult(warnings=warnings)

    def get_hierarchy_type_for_recipient(self, recipient_type: RecipientType) -> Optional[HierarchyType]:
        return self.rules.rules_for(recipient_type).hierarchy_type

    def validate_tenant_ownership(self, organization_id: str, external_organization_id: str) -> ValidationResult:
        external = self.store.get_external_organization(external_organization_id)
        if external is None:
            return ValidationResult(errors=[f"ExternalOrganization with ID {external_organization_id} not found"])
        if external.organization_id != organization_id:
            logger.warning(
                f"Rejected cross-tenant link to external organization {external_organization_id}"
            )
            return ValidationResult(errors=["ExternalOrganization belongs to a different organization"])
        return ValidationResult()
