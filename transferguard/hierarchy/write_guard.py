import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from transferguard.exceptions import HierarchyValidationError, RecipientNotFoundError
from transferguard.hierarchy.validator import HierarchyValidator
from transferguard.models.recipient import Recipient
from transferguard.models.validation_result import ValidationResult
from transferguard.storage import RecipientStore

logger = logging.getLogger("transferguard.hierarchy")


class RecipientWriteGuard:
    """
    Validate-then-write for recipient creates and updates.

    Validation and the save run inside one store transaction, so a
    concurrent reassignment cannot slip in between the cycle check and the
    write. Returns the saved recipient and any advisory warnings.
    """

    def __init__(self, store: RecipientStore, validator: Optional[HierarchyValidator] = None):
        self.store = store
        self.validator = validator or HierarchyValidator(store)

    def _validate(self, recipient: Recipient) -> ValidationResult:
        result = self.validator.validate_recipient_data(
            recipient.type, recipient.external_organization_id
        )
        if recipient.external_organization_id:
            result = result.merge(self.validator.validate_tenant_ownership(
                recipient.organization_id, recipient.external_organization_id
            ))
        hierarchy = self.validator.validate_recipient_hierarchy(
            recipient.id,
            recipient.type,
            recipient.parent_recipient_id,
            recipient.organization_id,
        )
        if hierarchy.is_valid:
            hierarchy = hierarchy.merge(self._validate_subtree(recipient))
        return result.merge(hierarchy)

    def _validate_subtree(self, recipient: Recipient) -> ValidationResult:
        """
        Existing children must still accept the recipient as parent, and no
        descendant may be pushed past its own max depth.
        """
        rules = self.validator.rules
        traversal = self.validator.traversal
        organization_id = recipient.organization_id
        errors: List[str] = []

        for child in traversal.get_direct_children(recipient.id, organization_id):
            allowed = rules.rules_for(child.type).allowed_parent_types
            if recipient.type not in allowed:
                allowed_list = ", ".join(sorted(t.value for t in allowed)) or "none"
                errors.append(
                    f"Child recipient {child.id} of type {child.type.value} cannot have a parent "
                    f"of type {recipient.type.value}. Allowed types: {allowed_list}"
                )

        new_depth = 0
        if recipient.parent_recipient_id:
            new_depth = traversal.calculate_hierarchy_depth(
                recipient.parent_recipient_id, organization_id
            ) + 1

        descendants = traversal.get_descendant_tree(
            recipient.id, organization_id, max_depth=rules.longest_chain + 1
        )
        for descendant, distance in descendants:
            depth = new_depth + distance
            max_depth = rules.max_depth(descendant.type)
            if depth > max_depth:
                errors.append(
                    f"This change would put descendant {descendant.id} at depth {depth}, "
                    f"which exceeds maximum depth of {max_depth} for type {descendant.type.value}"
                )

        return ValidationResult.from_lists(errors=errors, warnings=[])

    def _commit(self, recipient: Recipient) -> Tuple[Recipient, List[str]]:
        stamped = replace(
            recipient,
            hierarchy_type=self.validator.get_hierarchy_type_for_recipient(recipient.type),
        )
        result = self._validate(stamped)
        if not result.is_valid:
            raise HierarchyValidationError(result)

        saved = self.store.save_recipient(stamped)
        agreements = self.validator.validate_required_agreements(saved.id, saved.organization_id)
        return saved, result.warnings + agreements.warnings

    def create_recipient(self, recipient: Recipient) -> Tuple[Recipient, List[str]]:
        with self.store.transaction():
            saved, warnings = self._commit(recipient)
        logger.info(f"Created recipient {saved.id} ({saved.type.value})")
        return saved, warnings

    def update_recipient(self, recipient: Recipient) -> Tuple[Recipient, List[str]]:
        with self.store.transaction():
            existing = self.store.get_recipient_for_organization(recipient.id, recipient.organization_id)
            if existing is None:
                raise RecipientNotFoundError(recipient.id, recipient.organization_id)
            saved, warnings = self._commit(recipient)
        logger.info(f"Updated recipient {saved.id}")
        return saved, warnings
