import logging
from typing import List, Optional

from transferguard.exceptions import CountryNotFoundError
from transferguard.hierarchy.rules import DEFAULT_RULE_TABLE, RuleTable
from transferguard.hierarchy.traversal import GraphTraversal
from transferguard.jurisdiction.classifier import is_third_country
from transferguard.models.health import (
    ChainCountryAssessment,
    DepthViolation,
    HierarchyHealthReport,
    MissingAgreement,
    RecipientStatistics,
    ThirdCountryRecipient,
)
from transferguard.models.recipient import (
    Country,
    ExternalOrganization,
    Recipient,
    RecipientType,
)
from transferguard.runtime.cancellation import CancellationToken, check_cancelled
from transferguard.storage import RecipientStore

logger = logging.getLogger("transferguard.hierarchy")


class HierarchyHealthService:
    """
    Organization-wide integrity and reporting queries over stored recipients.

    Unlike the write-path validator, these read whatever is in the store,
    including rows written before the current rules existed. Every query is
    scoped to one organization.
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

    def _external_for(self, recipient: Recipient) -> Optional[ExternalOrganization]:
        if not recipient.external_organization_id:
            return None
        external = self.store.get_external_organization(recipient.external_organization_id)
        if external is None or external.organization_id != recipient.organization_id:
            return None
        return external

    def _headquarters_of(self, external: Optional[ExternalOrganization]) -> Optional[Country]:
        if external is None or not external.headquarters_country_id:
            return None
        country = self.store.get_country(external.headquarters_country_id)
        if country is None:
            raise CountryNotFoundError(external.headquarters_country_id)
        return country

    # --- data quality ---

    def find_orphaned_recipients(self, organization_id: str) -> List[Recipient]:
        """Sub-processors with no parent, or whose parent is not in the organization."""
        orphaned = []
        for recipient in self.store.list_recipients(organization_id, active_only=False):
            if recipient.type != RecipientType.SUB_PROCESSOR:
                continue
            parent_id = recipient.parent_recipient_id
            if not parent_id or self.store.get_recipient_for_organization(parent_id, organization_id) is None:
                orphaned.append(recipient)
        return orphaned

    def find_unlinked_recipients(self, organization_id: str) -> List[Recipient]:
        return [
            r for r in self.store.list_recipients(organization_id, active_only=False)
            if self.rules.rules_for(r.type).requires_external_org and not r.external_organization_id
        ]

    def find_circular_references(
        self,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> List[str]:
        cyclic = []
        for recipient in self.store.list_recipients(organization_id, active_only=False):
            if not recipient.parent_recipient_id:
                continue
            if self.traversal.check_circular_reference(
                recipient.id, recipient.parent_recipient_id, organization_id, cancellation
            ):
                cyclic.append(recipient.id)
        return cyclic

    def find_depth_violations(
        self,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
        exclude: frozenset = frozenset(),
    ) -> List[DepthViolation]:
        violations = []
        for recipient in self.store.list_recipients(organization_id, active_only=False):
            if not recipient.parent_recipient_id or recipient.id in exclude:
                continue
            depth = self.traversal.calculate_hierarchy_depth(recipient.id, organization_id, cancellation)
            max_allowed = self.rules.max_depth(recipient.type)
            if depth > max_allowed:
                violations.append(DepthViolation(recipient, current_depth=depth, max_allowed=max_allowed))
        return violations

    def check_hierarchy_health(
        self,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> HierarchyHealthReport:
        check_cancelled(cancellation)
        circular = self.find_circular_references(organization_id, cancellation)
        report = HierarchyHealthReport(
            orphaned_sub_processors=self.find_orphaned_recipients(organization_id),
            unlinked_recipients=self.find_unlinked_recipients(organization_id),
            # Cyclic chains always hit the depth bound; report them once.
            depth_violations=self.find_depth_violations(
                organization_id, cancellation, exclude=frozenset(circular)
            ),
            circular_references=circular,
        )
        if report.total_issues:
            logger.warning(f"Organization {organization_id}: {report.total_issues} hierarchy issue(s) found")
        return report

    # --- reporting ---

    def find_recipients_missing_agreements(self, organization_id: str) -> List[MissingAgreement]:
        """
        One entry per active recipient and required agreement type that has
        no ACTIVE agreement with the recipient's external organization.
        """
        missing = []
        for recipient in self.store.list_recipients(organization_id, active_only=True):
            required = self.rules.rules_for(recipient.type).required_agreement_types
            if not required:
                continue
            external = self._external_for(recipient)
            if external is None:
                continue
            existing = {a.type for a in self.store.list_active_agreements(external.id)}
            missing.extend(
                MissingAgreement(recipient, agreement_type, external)
                for agreement_type in required
                if agreement_type not in existing
            )
        return missing

    def get_third_country_recipients(self, organization_id: str) -> List[ThirdCountryRecipient]:
        result = []
        for recipient in self.store.list_recipients(organization_id, active_only=True):
            external = self._external_for(recipient)
            country = self._headquarters_of(external)
            if country is not None and is_third_country(country):
                result.append(ThirdCountryRecipient(recipient, country, external))
        return result

    def get_recipient_statistics(self, organization_id: str) -> RecipientStatistics:
        recipients = self.store.list_recipients(organization_id, active_only=False)
        by_type = {t: 0 for t in RecipientType}
        with_parent = active = with_agreements = third_country = 0

        for recipient in recipients:
            by_type[recipient.type] += 1
            if recipient.parent_recipient_id:
                with_parent += 1
            if recipient.is_active:
                active += 1

            external = self._external_for(recipient)
            if external is not None and self.store.list_active_agreements(external.id):
                with_agreements += 1
            country = self._headquarters_of(external)
            if country is not None and is_third_country(country):
                third_country += 1

        total = len(recipients)
        return RecipientStatistics(
            total_recipients=total,
            by_type=by_type,
            with_parent=with_parent,
            without_parent=total - with_parent,
            active_recipients=active,
            inactive_recipients=total - active,
            with_agreements=with_agreements,
            without_agreements=total - with_agreements,
            third_country_recipients=third_country,
        )

    def assess_cross_border_transfers(
        self,
        recipient_id: str,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> List[ChainCountryAssessment]:
        """
        Headquarters country of a recipient and of every descendant in its
        processing chain, with depth (0 = the recipient itself).
        """
        check_cancelled(cancellation)
        root = self.store.get_recipient_for_organization(recipient_id, organization_id)
        if root is None:
            return []

        chain = [(root, 0)] + self.traversal.get_descendant_tree(
            recipient_id, organization_id, cancellation=cancellation
        )
        return [
            ChainCountryAssessment(recipient, self._headquarters_of(self._external_for(recipient)), depth)
            for recipient, depth in chain
        ]
