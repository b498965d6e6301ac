from dataclasses import dataclass, field
from typing import Dict, List, Optional

from transferguard.models.recipient import (
    AgreementType,
    Country,
    ExternalOrganization,
    Recipient,
    RecipientType,
)


def _recipient_ref(recipient: Recipient) -> dict:
    return {"id": recipient.id, "name": recipient.name, "type": recipient.type.value}


@dataclass(frozen=True)
class DepthViolation:
    recipient: Recipient
    current_depth: int
    max_allowed: int

    def to_dict(self) -> dict:
        return {
            "recipient": _recipient_ref(self.recipient),
            "current_depth": self.current_depth,
            "max_allowed": self.max_allowed,
        }


@dataclass(frozen=True)
class HierarchyHealthReport:
    orphaned_sub_processors: List[Recipient]
    unlinked_recipients: List[Recipient]
    depth_violations: List[DepthViolation]
    circular_references: List[str]

    @property
    def total_issues(self) -> int:
        return (
            len(self.orphaned_sub_processors)
            + len(self.unlinked_recipients)
            + len(self.depth_violations)
            + len(self.circular_references)
        )

    def to_dict(self) -> dict:
        return {
            "total_issues": self.total_issues,
            "orphaned_sub_processors": [_recipient_ref(r) for r in self.orphaned_sub_processors],
            "unlinked_recipients": [_recipient_ref(r) for r in self.unlinked_recipients],
            "depth_violations": [v.to_dict() for v in self.depth_violations],
            "circular_references": list(self.circular_references),
        }


@dataclass(frozen=True)
class MissingAgreement:
    recipient: Recipient
    required_agreement_type: AgreementType
    external_organization: ExternalOrganization


@dataclass(frozen=True)
class ThirdCountryRecipient:
    """A recipient whose external organization is headquartered in a third country."""
    recipient: Recipient
    country: Country
    external_organization: ExternalOrganization


@dataclass(frozen=True)
class ChainCountryAssessment:
    recipient: Recipient
    country: Optional[Country]
    depth: int


@dataclass(frozen=True)
class RecipientStatistics:
    total_recipients: int = 0
    by_type: Dict[RecipientType, int] = field(
        default_factory=lambda: {t: 0 for t in RecipientType}
    )
    with_parent: int = 0
    without_parent: int = 0
    active_recipients: int = 0
    inactive_recipients: int = 0
    with_agreements: int = 0
    without_agreements: int = 0
    third_country_recipients: int = 0

    def to_dict(self) -> dict:
        return {
            "total_recipients": self.total_recipients,
            "by_type": {t.value: n for t, n in self.by_type.items()},
            "with_parent": self.with_parent,
            "without_parent": self.without_parent,
            "active_recipients": self.active_recipients,
            "inactive_recipients": self.inactive_recipients,
            "with_agreements": self.with_agreements,
            "without_agreements": self.without_agreements,
            "third_country_recipients": self.third_country_recipients,
        }
