from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Optional


class RecipientType(str, Enum):
    PROCESSOR = "PROCESSOR"
    SUB_PROCESSOR = "SUB_PROCESSOR"
    JOINT_CONTROLLER = "JOINT_CONTROLLER"
    SERVICE_PROVIDER = "SERVICE_PROVIDER"
    SEPARATE_CONTROLLER = "SEPARATE_CONTROLLER"
    PUBLIC_AUTHORITY = "PUBLIC_AUTHORITY"
    INTERNAL_DEPARTMENT = "INTERNAL_DEPARTMENT"


class HierarchyType(str, Enum):
    PROCESSOR_CHAIN = "PROCESSOR_CHAIN"
    ORGANIZATIONAL = "ORGANIZATIONAL"


class AgreementType(str, Enum):
    DPA = "DPA"
    JOINT_CONTROLLER_AGREEMENT = "JOINT_CONTROLLER_AGREEMENT"
    SCC = "SCC"
    BCR = "BCR"
    NDA = "NDA"
    OTHER = "OTHER"


class AgreementStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class JurisdictionTag(str, Enum):
    EU = "EU"
    EEA = "EEA"
    ADEQUATE = "Adequate"
    THIRD_COUNTRY = "Third Country"


@dataclass(frozen=True)
class Recipient:
    """
    A third party (or internal unit) receiving personal data.

    The hierarchy is addressed by id only: parent_recipient_id is a weak
    reference resolved through the store, never a loaded object.
    """
    id: str
    organization_id: str
    name: str
    type: RecipientType
    parent_recipient_id: Optional[str] = None
    hierarchy_type: Optional[HierarchyType] = None
    external_organization_id: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class Country:
    id: str
    name: str
    iso_code: str
    jurisdiction_tags: FrozenSet[JurisdictionTag] = field(default_factory=frozenset)

    def has_tag(self, *tags: JurisdictionTag) -> bool:
        return any(t in self.jurisdiction_tags for t in tags)


@dataclass(frozen=True)
class TransferMechanism:
    id: str
    code: str
    name: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProcessingLocation:
    # Historical rows are never edited; a move creates a new row.
    id: str
    organization_id: str
    recipient_id: str
    country_id: str
    service: str
    transfer_mechanism_id: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class Organization:
    id: str
    name: str
    headquarters_country_id: Optional[str] = None


@dataclass(frozen=True)
class ExternalOrganization:
    id: str
    organization_id: str
    legal_name: str
    headquarters_country_id: Optional[str] = None


@dataclass(frozen=True)
class Agreement:
    id: str
    external_organization_id: str
    type: AgreementType
    status: AgreementStatus = AgreementStatus.ACTIVE


@dataclass(frozen=True)
class ProcessingActivity:
    id: str
    organization_id: str
    name: str
