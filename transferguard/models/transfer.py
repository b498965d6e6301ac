from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, NoReturn, Optional

from transferguard.models.recipient import (
    Country,
    ProcessingLocation,
    RecipientType,
    TransferMechanism,
)


class RiskLevel(str, Enum):
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskReason(str, Enum):
    SAME_JURISDICTION = "SAME_JURISDICTION"
    ADEQUACY_DECISION = "ADEQUACY_DECISION"
    SAFEGUARDS_IN_PLACE = "SAFEGUARDS_IN_PLACE"
    MISSING_SAFEGUARDS = "MISSING_SAFEGUARDS"
    THIRD_COUNTRY_NO_MECHANISM = "THIRD_COUNTRY_NO_MECHANISM"


# --- TransferRisk: closed set of variants ---

@dataclass(frozen=True)
class TransferRisk:
    level: ClassVar[RiskLevel]
    reason: ClassVar[RiskReason]

    def to_dict(self) -> dict:
        return {"level": self.level.value, "reason": self.reason.value}


@dataclass(frozen=True)
class SameJurisdiction(TransferRisk):
    level: ClassVar[RiskLevel] = RiskLevel.NONE
    reason: ClassVar[RiskReason] = RiskReason.SAME_JURISDICTION


@dataclass(frozen=True)
class AdequacyDecision(TransferRisk):
    level: ClassVar[RiskLevel] = RiskLevel.LOW
    reason: ClassVar[RiskReason] = RiskReason.ADEQUACY_DECISION


@dataclass(frozen=True)
class SafeguardsInPlace(TransferRisk):
    mechanism: TransferMechanism
    level: ClassVar[RiskLevel] = RiskLevel.MEDIUM
    reason: ClassVar[RiskReason] = RiskReason.SAFEGUARDS_IN_PLACE

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["mechanism"] = {
            "id": self.mechanism.id,
            "code": self.mechanism.code,
            "name": self.mechanism.name,
        }
        return data


@dataclass(frozen=True)
class MissingSafeguards(TransferRisk):
    required_mechanism: str
    level: ClassVar[RiskLevel] = RiskLevel.HIGH
    reason: ClassVar[RiskReason] = RiskReason.MISSING_SAFEGUARDS

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["required_mechanism"] = self.required_mechanism
        return data


@dataclass(frozen=True)
class ThirdCountryNoMechanism(TransferRisk):
    level: ClassVar[RiskLevel] = RiskLevel.CRITICAL
    reason: ClassVar[RiskReason] = RiskReason.THIRD_COUNTRY_NO_MECHANISM


RISK_VARIANTS = (
    SameJurisdiction,
    AdequacyDecision,
    SafeguardsInPlace,
    MissingSafeguards,
    ThirdCountryNoMechanism,
)


def assert_never_risk(risk: object) -> NoReturn:
    """Terminal branch of every isinstance dispatch over TransferRisk."""
    raise AssertionError(f"Unhandled transfer risk variant: {type(risk).__name__}")


@dataclass(frozen=True)
class MechanismRequirement:
    valid: bool
    required: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class CrossBorderTransfer:
    organization_country: Country
    recipient_id: str
    recipient_name: str
    recipient_type: RecipientType
    processing_location: ProcessingLocation
    location_country: Country
    transfer_mechanism: Optional[TransferMechanism]
    transfer_risk: TransferRisk
    depth: int  # 0 = direct recipient, N = ancestor distance

    def to_dict(self) -> dict:
        return {
            "organization_country": self.organization_country.iso_code,
            "recipient_id": self.recipient_id,
            "recipient_name": self.recipient_name,
            "recipient_type": self.recipient_type.value,
            "location_id": self.processing_location.id,
            "location_country": self.location_country.iso_code,
            "service": self.processing_location.service,
            "transfer_risk": self.transfer_risk.to_dict(),
            "depth": self.depth,
        }


@dataclass(frozen=True)
class CountryInvolvement:
    country: Country
    location_count: int


@dataclass(frozen=True)
class TransferSummary:
    total_recipients: int
    recipients_with_transfers: int
    risk_distribution: Dict[RiskLevel, int]
    countries_involved: List[CountryInvolvement] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_recipients": self.total_recipients,
            "recipients_with_transfers": self.recipients_with_transfers,
            "risk_distribution": {
                level.value.lower(): count
                for level, count in self.risk_distribution.items()
            },
            "countries_involved": [
                {"country": c.country.iso_code, "location_count": c.location_count}
                for c in self.countries_involved
            ],
        }


@dataclass(frozen=True)
class ActivityTransferAnalysis:
    activity_id: str
    activity_name: str
    organization_country: Country
    transfers: List[CrossBorderTransfer]
    summary: TransferSummary

    def to_dict(self) -> dict:
        return {
            "activity_id": self.activity_id,
            "activity_name": self.activity_name,
            "organization_country": self.organization_country.iso_code,
            "transfers": [t.to_dict() for t in self.transfers],
            "summary": self.summary.to_dict(),
        }
