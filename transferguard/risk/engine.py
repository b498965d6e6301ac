from typing import Optional

from transferguard.exceptions import UnclassifiedTransferError
from transferguard.jurisdiction.classifier import (
    is_same_jurisdiction,
    is_third_country,
    requires_safeguards,
)
from transferguard.models.recipient import Country, JurisdictionTag, TransferMechanism
from transferguard.models.transfer import (
    AdequacyDecision,
    MechanismRequirement,
    MissingSafeguards,
    SafeguardsInPlace,
    SameJurisdiction,
    ThirdCountryNoMechanism,
    TransferRisk,
)

REQUIRED_MECHANISM_HINT = "Standard Contractual Clauses or equivalent"
SAFEGUARDS_ARTICLE = "GDPR Article 46"


def derive_transfer_risk(
    origin: Country,
    destination: Country,
    mechanism: Optional[TransferMechanism] = None,
) -> TransferRisk:
    """
    Classify a transfer from the organization's country to a processing location.

    Branches are evaluated in priority order; the first match wins.
    """
    if is_same_jurisdiction(origin, destination):
        return SameJurisdiction()

    if destination.has_tag(JurisdictionTag.ADEQUATE):
        return AdequacyDecision()

    if requires_safeguards(origin, destination):
        if mechanism is not None:
            return SafeguardsInPlace(mechanism=mechanism)
        return ThirdCountryNoMechanism()

    if is_third_country(destination):
        if mechanism is not None:
            return SafeguardsInPlace(mechanism=mechanism)
        return MissingSafeguards(required_mechanism=REQUIRED_MECHANISM_HINT)

    # Reached only for a non-EU/EEA origin sending into the EU/EEA.
    raise UnclassifiedTransferError(
        f"No risk classification for transfer {origin.iso_code} -> {destination.iso_code} "
        f"(origin tags={sorted(t.value for t in origin.jurisdiction_tags)}, "
        f"destination tags={sorted(t.value for t in destination.jurisdiction_tags)})"
    )


def validate_transfer_mechanism_requirement(
    origin: Country,
    destination: Country,
    transfer_mechanism_id: Optional[str] = None,
) -> MechanismRequirement:
    if is_same_jurisdiction(origin, destination):
        return MechanismRequirement(valid=True, required=False)

    if requires_safeguards(origin, destination):
        if not transfer_mechanism_id:
            return MechanismRequirement(
                valid=False,
                required=True,
                error=(
                    f"Transfer mechanism required: {destination.name} is a third country "
                    f"without adequacy decision. Select an appropriate safeguard under "
                    f"{SAFEGUARDS_ARTICLE} (e.g., Standard Contractual Clauses)."
                ),
            )
        return MechanismRequirement(valid=True, required=True)

    # Adequacy decision or non-EU origin: a mechanism is allowed, not demanded.
    return MechanismRequirement(valid=True, required=False)
