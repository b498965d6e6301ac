import pytest

from reference_data import CHINA, FRANCE, GERMANY, JAPAN, SWITZERLAND, UNTAGGED, USA, SCC
from transferguard.exceptions import UnclassifiedTransferError
from transferguard.models.transfer import (
    AdequacyDecision,
    MissingSafeguards,
    RiskLevel,
    RiskReason,
    SafeguardsInPlace,
    SameJurisdiction,
    ThirdCountryNoMechanism,
    assert_never_risk,
)
from transferguard.risk.engine import (
    REQUIRED_MECHANISM_HINT,
    derive_transfer_risk,
    validate_transfer_mechanism_requirement,
)
from transferguard.risk.severity import highest_risk_level, risk_rank


def test_intra_eu_transfer_has_no_risk():
    risk = derive_transfer_risk(FRANCE, GERMANY, None)

    assert risk == SameJurisdiction()
    assert risk.level == RiskLevel.NONE
    assert risk.reason == RiskReason.SAME_JURISDICTION


def test_eu_to_third_country_without_mechanism_is_critical():
    risk = derive_transfer_risk(FRANCE, USA, None)

    assert isinstance(risk, ThirdCountryNoMechanism)
    assert risk.level == RiskLevel.CRITICAL
    assert risk.reason == RiskReason.THIRD_COUNTRY_NO_MECHANISM


def test_eu_to_third_country_with_scc_is_medium():
    risk = derive_transfer_risk(FRANCE, USA, SCC)

    assert risk == SafeguardsInPlace(mechanism=SCC)
    assert risk.level == RiskLevel.MEDIUM
    assert risk.mechanism.code == "SCC"


def test_adequate_destination_is_low_risk():
    risk = derive_transfer_risk(FRANCE, JAPAN)

    assert isinstance(risk, AdequacyDecision)
    assert risk.level == RiskLevel.LOW


def test_adequate_to_adequate_is_same_jurisdiction():
    assert derive_transfer_risk(JAPAN, SWITZERLAND) == SameJurisdiction()


def test_non_eu_origin_to_third_country_without_mechanism_is_high():
    risk = derive_transfer_risk(USA, CHINA)

    assert risk == MissingSafeguards(required_mechanism=REQUIRED_MECHANISM_HINT)
    assert risk.level == RiskLevel.HIGH


def test_non_eu_origin_to_third_country_with_mechanism_is_medium():
    assert derive_transfer_risk(USA, CHINA, SCC) == SafeguardsInPlace(mechanism=SCC)


def test_untagged_destination_is_classified_as_third_country():
    assert isinstance(derive_transfer_risk(FRANCE, UNTAGGED), ThirdCountryNoMechanism)


def test_residual_branch_raises_instead_of_classifying():
    """A non-EU origin sending into the EU matches no branch."""
    with pytest.raises(UnclassifiedTransferError, match="US -> DE"):
        derive_transfer_risk(USA, GERMANY)


def test_residual_branch_is_an_assertion_failure():
    with pytest.raises(AssertionError):
        derive_transfer_risk(JAPAN, FRANCE)


def test_mechanism_requirement_for_third_country():
    missing = validate_transfer_mechanism_requirement(FRANCE, USA, None)

    assert missing.valid is False
    assert missing.required is True
    assert "third country" in missing.error
    assert "United States" in missing.error
    assert "Article 46" in missing.error

    present = validate_transfer_mechanism_requirement(FRANCE, USA, "scc")
    assert present.valid is True
    assert present.required is True
    assert present.error is None


def test_mechanism_not_required_within_jurisdiction_or_adequacy():
    same = validate_transfer_mechanism_requirement(FRANCE, GERMANY)
    adequate = validate_transfer_mechanism_requirement(FRANCE, JAPAN)
    non_eu_origin = validate_transfer_mechanism_requirement(USA, CHINA)

    for requirement in (same, adequate, non_eu_origin):
        assert requirement.valid is True
        assert requirement.required is False


def test_risk_serialization_includes_variant_payload():
    assert derive_transfer_risk(FRANCE, USA, SCC).to_dict() == {
        "level": "MEDIUM",
        "reason": "SAFEGUARDS_IN_PLACE",
        "mechanism": {"id": "scc", "code": "SCC", "name": "Standard Contractual Clauses"},
    }
    assert derive_transfer_risk(USA, CHINA).to_dict()["required_mechanism"] == REQUIRED_MECHANISM_HINT


def test_unknown_variant_is_rejected():
    with pytest.raises(AssertionError, match="Unhandled transfer risk variant"):
        assert_never_risk(object())


def test_risk_ordering():
    assert risk_rank(RiskLevel.CRITICAL) > risk_rank(RiskLevel.HIGH) > risk_rank(RiskLevel.MEDIUM)
    assert highest_risk_level([RiskLevel.LOW, RiskLevel.CRITICAL, RiskLevel.MEDIUM]) == RiskLevel.CRITICAL
    assert highest_risk_level([]) is None
