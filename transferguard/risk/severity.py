from typing import Iterable, Optional

from transferguard.models.transfer import RiskLevel


RISK_LEVEL_RANK = {
    RiskLevel.NONE: 0,
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


def risk_rank(level: RiskLevel) -> int:
    """
    Convert a risk level to a deterministic ordinal.
    """
    if level not in RISK_LEVEL_RANK:
        raise ValueError(f"Unknown risk level: {level}")

    return RISK_LEVEL_RANK[level]


def highest_risk_level(levels: Iterable[RiskLevel]) -> Optional[RiskLevel]:
    highest = None
    for level in levels:
        if highest is None or risk_rank(level) > risk_rank(highest):
            highest = level
    return highest
