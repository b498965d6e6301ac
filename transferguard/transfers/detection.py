import logging
import time
from typing import Dict, List, Optional, Set, Tuple

from transferguard.exceptions import (
    ActivityNotFoundError,
    CountryNotFoundError,
    MissingHeadquartersCountryError,
    OrganizationNotFoundError,
)
from transferguard.hierarchy.traversal import GraphTraversal
from transferguard.models.recipient import (
    Country,
    ProcessingLocation,
    Recipient,
    TransferMechanism,
)
from transferguard.models.transfer import (
    ActivityTransferAnalysis,
    AdequacyDecision,
    CountryInvolvement,
    CrossBorderTransfer,
    MissingSafeguards,
    RiskLevel,
    SafeguardsInPlace,
    SameJurisdiction,
    ThirdCountryNoMechanism,
    TransferRisk,
    TransferSummary,
    assert_never_risk,
)
from transferguard.risk.engine import derive_transfer_risk
from transferguard.runtime.cancellation import CancellationToken, check_cancelled
from transferguard.storage import RecipientStore
from transferguard.telemetry import emit_scan_telemetry

logger = logging.getLogger("transferguard.transfers")


def _is_transfer(risk: TransferRisk) -> bool:
    if isinstance(risk, SameJurisdiction):
        return False
    if isinstance(risk, (AdequacyDecision, SafeguardsInPlace, MissingSafeguards, ThirdCountryNoMechanism)):
        return True
    assert_never_risk(risk)


def build_risk_distribution(transfers: List[CrossBorderTransfer]) -> Dict[RiskLevel, int]:
    distribution = {level: 0 for level in RiskLevel}
    for transfer in transfers:
        risk = transfer.transfer_risk
        if isinstance(risk, SameJurisdiction):
            distribution[RiskLevel.NONE] += 1
        elif isinstance(risk, AdequacyDecision):
            distribution[RiskLevel.LOW] += 1
        elif isinstance(risk, SafeguardsInPlace):
            distribution[RiskLevel.MEDIUM] += 1
        elif isinstance(risk, MissingSafeguards):
            distribution[RiskLevel.HIGH] += 1
        elif isinstance(risk, ThirdCountryNoMechanism):
            distribution[RiskLevel.CRITICAL] += 1
        else:
            assert_never_risk(risk)
    return distribution


def rank_countries(transfers: List[CrossBorderTransfer]) -> List[CountryInvolvement]:
    """Countries by location count, descending; ties keep first-seen order."""
    counts: Dict[str, Tuple[Country, int]] = {}
    for transfer in transfers:
        country = transfer.location_country
        _, count = counts.get(country.id, (country, 0))
        counts[country.id] = (country, count + 1)

    ranked = sorted(counts.values(), key=lambda item: item[1], reverse=True)
    return [CountryInvolvement(country=c, location_count=n) for c, n in ranked]


class _ScanContext:
    """Per-scan reference-data cache; countries and mechanisms are immutable."""

    def __init__(self, store: RecipientStore):
        self.store = store
        self._countries: Dict[str, Country] = {}
        self._mechanisms: Dict[str, Optional[TransferMechanism]] = {}

    def country(self, country_id: str) -> Country:
        if country_id not in self._countries:
            country = self.store.get_country(country_id)
            if country is None:
                raise CountryNotFoundError(country_id)
            self._countries[country_id] = country
        return self._countries[country_id]

    def mechanism(self, mechanism_id: Optional[str]) -> Optional[TransferMechanism]:
        if not mechanism_id:
            return None
        if mechanism_id not in self._mechanisms:
            mechanism = self.store.get_transfer_mechanism(mechanism_id)
            if mechanism is None:
                logger.warning(f"Transfer mechanism {mechanism_id} not found; treating location as unprotected")
            self._mechanisms[mechanism_id] = mechanism
        return self._mechanisms[mechanism_id]


class TransferDetectionService:
    """
    Derives cross-border transfer risk for an organization or an activity.

    Direct recipients are reported at depth 0; each ancestor in a
    recipient's parent chain is evaluated too, at its distance from the
    recipient. Only transfers with a risk level above NONE are returned.
    """

    def __init__(self, store: RecipientStore, traversal: Optional[GraphTraversal] = None):
        self.store = store
        self.traversal = traversal or GraphTraversal(store)

    def _evaluate(
        self,
        ctx: _ScanContext,
        origin: Country,
        recipient: Recipient,
        locations: List[ProcessingLocation],
        depth: int,
    ) -> List[CrossBorderTransfer]:
        transfers = []
        for location in locations:
            destination = ctx.country(location.country_id)
            mechanism = ctx.mechanism(location.transfer_mechanism_id)
            risk = derive_transfer_risk(origin, destination, mechanism)
            if not _is_transfer(risk):
                continue
            transfers.append(CrossBorderTransfer(
                organization_country=origin,
                recipient_id=recipient.id,
                recipient_name=recipient.name,
                recipient_type=recipient.type,
                processing_location=location,
                location_country=destination,
                transfer_mechanism=mechanism,
                transfer_risk=risk,
                depth=depth,
            ))
        return transfers

    def _scan_recipient(
        self,
        ctx: _ScanContext,
        origin: Country,
        recipient: Recipient,
        organization_id: str,
        cancellation: Optional[CancellationToken],
    ) -> List[CrossBorderTransfer]:
        check_cancelled(cancellation)
        transfers = self._evaluate(
            ctx, origin, recipient, self.store.list_active_locations(recipient.id), depth=0
        )

        if recipient.parent_recipient_id:
            ancestors = self.traversal.get_ancestor_chain(recipient.id, organization_id, cancellation)
            for distance, ancestor in enumerate(ancestors, start=1):
                check_cancelled(cancellation)
                transfers.extend(self._evaluate(
                    ctx, origin, ancestor, self.store.list_active_locations(ancestor.id), depth=distance
                ))
        return transfers

    def _headquarters_country(self, ctx: _ScanContext, organization_id: str) -> Optional[Country]:
        organization = self.store.get_organization(organization_id)
        if organization is None:
            raise OrganizationNotFoundError(organization_id)
        if not organization.headquarters_country_id:
            return None
        return ctx.country(organization.headquarters_country_id)

    def detect_cross_border_transfers(
        self,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> List[CrossBorderTransfer]:
        start_time = time.perf_counter()
        ctx = _ScanContext(self.store)

        origin = self._headquarters_country(ctx, organization_id)
        if origin is None:
            logger.warning(
                f"Organization {organization_id} has no headquarters country - transfer detection skipped"
            )
            return []

        transfers: List[CrossBorderTransfer] = []
        for recipient in self.store.list_recipients(organization_id, active_only=True):
            transfers.extend(self._scan_recipient(ctx, origin, recipient, organization_id, cancellation))

        emit_scan_telemetry(
            scan_latency_ms=int((time.perf_counter() - start_time) * 1000),
            transfer_count=len(transfers),
            scan_scope="organization",
        )
        logger.info(f"Organization {organization_id}: {len(transfers)} cross-border transfer(s) detected")
        return transfers

    def get_activity_transfer_analysis(
        self,
        activity_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> ActivityTransferAnalysis:
        start_time = time.perf_counter()
        ctx = _ScanContext(self.store)

        activity = self.store.get_activity(activity_id)
        if activity is None:
            raise ActivityNotFoundError(activity_id)

        origin = self._headquarters_country(ctx, activity.organization_id)
        if origin is None:
            raise MissingHeadquartersCountryError(activity.organization_id)

        linked = self.store.list_activity_recipients(activity_id)
        transfers: List[CrossBorderTransfer] = []
        for recipient in linked:
            transfers.extend(
                self._scan_recipient(ctx, origin, recipient, activity.organization_id, cancellation)
            )

        with_transfers: Set[str] = {t.recipient_id for t in transfers}
        summary = TransferSummary(
            total_recipients=len(linked),
            recipients_with_transfers=len(with_transfers),
            risk_distribution=build_risk_distribution(transfers),
            countries_involved=rank_countries(transfers),
        )

        emit_scan_telemetry(
            scan_latency_ms=int((time.perf_counter() - start_time) * 1000),
            transfer_count=len(transfers),
            scan_scope="activity",
        )
        return ActivityTransferAnalysis(
            activity_id=activity.id,
            activity_name=activity.name,
            organization_country=origin,
            transfers=transfers,
            summary=summary,
        )

    def get_locations_with_parent_chain(
        self,
        recipient_id: str,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> List[Tuple[ProcessingLocation, int]]:
        """Active locations of a recipient and its ancestors, with depth."""
        check_cancelled(cancellation)
        recipient = self.store.get_recipient_for_organization(recipient_id, organization_id)
        if recipient is None:
            return []

        result = [(loc, 0) for loc in self.store.list_active_locations(recipient.id)]
        ancestors = self.traversal.get_ancestor_chain(recipient.id, organization_id, cancellation)
        for distance, ancestor in enumerate(ancestors, start=1):
            check_cancelled(cancellation)
            result.extend((loc, distance) for loc in self.store.list_active_locations(ancestor.id))
        return result
