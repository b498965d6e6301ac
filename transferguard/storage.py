import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, List, Optional

from transferguard.models.recipient import (
    Agreement,
    AgreementStatus,
    Country,
    ExternalOrganization,
    Organization,
    ProcessingActivity,
    ProcessingLocation,
    Recipient,
    TransferMechanism,
)

logger = logging.getLogger("transferguard.storage")


class RecipientStore(ABC):
    """
    Persistence boundary consumed by the core.

    Reads are tenant-scoped unless noted. Implementations must make
    transaction() serialize validate-then-write sequences so two concurrent
    parent reassignments cannot jointly introduce a cycle.
    """

    # --- recipients ---

    @abstractmethod
    def get_recipient(self, recipient_id: str) -> Optional[Recipient]:
        """Unscoped lookup; used only to report cross-organization parents."""

    @abstractmethod
    def get_recipient_for_organization(
        self, recipient_id: str, organization_id: str
    ) -> Optional[Recipient]:
        pass

    @abstractmethod
    def list_recipients(self, organization_id: str, active_only: bool = True) -> List[Recipient]:
        pass

    @abstractmethod
    def list_children(self, recipient_id: str, organization_id: str) -> List[Recipient]:
        pass

    @abstractmethod
    def list_activity_recipients(self, activity_id: str) -> List[Recipient]:
        pass

    # --- locations ---

    @abstractmethod
    def get_processing_location(self, location_id: str) -> Optional[ProcessingLocation]:
        pass

    @abstractmethod
    def list_active_locations(self, recipient_id: str) -> List[ProcessingLocation]:
        pass

    # --- organizations, activities, agreements ---

    @abstractmethod
    def get_organization(self, organization_id: str) -> Optional[Organization]:
        pass

    @abstractmethod
    def get_activity(self, activity_id: str) -> Optional[ProcessingActivity]:
        pass

    @abstractmethod
    def get_external_organization(self, external_organization_id: str) -> Optional[ExternalOrganization]:
        """Unscoped; callers compare organization_id themselves."""

    @abstractmethod
    def list_active_agreements(self, external_organization_id: str) -> List[Agreement]:
        pass

    # --- global reference data ---

    @abstractmethod
    def get_country(self, country_id: str) -> Optional[Country]:
        pass

    @abstractmethod
    def get_transfer_mechanism(self, mechanism_id: str) -> Optional[TransferMechanism]:
        pass

    # --- writes ---

    @abstractmethod
    def save_recipient(self, recipient: Recipient) -> Recipient:
        pass

    @abstractmethod
    def add_processing_location(self, location: ProcessingLocation) -> ProcessingLocation:
        pass

    @abstractmethod
    def deactivate_processing_location(self, location_id: str) -> ProcessingLocation:
        pass

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        pass


class InMemoryRecipientStore(RecipientStore):
    """
    Dictionary-backed store for tests and embedding.
    transaction() holds a re-entrant lock for the whole block.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self.recipients: Dict[str, Recipient] = {}
        self.locations: Dict[str, ProcessingLocation] = {}
        self.organizations: Dict[str, Organization] = {}
        self.activities: Dict[str, ProcessingActivity] = {}
        self.activity_links: Dict[str, List[str]] = {}
        self.external_organizations: Dict[str, ExternalOrganization] = {}
        self.agreements: Dict[str, Agreement] = {}
        self.countries: Dict[str, Country] = {}
        self.mechanisms: Dict[str, TransferMechanism] = {}

    # --- seeding helpers ---

    def add_country(self, country: Country) -> Country:
        self.countries[country.id] = country
        return country

    def add_transfer_mechanism(self, mechanism: TransferMechanism) -> TransferMechanism:
        self.mechanisms[mechanism.id] = mechanism
        return mechanism

    def add_organization(self, organization: Organization) -> Organization:
        self.organizations[organization.id] = organization
        return organization

    def add_external_organization(self, external: ExternalOrganization) -> ExternalOrganization:
        self.external_organizations[external.id] = external
        return external

    def add_agreement(self, agreement: Agreement) -> Agreement:
        self.agreements[agreement.id] = agreement
        return agreement

    def add_activity(self, activity: ProcessingActivity, recipient_ids: Optional[List[str]] = None) -> ProcessingActivity:
        self.activities[activity.id] = activity
        self.activity_links[activity.id] = list(recipient_ids or [])
        return activity

    # --- reads ---

    def get_recipient(self, recipient_id):
        return self.recipients.get(recipient_id)

    def get_recipient_for_organization(self, recipient_id, organization_id):
        recipient = self.recipients.get(recipient_id)
        if recipient is None or recipient.organization_id != organization_id:
            return None
        return recipient

    def list_recipients(self, organization_id, active_only=True):
        return [
            r for r in self.recipients.values()
            if r.organization_id == organization_id and (r.is_active or not active_only)
        ]

    def list_children(self, recipient_id, organization_id):
        return [
            r for r in self.recipients.values()
            if r.parent_recipient_id == recipient_id and r.organization_id == organization_id
        ]

    def list_activity_recipients(self, activity_id):
        activity = self.activities.get(activity_id)
        if activity is None:
            return []
        linked = []
        for recipient_id in self.activity_links.get(activity_id, []):
            recipient = self.get_recipient_for_organization(recipient_id, activity.organization_id)
            if recipient is not None:
                linked.append(recipient)
        return linked

    def get_processing_location(self, location_id):
        return self.locations.get(location_id)

    def list_active_locations(self, recipient_id):
        active = [
            loc for loc in self.locations.values()
            if loc.recipient_id == recipient_id and loc.is_active
        ]
        return sorted(active, key=lambda loc: loc.created_at)

    def get_organization(self, organization_id):
        return self.organizations.get(organization_id)

    def get_activity(self, activity_id):
        return self.activities.get(activity_id)

    def get_external_organization(self, external_organization_id):
        return self.external_organizations.get(external_organization_id)

    def list_active_agreements(self, external_organization_id):
        return [
            a for a in self.agreements.values()
            if a.external_organization_id == external_organization_id
            and a.status == AgreementStatus.ACTIVE
        ]

    def get_country(self, country_id):
        return self.countries.get(country_id)

    def get_transfer_mechanism(self, mechanism_id):
        return self.mechanisms.get(mechanism_id)

    # --- writes ---

    def save_recipient(self, recipient):
        with self._lock:
            self.recipients[recipient.id] = recipient
        logger.debug(f"Saved recipient {recipient.id}")
        return recipient

    def add_processing_location(self, location):
        with self._lock:
            if location.id in self.locations:
                raise ValueError(f"Processing location {location.id} already exists")
            self.locations[location.id] = location
        return location

    def deactivate_processing_location(self, location_id):
        with self._lock:
            existing = self.locations[location_id]
            deactivated = replace(existing, is_active=False)
            self.locations[location_id] = deactivated
        return deactivated

    @contextmanager
    def transaction(self):
        with self._lock:
            yield
