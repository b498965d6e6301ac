import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from transferguard.exceptions import (
    CountryNotFoundError,
    LocationNotFoundError,
    RecipientNotFoundError,
    TransferMechanismRequiredError,
)
from transferguard.models.recipient import Country, ProcessingLocation
from transferguard.risk.engine import validate_transfer_mechanism_requirement
from transferguard.storage import RecipientStore

logger = logging.getLogger("transferguard.transfers")

_UNSET = object()


class ProcessingLocationService:
    """
    Write path for recipient processing locations.

    Rows are append-mostly: moving a location creates a new row and
    deactivates the old one, preserving the audit trail.
    """

    def __init__(self, store: RecipientStore):
        self.store = store

    def _country(self, country_id: str) -> Country:
        country = self.store.get_country(country_id)
        if country is None:
            raise CountryNotFoundError(country_id)
        return country

    def _check_mechanism(self, organization_id: str, destination: Country,
                         transfer_mechanism_id: Optional[str]) -> None:
        organization = self.store.get_organization(organization_id)
        if organization is None or not organization.headquarters_country_id:
            # Nothing to compare against until a headquarters country is set.
            return

        origin = self.store.get_country(organization.headquarters_country_id)
        if origin is None:
            return

        requirement = validate_transfer_mechanism_requirement(origin, destination, transfer_mechanism_id)
        if not requirement.valid:
            raise TransferMechanismRequiredError(requirement.error)

    def create_location(
        self,
        organization_id: str,
        recipient_id: str,
        country_id: str,
        service: str,
        transfer_mechanism_id: Optional[str] = None,
    ) -> ProcessingLocation:
        with self.store.transaction():
            recipient = self.store.get_recipient_for_organization(recipient_id, organization_id)
            if recipient is None:
                raise RecipientNotFoundError(recipient_id, organization_id)

            destination = self._country(country_id)
            self._check_mechanism(organization_id, destination, transfer_mechanism_id)

            location = self.store.add_processing_location(ProcessingLocation(
                id=str(uuid.uuid4()),
                organization_id=organization_id,
                recipient_id=recipient_id,
                country_id=country_id,
                service=service,
                transfer_mechanism_id=transfer_mechanism_id,
                is_active=True,
                created_at=datetime.now(timezone.utc),
            ))

        logger.info(f"Created processing location {location.id} for recipient {recipient_id}")
        return location

    def move_location(
        self,
        location_id: str,
        country_id: Optional[str] = None,
        service: Optional[str] = None,
        transfer_mechanism_id=_UNSET,
    ) -> ProcessingLocation:
        """
        Replace a location with an updated copy and deactivate the original,
        atomically. Pass transfer_mechanism_id=None to clear the mechanism.
        """
        with self.store.transaction():
            existing = self.store.get_processing_location(location_id)
            if existing is None:
                raise LocationNotFoundError(location_id)

            new_country_id = country_id or existing.country_id
            new_mechanism_id = (
                existing.transfer_mechanism_id if transfer_mechanism_id is _UNSET else transfer_mechanism_id
            )

            if new_country_id != existing.country_id:
                destination = self._country(new_country_id)
                self._check_mechanism(existing.organization_id, destination, new_mechanism_id)

            replacement = self.store.add_processing_location(replace(
                existing,
                id=str(uuid.uuid4()),
                country_id=new_country_id,
                service=service if service is not None else existing.service,
                transfer_mechanism_id=new_mechanism_id,
                is_active=True,
                created_at=datetime.now(timezone.utc),
            ))
            self.store.deactivate_processing_location(existing.id)

        logger.info(f"Moved processing location {location_id} -> {replacement.id}")
        return replacement

    def deactivate_location(self, location_id: str) -> ProcessingLocation:
        with self.store.transaction():
            if self.store.get_processing_location(location_id) is None:
                raise LocationNotFoundError(location_id)
            return self.store.deactivate_processing_location(location_id)
