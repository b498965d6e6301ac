"""
Hard failures.

Domain-rule violations are never raised; they travel in ValidationResult.
Everything here signals caller misuse, missing required configuration or an
aborted scan.
"""
from typing import Optional

from transferguard.models.validation_result import ValidationResult


class TransferGuardError(Exception):
    pass


class RecipientNotFoundError(TransferGuardError):
    def __init__(self, recipient_id: str, organization_id: Optional[str] = None):
        self.recipient_id = recipient_id
        self.organization_id = organization_id
        scope = f" in organization {organization_id}" if organization_id else ""
        super().__init__(f"Recipient {recipient_id} not found{scope}")


class OrganizationNotFoundError(TransferGuardError):
    def __init__(self, organization_id: str):
        self.organization_id = organization_id
        super().__init__(f"Organization {organization_id} not found")


class ActivityNotFoundError(TransferGuardError):
    def __init__(self, activity_id: str):
        self.activity_id = activity_id
        super().__init__(f"Processing activity {activity_id} not found")


class CountryNotFoundError(TransferGuardError):
    def __init__(self, country_id: str):
        self.country_id = country_id
        super().__init__(f"Country {country_id} not found")


class LocationNotFoundError(TransferGuardError):
    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Processing location {location_id} not found")


class MissingHeadquartersCountryError(TransferGuardError):
    def __init__(self, organization_id: str):
        self.organization_id = organization_id
        super().__init__(
            f"Organization {organization_id} has no headquarters country set. "
            "Set the organization's headquarters country to enable cross-border transfer analysis."
        )


class CrossTenantAccessError(TransferGuardError):
    """A traversal step returned data owned by another organization."""


class HierarchyValidationError(TransferGuardError):
    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.errors) or "Recipient validation failed")


class TransferMechanismRequiredError(TransferGuardError):
    pass


class ScanCancelledError(TransferGuardError):
    pass


class UnclassifiedTransferError(TransferGuardError, AssertionError):
    """
    Raised when an origin/destination pair falls through every risk branch.
    """
