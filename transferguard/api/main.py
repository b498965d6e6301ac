import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from transferguard.config import get_settings
from transferguard.exceptions import (
    ActivityNotFoundError,
    CountryNotFoundError,
    HierarchyValidationError,
    MissingHeadquartersCountryError,
    OrganizationNotFoundError,
    RecipientNotFoundError,
    ScanCancelledError,
    TransferGuardError,
    TransferMechanismRequiredError,
    UnclassifiedTransferError,
)
from transferguard.hierarchy.health import HierarchyHealthService
from transferguard.hierarchy.validator import HierarchyValidator
from transferguard.models.recipient import RecipientType
from transferguard.risk.engine import validate_transfer_mechanism_requirement
from transferguard.risk.severity import highest_risk_level
from transferguard.runtime.cancellation import CancellationToken
from transferguard.storage import InMemoryRecipientStore, RecipientStore
from transferguard.telemetry import emit_validation_telemetry, init_telemetry
from transferguard.transfers.detection import TransferDetectionService

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
access_logger = logging.getLogger("transferguard.access")

tags_metadata = [
    {"name": "Hierarchy", "description": "Recipient hierarchy validation."},
    {"name": "Transfers", "description": "Cross-border transfer risk detection."},
    {"name": "System", "description": "Health checks and operational metadata."},
]

app = FastAPI(
    title="TransferGuard",
    description="Recipient hierarchy integrity and cross-border transfer risk classification.",
    version="0.1.0",
    openapi_tags=tags_metadata,
)
app.state.store = InMemoryRecipientStore()

init_telemetry()


@app.middleware("http")
async def access_log_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    access_logger.info(
        f"METHOD={request.method} PATH={request.url.path} "
        f"STATUS={response.status_code} DURATION={time.time() - start_time:.4f}s"
    )
    return response


_NOT_FOUND = (
    RecipientNotFoundError,
    OrganizationNotFoundError,
    ActivityNotFoundError,
    CountryNotFoundError,
)


@app.exception_handler(TransferGuardError)
async def transferguard_error_handler(request: Request, exc: TransferGuardError):
    if isinstance(exc, _NOT_FOUND):
        status = 404
    elif isinstance(exc, ScanCancelledError):
        status = 504
    elif isinstance(exc, UnclassifiedTransferError):
        # No classification rule covers this transfer direction.
        status = 422
        access_logger.warning(f"CLASSIFICATION_GAP: {exc}")
    elif isinstance(exc, (MissingHeadquartersCountryError, HierarchyValidationError, TransferMechanismRequiredError)):
        status = 422
    else:
        status = 500
        access_logger.error(f"ENGINE_ERROR: {type(exc).__name__}")
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})


def _store(request: Request) -> RecipientStore:
    return request.app.state.store


def _cancellation() -> CancellationToken:
    return CancellationToken(timeout=settings.scan_timeout_seconds)


# --- DATA MODELS ---

class RecipientValidationRequest(BaseModel):
    recipient_id: str
    organization_id: str
    type: RecipientType
    parent_recipient_id: Optional[str] = None
    external_organization_id: Optional[str] = None


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    warnings: List[str]
    hierarchy_type: Optional[str] = None


class MechanismRequirementRequest(BaseModel):
    origin_country_id: str
    destination_country_id: str
    transfer_mechanism_id: Optional[str] = None


class MechanismRequirementResponse(BaseModel):
    valid: bool
    required: bool
    error: Optional[str] = None


class TransferListResponse(BaseModel):
    organization_id: str
    transfer_count: int
    highest_risk_level: Optional[str] = None
    transfers: List[Dict[str, Any]]


# --- ENDPOINTS ---

@app.post("/recipients/validate", response_model=ValidationResponse, tags=["Hierarchy"])
def validate_recipient(payload: RecipientValidationRequest, request: Request):
    validator = HierarchyValidator(_store(request))

    result = validator.validate_recipient_data(payload.type, payload.external_organization_id)
    if payload.external_organization_id:
        result = result.merge(validator.validate_tenant_ownership(
            payload.organization_id, payload.external_organization_id
        ))
    result = result.merge(validator.validate_recipient_hierarchy(
        payload.recipient_id,
        payload.type,
        payload.parent_recipient_id,
        payload.organization_id,
        _cancellation(),
    ))

    emit_validation_telemetry(result.is_valid, len(result.errors), len(result.warnings))
    hierarchy_type = validator.get_hierarchy_type_for_recipient(payload.type)
    return {
        **result.to_dict(),
        "hierarchy_type": hierarchy_type.value if hierarchy_type else None,
    }


@app.post("/transfers/mechanism-requirement", response_model=MechanismRequirementResponse, tags=["Transfers"])
def mechanism_requirement(payload: MechanismRequirementRequest, request: Request):
    store = _store(request)
    origin = store.get_country(payload.origin_country_id)
    if origin is None:
        raise CountryNotFoundError(payload.origin_country_id)
    destination = store.get_country(payload.destination_country_id)
    if destination is None:
        raise CountryNotFoundError(payload.destination_country_id)

    requirement = validate_transfer_mechanism_requirement(origin, destination, payload.transfer_mechanism_id)
    return {"valid": requirement.valid, "required": requirement.required, "error": requirement.error}


@app.get("/organizations/{organization_id}/transfers", response_model=TransferListResponse, tags=["Transfers"])
def organization_transfers(organization_id: str, request: Request):
    service = TransferDetectionService(_store(request))
    transfers = service.detect_cross_border_transfers(organization_id, _cancellation())
    highest = highest_risk_level(t.transfer_risk.level for t in transfers)
    return {
        "organization_id": organization_id,
        "transfer_count": len(transfers),
        "highest_risk_level": highest.value if highest else None,
        "transfers": [t.to_dict() for t in transfers],
    }


@app.get("/activities/{activity_id}/transfer-analysis", tags=["Transfers"])
def activity_transfer_analysis(activity_id: str, request: Request):
    service = TransferDetectionService(_store(request))
    return service.get_activity_transfer_analysis(activity_id, _cancellation()).to_dict()


@app.get("/organizations/{organization_id}/hierarchy-health", tags=["Hierarchy"])
def hierarchy_health(organization_id: str, request: Request):
    store = _store(request)
    if store.get_organization(organization_id) is None:
        raise OrganizationNotFoundError(organization_id)
    report = HierarchyHealthService(store).check_hierarchy_health(organization_id, _cancellation())
    return report.to_dict()


@app.get("/organizations/{organization_id}/recipient-statistics", tags=["Hierarchy"])
def recipient_statistics(organization_id: str, request: Request):
    store = _store(request)
    if store.get_organization(organization_id) is None:
        raise OrganizationNotFoundError(organization_id)
    return HierarchyHealthService(store).get_recipient_statistics(organization_id).to_dict()


@app.get("/health", tags=["System"])
def health():
    return {
        "status": "online",
        "modules": ["RuleTable", "Traversal", "Validator", "HierarchyHealth", "RiskEngine", "TransferDetection"],
    }
