"""
Contracts API.

Admin routes (create, list, send, cancel, amend, record signature) sit behind
the X-API-KEY check applied app-wide in src/api/main.py. The /sign/{token}
routes are reachable with the signing token alone.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.contract_lifecycle.errors import (
    ContractError,
    ContractExpired,
    ContractNotFound,
    ContractNotSignable,
    ContractValidationError,
    CreationFailed,
    InvalidToken,
    InvalidTransition,
    StorageUnavailable,
    VersionLocked,
)
from src.contract_lifecycle.models import (
    ContractAmendment,
    ContractRecord,
    ContractStatus,
    DealSnapshot,
    Signature,
    SignatureMethod,
    SignatureOrigin,
    SignatureResult,
    SignerInfo,
    SignerType,
    SpeakerInfo,
)
from src.contract_lifecycle.service import ContractService
from src.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

api = APIRouter()
contracts_api = api

# Set by src/api/main.py at startup (tests may override get_contract_service).
contract_service: Optional[ContractService] = None

error_handler = ErrorHandler()

GENERIC_NOT_FOUND = "Contract not found or invalid token"

_ERROR_STATUS = (
    (ContractValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ContractNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidToken, status.HTTP_404_NOT_FOUND),
    (ContractNotSignable, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (VersionLocked, status.HTTP_409_CONFLICT),
    (ContractExpired, status.HTTP_410_GONE),
    (StorageUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (CreationFailed, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def get_contract_service() -> ContractService:
    if contract_service is None:
        raise HTTPException(status_code=503, detail="Contract service is not configured")
    return contract_service


# --------------------------------------------------------------------------- #
# Request models
# --------------------------------------------------------------------------- #
class DealPayload(BaseModel):
    client_name: str = ""
    client_email: str = ""
    event_title: str = ""
    event_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    event_location: str = ""
    deal_value: float = 0
    deal_id: Optional[str] = None
    company: Optional[str] = None
    client_phone: Optional[str] = None
    event_type: Optional[str] = Field(default=None, description="virtual, webinar and online select the virtual template")
    attendee_count: Optional[int] = None
    speaker_requested: Optional[str] = None
    currency: Optional[str] = None
    event_platform: Optional[str] = None
    event_timezone: Optional[str] = None
    presentation_duration: Optional[str] = None
    recording_usage: Optional[str] = None
    recording_permission: Optional[str] = None
    recording_distribution: Optional[str] = None
    recording_usage_period: Optional[str] = None
    governing_law: Optional[str] = None
    travel_required: bool = False
    flight_required: bool = False
    flight_class: Optional[str] = None
    hotel_required: bool = False
    hotel_dates: Optional[str] = None
    airport_transfers: Optional[str] = None
    local_transportation: Optional[str] = None
    travel_stipend: Optional[float] = None
    travel_stipend_coverage: Optional[str] = None


class SpeakerPayload(BaseModel):
    name: str
    email: Optional[str] = None
    fee: Optional[float] = None


class SignerPayload(BaseModel):
    name: str
    email: str
    title: Optional[str] = None


class CreateContractRequest(BaseModel):
    deal: DealPayload
    speaker: Optional[SpeakerPayload] = None
    client_signer: Optional[SignerPayload] = None
    additional_terms: Optional[str] = None
    created_by: Optional[str] = None


class AmendContractRequest(BaseModel):
    changes_summary: str = Field(..., min_length=1)
    amended_by: Optional[str] = None
    title: Optional[str] = None
    fee_amount: Optional[float] = None
    payment_terms: Optional[str] = None
    additional_terms: Optional[str] = None
    event_title: Optional[str] = None
    event_date: Optional[str] = None
    event_location: Optional[str] = None
    speaker_fee: Optional[float] = None


class SignRequest(BaseModel):
    signer_name: str = Field(..., min_length=1)
    signer_email: str = Field(..., min_length=3)
    signer_title: Optional[str] = None
    signature_data: Optional[str] = Field(default=None, description="Signature image as a data URL")
    method: SignatureMethod = SignatureMethod.DIGITAL_PAD


class AdminSignatureRequest(SignRequest):
    signer_type: SignerType


# --------------------------------------------------------------------------- #
# Serialization
# --------------------------------------------------------------------------- #
def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _contract_to_dict(contract: ContractRecord, service: ContractService, include_links: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": contract.id,
        "contract_number": contract.contract_number,
        "title": contract.title,
        "type": contract.contract_type,
        "modality": contract.modality.value,
        "status": contract.status.value,
        "fee_amount": contract.fee_amount,
        "currency": contract.currency,
        "payment_terms": contract.payment_terms,
        "additional_terms": contract.additional_terms,
        "event": {
            "title": contract.event.title,
            "date": _iso(contract.event.date),
            "location": contract.event.location,
            "type": contract.event.type,
        },
        "client": {
            "name": contract.client.name,
            "email": contract.client.email,
            "company": contract.client.company,
        },
        "speaker": {
            "name": contract.speaker.name,
            "email": contract.speaker.email,
            "fee": contract.speaker.fee,
        },
        "deal_id": contract.deal_id,
        "generated_at": _iso(contract.generated_at),
        "sent_at": _iso(contract.sent_at),
        "client_signed_at": _iso(contract.client_signed_at),
        "speaker_signed_at": _iso(contract.speaker_signed_at),
        "completed_at": _iso(contract.completed_at),
        "expires_at": _iso(contract.expires_at),
    }
    if include_links:
        cfg = service.config
        data["links"] = {
            "client_signing": cfg.signing_link(contract.client_signing_token),
            "speaker_signing": cfg.signing_link(contract.speaker_signing_token),
            "view": cfg.view_link(contract.access_token),
        }
    return data


def _signature_to_dict(signature: Signature) -> Dict[str, Any]:
    return {
        "id": signature.id,
        "signer_type": signature.signer_type.value,
        "signer_name": signature.signer_name,
        "signer_email": signature.signer_email,
        "signer_title": signature.signer_title,
        "method": signature.method.value,
        "signed_at": _iso(signature.signed_at),
        "verified": signature.verified,
    }


def _result_to_dict(result: SignatureResult) -> Dict[str, Any]:
    return {
        "success": True,
        "signature_id": result.signature_id,
        "contract_fully_executed": result.contract_fully_executed,
        "status": result.contract.status.value,
    }


def _origin(request: Request) -> SignatureOrigin:
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else request.headers.get("x-real-ip")
    if not ip and request.client is not None:
        ip = request.client.host
    return SignatureOrigin(ip_address=ip or None, user_agent=request.headers.get("user-agent"))


def _signer(payload: SignRequest) -> SignerInfo:
    return SignerInfo(name=payload.signer_name, email=payload.signer_email, title=payload.signer_title)


# --------------------------------------------------------------------------- #
# Admin routes
# --------------------------------------------------------------------------- #
@api.post("", status_code=status.HTTP_201_CREATED, tags=["Contracts"])
def create_contract(payload: CreateContractRequest, service: ContractService = Depends(get_contract_service)):
    deal = DealSnapshot(**payload.deal.model_dump())
    speaker = SpeakerInfo(**payload.speaker.model_dump()) if payload.speaker else None
    client_signer = SignerInfo(**payload.client_signer.model_dump()) if payload.client_signer else None
    contract = service.create_contract(
        deal,
        speaker=speaker,
        additional_terms=payload.additional_terms,
        client_signer=client_signer,
        created_by=payload.created_by,
    )
    return _contract_to_dict(contract, service, include_links=True)


@api.get("", tags=["Contracts"])
def list_contracts(
    status_filter: Optional[ContractStatus] = Query(default=None, alias="status"),
    service: ContractService = Depends(get_contract_service),
):
    return [_contract_to_dict(c, service) for c in service.list_contracts(status=status_filter)]


@api.get("/{contract_id}", tags=["Contracts"])
def get_contract(contract_id: str, service: ContractService = Depends(get_contract_service)):
    contract = service.get_contract(contract_id)
    data = _contract_to_dict(contract, service, include_links=True)
    data["signatures"] = [_signature_to_dict(s) for s in service.list_signatures(contract_id)]
    data["versions"] = [
        {
            "version_number": v.version_number,
            "changes_summary": v.changes_summary,
            "created_by": v.created_by,
            "created_at": _iso(v.created_at),
        }
        for v in service.list_versions(contract_id)
    ]
    return data


@api.get("/{contract_id}/render", tags=["Contracts"])
def render_contract(contract_id: str, service: ContractService = Depends(get_contract_service)):
    rendered = service.render_contract(service.get_contract(contract_id))
    return {"text": rendered.text, "html": rendered.html}


@api.post("/{contract_id}/send", tags=["Contracts"])
def send_contract(contract_id: str, service: ContractService = Depends(get_contract_service)):
    return _contract_to_dict(service.dispatch_for_signature(contract_id), service)


@api.post("/{contract_id}/cancel", tags=["Contracts"])
def cancel_contract(contract_id: str, service: ContractService = Depends(get_contract_service)):
    return _contract_to_dict(service.cancel_contract(contract_id), service)


@api.post("/{contract_id}/amend", tags=["Contracts"])
def amend_contract(
    contract_id: str,
    payload: AmendContractRequest,
    service: ContractService = Depends(get_contract_service),
):
    amendment = ContractAmendment(**payload.model_dump(exclude={"changes_summary", "amended_by"}))
    contract = service.amend_contract(contract_id, amendment, payload.changes_summary, payload.amended_by)
    return _contract_to_dict(contract, service)


@api.post("/{contract_id}/signatures", status_code=status.HTTP_201_CREATED, tags=["Contracts"])
def record_signature(
    contract_id: str,
    payload: AdminSignatureRequest,
    request: Request,
    service: ContractService = Depends(get_contract_service),
):
    result = service.record_signature(
        contract_id,
        payload.signer_type,
        _signer(payload),
        payload.signature_data,
        _origin(request),
        method=payload.method,
    )
    return _result_to_dict(result)


# --------------------------------------------------------------------------- #
# Token routes
# --------------------------------------------------------------------------- #
@api.get("/sign/{token}", tags=["Signing"])
def get_signing_view(token: str, service: ContractService = Depends(get_contract_service)):
    view = service.get_signing_view(token)
    rendered = service.render_contract(view.contract)
    return {
        "contract": _contract_to_dict(view.contract, service),
        "signer_type": view.signer_type.value,
        "can_sign": view.can_sign,
        "expired": view.expired,
        "signatures": [
            {
                "signer_type": s.signer_type.value,
                "signer_name": s.signer_name,
                "signed_at": _iso(s.signed_at),
            }
            for s in view.signatures
        ],
        "html": rendered.html,
    }


@api.post("/sign/{token}", tags=["Signing"])
def sign_contract(
    token: str,
    payload: SignRequest,
    request: Request,
    service: ContractService = Depends(get_contract_service),
):
    result = service.sign_with_token(
        token,
        _signer(payload),
        payload.signature_data,
        _origin(request),
        method=payload.method,
    )
    return _result_to_dict(result)


# --------------------------------------------------------------------------- #
# Error mapping
# --------------------------------------------------------------------------- #
def status_for(exc: ContractError) -> Optional[int]:
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return None


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ContractError)
    async def _contract_error(request: Request, exc: ContractError):
        code = status_for(exc)
        if code is None:
            return JSONResponse(status_code=500, content=error_handler.handle_exception(exc, {"path": request.url.path}))

        if code == status.HTTP_404_NOT_FOUND:
            body: Dict[str, Any] = {"detail": GENERIC_NOT_FOUND}
        else:
            body = {"detail": exc.message}
        if isinstance(exc, ContractValidationError):
            body["errors"] = list(exc.errors)
        if code >= 500:
            logger.error("Contract request failed: %s", exc.message)
        return JSONResponse(status_code=code, content=body)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        return JSONResponse(status_code=500, content=error_handler.handle_exception(exc, {"path": request.url.path}))
