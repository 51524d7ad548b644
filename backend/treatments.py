from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from auth import get_current_user
from database import TreatmentDatabaseService
from dependencies import raise_for_result, require_risk_id
from models import APIResponse, ExtensionRequest, TreatmentCreate, TreatmentUpdate

router = APIRouter(prefix="/api/treatments", tags=["treatments"])


@router.get("", response_model=APIResponse)
async def list_treatments(riskId: Optional[str] = None, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(riskId) if riskId is not None else None
    result = raise_for_result(await TreatmentDatabaseService.list_treatments(risk_id))
    return APIResponse(success=True, data=result.data)


@router.post("", response_model=APIResponse, status_code=201)
async def create_treatment(payload: TreatmentCreate, current_user=Depends(get_current_user)):
    result = raise_for_result(await TreatmentDatabaseService.create_treatment(payload.model_dump(exclude_none=True)))
    return APIResponse(success=True, data=result.data, message=result.message)


@router.get("/{risk_id}", response_model=APIResponse)
async def list_treatments_for_risk(risk_id: str, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(await TreatmentDatabaseService.list_treatments(risk_id))
    return APIResponse(success=True, data=result.data)


@router.get("/{risk_id}/{treatment_id}", response_model=APIResponse)
async def get_treatment(risk_id: str, treatment_id: str, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(await TreatmentDatabaseService.get_treatment(risk_id, treatment_id))
    return APIResponse(success=True, data=result.data)


@router.put("/{risk_id}/{treatment_id}", response_model=APIResponse)
async def update_treatment(
    risk_id: str,
    treatment_id: str,
    payload: TreatmentUpdate,
    current_user=Depends(get_current_user),
):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(
        await TreatmentDatabaseService.update_treatment(risk_id, treatment_id, payload.model_dump(exclude_unset=True))
    )
    return APIResponse(success=True, data=result.data, message=result.message)


@router.post("/{risk_id}/{treatment_id}/extensions", response_model=APIResponse)
async def request_extension(
    risk_id: str,
    treatment_id: str,
    payload: ExtensionRequest,
    current_user=Depends(get_current_user),
):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(
        await TreatmentDatabaseService.request_extension(
            risk_id, treatment_id, payload.extendedDueDate, payload.justification
        )
    )
    return APIResponse(success=True, data=result.data, message=result.message)
