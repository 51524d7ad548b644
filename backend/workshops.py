from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from auth import get_current_user
from database import WorkshopDatabaseService
from dependencies import raise_for_result, require_risk_id
from models import AgendaRequest, APIResponse, WorkshopCreate, WorkshopUpdate
from relationships import validate_minutes_sections

router = APIRouter(prefix="/api/workshops", tags=["workshops"])


def _check_minutes(payload: dict) -> None:
    error = validate_minutes_sections(payload)
    if error:
        raise HTTPException(status_code=400, detail=error)


@router.get("", response_model=APIResponse)
async def list_workshops(current_user=Depends(get_current_user)):
    result = raise_for_result(await WorkshopDatabaseService.list_workshops())
    return APIResponse(success=True, data=result.data)


@router.post("", response_model=APIResponse, status_code=201)
async def create_workshop(payload: WorkshopCreate, current_user=Depends(get_current_user)):
    document = payload.model_dump(exclude_none=True)
    _check_minutes(document)
    result = raise_for_result(await WorkshopDatabaseService.create_workshop(document))
    return APIResponse(success=True, data=result.data, message=result.message)


@router.get("/{workshop_id}", response_model=APIResponse)
async def get_workshop(workshop_id: str, current_user=Depends(get_current_user)):
    result = raise_for_result(await WorkshopDatabaseService.get_workshop(workshop_id))
    return APIResponse(success=True, data=result.data)


@router.put("/{workshop_id}", response_model=APIResponse)
async def update_workshop(workshop_id: str, payload: WorkshopUpdate, current_user=Depends(get_current_user)):
    changes = payload.model_dump(exclude_unset=True)
    removed = changes.pop("removed", None) or {}
    _check_minutes(changes)
    result = raise_for_result(await WorkshopDatabaseService.update_workshop(workshop_id, changes, removed))
    return APIResponse(success=True, data=result.data, message=result.message)


@router.post("/{workshop_id}/agenda", response_model=APIResponse)
async def add_risk_to_agenda(workshop_id: str, payload: AgendaRequest, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(payload.riskId)
    result = raise_for_result(
        await WorkshopDatabaseService.add_agenda_item(
            workshop_id, risk_id, payload.topic, payload.selectedTreatments
        )
    )
    return APIResponse(success=True, data=result.data, message=result.message)
