from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from auth import get_current_user
from database import CommentDatabaseService, RiskDatabaseService
from dependencies import raise_for_result, require_risk_id
from models import APIResponse, CommentRequest, ControlReferenceRequest, RiskCreate, RiskUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/risks", tags=["risks"])


@router.get("", response_model=APIResponse)
async def list_risks(current_user=Depends(get_current_user)):
    result = raise_for_result(await RiskDatabaseService.list_risks())
    return APIResponse(success=True, data=result.data)


@router.post("", response_model=APIResponse, status_code=201)
async def create_risk(payload: RiskCreate, current_user=Depends(get_current_user)):
    result = raise_for_result(await RiskDatabaseService.create_risk(payload.model_dump(exclude_none=True)))
    return APIResponse(success=True, data=result.data, message=result.message)


@router.get("/next-id", response_model=APIResponse)
async def get_next_risk_id(current_user=Depends(get_current_user)):
    result = await RiskDatabaseService.get_next_risk_id()
    return APIResponse(success=True, data=result.data, message=result.message)


@router.get("/{risk_id}", response_model=APIResponse)
async def get_risk(risk_id: str, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(await RiskDatabaseService.get_risk(risk_id))
    return APIResponse(success=True, data=result.data)


@router.put("/{risk_id}", response_model=APIResponse)
async def update_risk(risk_id: str, payload: RiskUpdate, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(risk_id)
    changes = payload.model_dump(exclude_unset=True)
    result = raise_for_result(await RiskDatabaseService.update_risk(risk_id, changes))
    return APIResponse(success=True, data=result.data, message=result.message)


@router.post("/{risk_id}/controls/{list_name}", response_model=APIResponse)
async def add_control_reference(
    risk_id: str, list_name: str, payload: ControlReferenceRequest, current_user=Depends(get_current_user)
):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(
        await RiskDatabaseService.set_control_reference(risk_id, list_name, payload.controlId, selected=True)
    )
    return APIResponse(success=True, data=result.data, message=result.message)


@router.delete("/{risk_id}/controls/{list_name}/{control_id}", response_model=APIResponse)
async def remove_control_reference(
    risk_id: str, list_name: str, control_id: str, current_user=Depends(get_current_user)
):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(
        await RiskDatabaseService.set_control_reference(risk_id, list_name, control_id, selected=False)
    )
    return APIResponse(success=True, data=result.data, message=result.message)


@router.get("/{risk_id}/comments", response_model=APIResponse)
async def list_comments(risk_id: str, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(await CommentDatabaseService.list_comments(risk_id))
    return APIResponse(success=True, data=result.data)


@router.post("/{risk_id}/comments", response_model=APIResponse, status_code=201)
async def create_comment(risk_id: str, payload: CommentRequest, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(
        await CommentDatabaseService.create_comment(risk_id, payload.content, current_user.get("username"))
    )
    return APIResponse(success=True, data=result.data, message=result.message)


@router.post("/{risk_id}/comments/{comment_id}/replies", response_model=APIResponse, status_code=201)
async def add_reply(risk_id: str, comment_id: str, payload: CommentRequest, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(
        await CommentDatabaseService.add_reply(risk_id, comment_id, payload.content, current_user.get("username"))
    )
    return APIResponse(success=True, data=result.data, message=result.message)
