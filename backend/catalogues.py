from __future__ import annotations

from fastapi import APIRouter, Depends

from auth import get_current_user
from database import InformationAssetDatabaseService, SoAControlDatabaseService
from dependencies import raise_for_result, require_risk_id
from models import APIResponse
from relationships import as_list

router = APIRouter(prefix="/api", tags=["catalogues"])


@router.get("/information-assets", response_model=APIResponse)
async def list_information_assets(current_user=Depends(get_current_user)):
    result = raise_for_result(await InformationAssetDatabaseService.list_assets())
    return APIResponse(success=True, data=result.data)


@router.get("/compliance/soa", response_model=APIResponse)
async def list_soa_controls(current_user=Depends(get_current_user)):
    result = raise_for_result(await SoAControlDatabaseService.list_controls())
    # Older records keep justification/relatedRisks as scalars
    controls = [
        {**control, "justification": as_list(control.get("justification")), "relatedRisks": as_list(control.get("relatedRisks"))}
        for control in result.data
    ]
    return APIResponse(success=True, data=controls)


@router.get("/soa-controls/by-risk/{risk_id}", response_model=APIResponse)
async def list_soa_controls_for_risk(risk_id: str, current_user=Depends(get_current_user)):
    risk_id = require_risk_id(risk_id)
    result = raise_for_result(await SoAControlDatabaseService.find_by_risk(risk_id))
    return APIResponse(success=True, data=result.data)
