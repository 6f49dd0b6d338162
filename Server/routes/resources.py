"""
LabQueue Server - Workstation Endpoints

This module contains endpoints for registering and listing workstations.
"""

from typing import List
from fastapi import APIRouter, Depends, Query, status

from models.api import RegisterResourceRequest, ResourceResponse, ResourceStatus, UsageSessionResponse
from exceptions import LabQueueError
from database import GetLabService
from lab_service import LabService
from routes.errors import ToHttpException
from routes.sessions import BuildSessionResponse


# Create router instance
router = APIRouter()


# ==================== Workstation Endpoints ====================

@router.post(
    "/resources",
    response_model=ResourceResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Resources"]
)
async def register_resource(request: RegisterResourceRequest, lab_service: LabService = Depends(GetLabService)):
    """
    Register a new workstation (free, offered to the queue immediately)

    Raises:
        HTTPException: 422 if the display name is empty
    """
    try:
        resource = lab_service.RegisterResource(request.display_name, request.location)
    except LabQueueError as e:
        raise ToHttpException(e, "Register workstation")

    return ResourceResponse.model_validate(resource)


@router.get("/resources", response_model=List[ResourceStatus], tags=["Resources"])
async def list_resources(lab_service: LabService = Depends(GetLabService)):
    """
    List every workstation with whoever holds or occupies it
    """
    return [ResourceStatus(**resource) for resource in lab_service.ListResources()]


@router.get("/resources/{resource_id}/sessions", response_model=List[UsageSessionResponse], tags=["Resources"])
async def get_resource_usage_history(
    resource_id: int,
    limit: int = Query(50, ge=1, le=500),
    lab_service: LabService = Depends(GetLabService)
):
    """
    Get the sessions run on a workstation, newest first

    Raises:
        HTTPException: 404 if the workstation does not exist
    """
    try:
        history = lab_service.GetResourceUsageHistory(resource_id, limit)
    except LabQueueError as e:
        raise ToHttpException(e, "Workstation history")

    now = lab_service.Now()
    return [BuildSessionResponse(usage, now) for usage in history]
