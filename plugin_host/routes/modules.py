"""
Module Routes

GET    /api/v1/modules/available                → enabled module plugins
GET    /api/v1/modules/course/{course_id}       → course sections with their modules
POST   /api/v1/modules                          → create an activity instance
PATCH  /api/v1/modules/{cm_id}                  → update an activity instance
DELETE /api/v1/modules/{cm_id}                  → delete an activity instance
GET    /api/v1/modules/{cm_id}/view             → rendered activity view
GET    /api/v1/modules/{cm_id}/access           → can the user open the activity
GET    /api/v1/modules/{cm_id}/completion       → completion status of a user
POST   /api/v1/modules/{cm_id}/completion       → record completion
POST   /api/v1/modules/ajax/{module}/{action}   → plugin ajax action
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Response, status

from plugin_host.dependencies import get_module_service
from plugin_host.schemas.course_module import (
    AccessResponse,
    AjaxRequest,
    AvailableModule,
    CompletionStatus,
    CompletionUpdate,
    CourseModuleResponse,
    ModuleInstanceCreate,
    ModuleInstanceRefResponse,
    ModuleInstanceUpdate,
    SectionListing,
    ViewResponse,
)
from plugin_host.services.module_service import ModuleService

router = APIRouter(tags=["Modules"])
logger = logging.getLogger(__name__)


# ── Listings ───────────────────────────────────────────────────────────────────


@router.get("/available", response_model=list[AvailableModule])
async def list_available_modules(service: ModuleService = Depends(get_module_service)):
    return await service.available_modules()


@router.get("/course/{course_id}", response_model=list[SectionListing])
async def list_course_modules(
    course_id: int,
    include_hidden: bool = False,
    service: ModuleService = Depends(get_module_service),
):
    return await service.list_course_modules(course_id, include_hidden=include_hidden)


# ── Instances ──────────────────────────────────────────────────────────────────


@router.post("/", response_model=ModuleInstanceRefResponse, status_code=status.HTTP_201_CREATED)
async def create_module_instance(
    payload: ModuleInstanceCreate,
    service: ModuleService = Depends(get_module_service),
) -> ModuleInstanceRefResponse:
    ref = await service.create_instance(payload.module, payload.course_id, payload.section_id, payload.data)
    return ModuleInstanceRefResponse(
        instance_id=ref.instance_id, course_module_id=ref.course_module_id, module=ref.module
    )


@router.get("/{course_module_id}", response_model=CourseModuleResponse)
async def get_course_module(course_module_id: int, service: ModuleService = Depends(get_module_service)):
    return await service.get_course_module(course_module_id)


@router.patch("/{course_module_id}", response_model=CourseModuleResponse)
async def update_module_instance(
    course_module_id: int,
    payload: ModuleInstanceUpdate,
    service: ModuleService = Depends(get_module_service),
):
    """Only fields present in the request body are changed."""
    fields = payload.model_dump(exclude_unset=True, exclude={"data"})
    data: dict[str, Any] = {**payload.data, **fields}
    return await service.update_instance(course_module_id, data)


@router.delete("/{course_module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_module_instance(
    course_module_id: int,
    service: ModuleService = Depends(get_module_service),
) -> Response:
    await service.delete_instance(course_module_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Views & ajax ───────────────────────────────────────────────────────────────


@router.get("/{course_module_id}/view", response_model=ViewResponse)
async def view_module(
    course_module_id: int,
    user_id: int,
    service: ModuleService = Depends(get_module_service),
) -> ViewResponse:
    html = await service.get_view(course_module_id, user_id)
    return ViewResponse(course_module_id=course_module_id, html=html)


@router.post("/ajax/{module}/{action}")
async def module_ajax(
    module: str,
    action: str,
    payload: AjaxRequest,
    service: ModuleService = Depends(get_module_service),
) -> dict[str, Any]:
    return await service.handle_ajax(module, action, payload.params)


# ── Completion & access ────────────────────────────────────────────────────────


@router.get("/{course_module_id}/access", response_model=AccessResponse)
async def check_access(
    course_module_id: int,
    user_id: int,
    service: ModuleService = Depends(get_module_service),
) -> AccessResponse:
    allowed = await service.can_access(user_id, course_module_id)
    return AccessResponse(course_module_id=course_module_id, user_id=user_id, can_access=allowed)


@router.get("/{course_module_id}/completion", response_model=CompletionStatus)
async def get_completion(
    course_module_id: int,
    user_id: int,
    service: ModuleService = Depends(get_module_service),
) -> CompletionStatus:
    return CompletionStatus(**await service.get_completion_status(user_id, course_module_id))


@router.post("/{course_module_id}/completion", response_model=CompletionStatus)
async def record_completion(
    course_module_id: int,
    payload: CompletionUpdate,
    service: ModuleService = Depends(get_module_service),
) -> CompletionStatus:
    await service.record_completion(payload.user_id, course_module_id, payload.state)
    return CompletionStatus(**await service.get_completion_status(payload.user_id, course_module_id))
