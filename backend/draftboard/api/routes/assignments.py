"""Winner assignment API routes."""

from typing import List

from fastapi import APIRouter, Depends

from draftboard.api.dependencies import get_services
from draftboard.container import Services
from draftboard.schemas import ActionResponse, AssignmentEventResponse

router = APIRouter(prefix="/reward-assignments", tags=["Winners"])


@router.delete("/{assignment_id}", response_model=ActionResponse)
async def unassign_reward(assignment_id: str, services: Services = Depends(get_services)):
    """Remove a winner whose payout has not started."""
    await services.assignments.unassign(assignment_id)
    return ActionResponse(success=True, message=f"Removed assignment {assignment_id}")


@router.get("/{assignment_id}/events", response_model=List[AssignmentEventResponse])
async def list_assignment_events(assignment_id: str, services: Services = Depends(get_services)):
    """Audit trail of an assignment, oldest first."""
    await services.assignments.get_assignment(assignment_id)
    return await services.assignments.list_events(assignment_id)
