"""Command Submission Route - one endpoint for every lifecycle command"""
from fastapi import APIRouter, Depends

from ..deps import get_audit_context_dep, get_current_user_dep, get_request_service_dep
from ...domain.models import ActorContext, AuditRequestContext, CommandEnvelope, CommandResult
from ...services.request_service import RequestService

router = APIRouter()


@router.post("", response_model=CommandResult)
async def submit_command(
    envelope: CommandEnvelope,
    actor: ActorContext = Depends(get_current_user_dep),
    context: AuditRequestContext = Depends(get_audit_context_dep),
    service: RequestService = Depends(get_request_service_dep)
):
    """
    Submit a command envelope {request_id, command, payload}.

    Always answers 200 with a CommandResult; a rejected command carries
    success=false plus its error kind and message class.
    """
    return service.submit_command(envelope, actor, context)
