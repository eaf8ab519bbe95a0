from typing import Annotated

from fastapi import Depends, HTTPException, Request

from apps.helpdesk.lifecycle import TicketLifecycleService


async def get_lifecycle_service(request: Request) -> TicketLifecycleService:
    service = getattr(request.app.state, "lifecycle_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Lifecycle service is not available")
    return service


LifecycleServiceDep = Annotated[TicketLifecycleService, Depends(get_lifecycle_service)]
