from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.api.identity import get_current_user
from tumi.api.problem_details import problem_details
from tumi.domain.registrations import schemas, service
from tumi.domain.registrations.statuses import NEXT_STEP_FORM
from tumi.domain.users.db_models import User
from tumi.infra.db import get_db_session

router = APIRouter(tags=["registration"])


@router.get("/v1/registration/status", response_model=schemas.RegistrationResponse)
async def registration_status(
    request: Request,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.RegistrationResponse | JSONResponse:
    registration = await service.get_registration(session, user.id)
    if registration is None:
        return problem_details(
            request=request,
            status=status.HTTP_404_NOT_FOUND,
            title="Not Found",
            detail="No registration submitted",
            extensions={"next": NEXT_STEP_FORM},
        )
    return schemas.RegistrationResponse.model_validate(registration)


@router.post(
    "/v1/registration",
    response_model=schemas.RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_registration(
    payload: schemas.RegistrationSubmitRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.RegistrationResponse:
    registration = await service.submit_registration(session, user.id, payload.data)
    await session.commit()
    return schemas.RegistrationResponse.model_validate(registration)
