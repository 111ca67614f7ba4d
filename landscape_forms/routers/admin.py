from typing import Annotated

from fastapi import APIRouter, Depends
from sqlmodel import Session

from landscape_forms.database import get_session
from landscape_forms.models.form import FormList
from landscape_forms.routers import chemicals
from landscape_forms.routers.forms import ListOptionsDep, list_forms_response
from landscape_forms.services.auth import AdminUser

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


@router.get("/forms", response_model=FormList)
def read_all_forms(session: SessionDep, current_user: AdminUser, opts: ListOptionsDep):
    """Lists forms across every owner."""
    return list_forms_response(session, None, opts)


router.include_router(chemicals.admin_router, prefix="/chemicals", tags=["chemicals"])
