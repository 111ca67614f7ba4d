from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import NoResultFound
from sqlmodel import Session

from landscape_forms.database import get_session
from landscape_forms.models.chemical import ChemicalCreate, ChemicalList, ChemicalPublic
from landscape_forms.services import chemicals as chemicals_service
from landscape_forms.services.auth import AdminUser, ApprovedUser

router = APIRouter()
admin_router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]

Category = Literal["lawn", "shrub"]


def _chemical_list(session: Session, category: Optional[str] = None) -> ChemicalList:
    chemicals = chemicals_service.list_chemicals(session, category)
    return ChemicalList(
        chemicals=[ChemicalPublic.model_validate(chemical) for chemical in chemicals],
        count=len(chemicals),
    )


@router.get("", response_model=ChemicalList)
def read_chemicals(session: SessionDep, current_user: ApprovedUser, category: Optional[Category] = None):
    return _chemical_list(session, category)


@router.get("/category/{category}", response_model=ChemicalList)
def read_chemicals_by_category(session: SessionDep, category: Category, current_user: ApprovedUser):
    return _chemical_list(session, category)


@admin_router.post("", response_model=ChemicalPublic, status_code=status.HTTP_201_CREATED)
def create_chemical(session: SessionDep, chemical: ChemicalCreate, current_user: AdminUser):
    return chemicals_service.create_chemical(session, chemical)


@admin_router.put("/{chemical_id}", response_model=ChemicalPublic)
def update_chemical(session: SessionDep, chemical_id: int, chemical: ChemicalCreate, current_user: AdminUser):
    try:
        return chemicals_service.update_chemical(session, chemical_id, chemical)
    except NoResultFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chemical not found")


@admin_router.delete("/{chemical_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_chemical(chemical_id: int, session: SessionDep, current_user: AdminUser):
    try:
        chemicals_service.delete_chemical(session, chemical_id)
    except NoResultFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chemical not found")
    except chemicals_service.ChemicalInUseError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
