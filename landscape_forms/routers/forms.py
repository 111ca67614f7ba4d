import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import NoResultFound
from sqlmodel import Session

from landscape_forms.database import get_session
from landscape_forms.models.form import (
    FORM_TYPE_LAWN,
    FORM_TYPE_PESTICIDE,
    FORM_TYPE_SHRUB,
    FormCreated,
    FormList,
    FormPublic,
    LawnFormCreate,
    LawnFormUpdate,
    PesticideFormCreate,
    PesticideFormUpdate,
    ShrubFormCreate,
    ShrubFormUpdate,
)
from landscape_forms.models.user import User
from landscape_forms.services import forms as forms_service
from landscape_forms.services.auth import ApprovedUser
from landscape_forms.services.forms import ListFormsOptions, UnknownChemicalError

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


class FormType(str, Enum):
    shrub = FORM_TYPE_SHRUB
    lawn = FORM_TYPE_LAWN
    pesticide = FORM_TYPE_PESTICIDE


def _parse_chemical_ids(values: List[str]) -> List[int]:
    # Accepts ?chemical_ids=1&chemical_ids=2 as well as ?chemical_ids=1,2
    chemical_ids = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                chemical_ids.append(int(part))
            except ValueError:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                    detail=f"Invalid chemical id: {part}")
    return chemical_ids


def get_list_forms_options(
    limit: int = 0,
    offset: int = 0,
    page: int = 0,
    type: Optional[FormType] = None,
    form_type: Optional[FormType] = None,
    search: Optional[str] = None,
    search_name: Optional[str] = None,
    sort_by: str = forms_service.DEFAULT_SORT,
    order: str = forms_service.DEFAULT_ORDER,
    date_low: Optional[datetime] = None,
    date_high: Optional[datetime] = None,
    zip_code: Optional[str] = None,
    jewish_holiday: Optional[str] = None,
    chemical_ids: Annotated[List[str], Query()] = [],
) -> ListFormsOptions:
    """Collects the list query parameters; page is 1-based and needs a limit.

    Zero or negative limit, offset and page values are ignored.
    """
    if page > 0 and limit > 0:
        offset = (page - 1) * limit

    selected_type = type or form_type
    return ListFormsOptions(
        limit=limit,
        offset=offset,
        form_type=selected_type.value if selected_type else None,
        search_name=search or search_name,
        chemical_ids=_parse_chemical_ids(chemical_ids),
        jewish_holiday=(jewish_holiday or "").lower() or None,
        date_low=date_low,
        date_high=date_high,
        zip_code=zip_code,
        sort_by=sort_by,
        order=order,
    )


ListOptionsDep = Annotated[ListFormsOptions, Depends(get_list_forms_options)]


def list_forms_response(session: Session, owner_id: Optional[uuid.UUID], opts: ListFormsOptions) -> FormList:
    views = forms_service.list_forms(session, owner_id, opts)
    total = forms_service.count_forms(session, owner_id, opts)
    return FormList(forms=[view.to_public() for view in views], count=len(views), total=total)


def _reader_scope(current_user: User) -> Optional[uuid.UUID]:
    # Admins may read every form; writes stay owner-scoped
    return None if current_user.is_admin else current_user.id


def _form_not_found():
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Form not found")


def _unknown_chemical(e: UnknownChemicalError):
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", response_model=FormList)
def read_forms(session: SessionDep, current_user: ApprovedUser, opts: ListOptionsDep):
    return list_forms_response(session, current_user.id, opts)


@router.post("/shrub", response_model=FormCreated, status_code=status.HTTP_201_CREATED)
def create_shrub_form(session: SessionDep, form: ShrubFormCreate, current_user: ApprovedUser):
    try:
        form_id = forms_service.create_shrub_form(session, current_user.id, form)
    except UnknownChemicalError as e:
        raise _unknown_chemical(e)
    return FormCreated(id=form_id)


@router.post("/lawn", response_model=FormCreated, status_code=status.HTTP_201_CREATED)
def create_lawn_form(session: SessionDep, form: LawnFormCreate, current_user: ApprovedUser):
    try:
        form_id = forms_service.create_lawn_form(session, current_user.id, form)
    except UnknownChemicalError as e:
        raise _unknown_chemical(e)
    return FormCreated(id=form_id)


@router.post("/pesticide", response_model=FormCreated, status_code=status.HTTP_201_CREATED)
def create_pesticide_form(session: SessionDep, form: PesticideFormCreate, current_user: ApprovedUser):
    try:
        form_id = forms_service.create_pesticide_form(session, current_user.id, form)
    except UnknownChemicalError as e:
        raise _unknown_chemical(e)
    return FormCreated(id=form_id)


@router.get("/{form_id}", response_model=FormPublic)
def read_form(session: SessionDep, form_id: uuid.UUID, current_user: ApprovedUser):
    try:
        view = forms_service.get_form_view(session, form_id, _reader_scope(current_user))
    except NoResultFound:
        raise _form_not_found()
    return view.to_public()


@router.get("/{form_type}/{form_id}", response_model=FormPublic)
def read_typed_form(session: SessionDep, form_type: FormType, form_id: uuid.UUID, current_user: ApprovedUser):
    try:
        view = forms_service.get_typed_form(session, form_type.value, form_id, _reader_scope(current_user))
    except NoResultFound:
        raise _form_not_found()
    return view.to_public()


def _update(session: Session, form_type: str, form_id: uuid.UUID, current_user: User, form):
    try:
        view = forms_service.update_form(session, form_type, form_id, current_user.id, form)
    except NoResultFound:
        raise _form_not_found()
    except UnknownChemicalError as e:
        raise _unknown_chemical(e)
    return view.to_public()


@router.put("/shrub/{form_id}", response_model=FormPublic)
def update_shrub_form(session: SessionDep, form_id: uuid.UUID, form: ShrubFormUpdate, current_user: ApprovedUser):
    return _update(session, FORM_TYPE_SHRUB, form_id, current_user, form)


@router.put("/lawn/{form_id}", response_model=FormPublic)
def update_lawn_form(session: SessionDep, form_id: uuid.UUID, form: LawnFormUpdate, current_user: ApprovedUser):
    return _update(session, FORM_TYPE_LAWN, form_id, current_user, form)


@router.put("/pesticide/{form_id}", response_model=FormPublic)
def update_pesticide_form(session: SessionDep, form_id: uuid.UUID, form: PesticideFormUpdate,
                          current_user: ApprovedUser):
    return _update(session, FORM_TYPE_PESTICIDE, form_id, current_user, form)


@router.delete("/{form_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_form(form_id: uuid.UUID, session: SessionDep, current_user: ApprovedUser):
    try:
        forms_service.delete_form(session, form_id, current_user.id)
    except NoResultFound:
        raise _form_not_found()
