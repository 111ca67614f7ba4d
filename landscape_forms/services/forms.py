"""Persistence for landscape forms.

Every read and write that takes an ``owner_id`` is scoped to that user at the
SQL level. A form that does not exist and a form owned by somebody else look
the same to the caller: both raise ``sqlalchemy.exc.NoResultFound``.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

import sqlalchemy as sa
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from landscape_forms.models.chemical import Chemical
from landscape_forms.models.form import (
    DETAILS_FIELDS,
    DETAILS_MODELS,
    FORM_TYPE_LAWN,
    FORM_TYPE_PESTICIDE,
    FORM_TYPE_SHRUB,
    FORM_TYPES,
    Form,
    FormFields,
    FormPublic,
    LawnDetails,
    PestApp,
    PestAppCreate,
    PesticideDetails,
    ShrubDetails,
)

logger = logging.getLogger(__name__)

FORM_FIELDS = set(FormFields.model_fields)

DEFAULT_SORT = "created_at"
DEFAULT_ORDER = "DESC"


class FormIntegrityError(Exception):
    """A stored form does not match any known form type."""


class UnknownChemicalError(ValueError):
    def __init__(self, chemical_ids):
        self.chemical_ids = sorted(chemical_ids)
        super().__init__(f"Unknown chemical id(s): {', '.join(map(str, self.chemical_ids))}")


class ListFormsOptions(BaseModel):
    # Pagination, zero means no limit / no offset
    limit: int = 0
    offset: int = 0

    # Filtering
    form_type: Optional[str] = None
    search_name: Optional[str] = None
    chemical_ids: List[int] = []
    jewish_holiday: Optional[str] = None  # 'yes', 'no' or unset
    date_low: Optional[datetime] = None
    date_high: Optional[datetime] = None
    zip_code: Optional[str] = None

    # Sorting
    sort_by: str = DEFAULT_SORT
    order: str = DEFAULT_ORDER


@dataclass
class FormView:
    """A form together with the one details row its form_type calls for."""

    form: Form
    details: Union[ShrubDetails, LawnDetails, PesticideDetails]
    first_app_date: Optional[datetime] = None
    last_app_date: Optional[datetime] = None
    applications: List[PestApp] = field(default_factory=list)

    @property
    def form_type(self):
        return self.form.form_type

    def to_public(self) -> FormPublic:
        data = self.form.model_dump()
        data.update(self.details.model_dump(include=DETAILS_FIELDS[self.form_type]))
        data["first_app_date"] = self.first_app_date
        data["last_app_date"] = self.last_app_date
        data["applications"] = [app.model_dump() for app in self.applications]
        return FormPublic.model_validate(data)


def _hydrate(form: Form, first_app_date=None, last_app_date=None) -> FormView:
    if form.form_type not in FORM_TYPES:
        raise FormIntegrityError(f"unknown form_type: {form.form_type}")

    populated = [form_type for form_type in FORM_TYPES if getattr(form, form_type) is not None]
    if populated != [form.form_type]:
        raise FormIntegrityError(
            f"form {form.id} of type {form.form_type} has details for {populated or 'no type'}"
        )

    return FormView(
        form=form,
        details=getattr(form, form.form_type),
        first_app_date=first_app_date,
        last_app_date=last_app_date,
        applications=list(form.applications),
    )


def _app_dates_subquery():
    # First and last application timestamp per form
    return (
        sa.select(
            PestApp.form_id,
            sa.func.min(PestApp.app_timestamp).label("first_app_date"),
            sa.func.max(PestApp.app_timestamp).label("last_app_date"),
        )
        .group_by(PestApp.form_id)
        .subquery("form_app_dates")
    )


def _form_query(app_dates):
    return (
        select(Form, app_dates.c.first_app_date, app_dates.c.last_app_date)
        .outerjoin(app_dates, col(Form.id) == app_dates.c.form_id)
        .options(
            selectinload(Form.shrub),
            selectinload(Form.lawn),
            selectinload(Form.pesticide),
            selectinload(Form.applications),
        )
    )


def _apply_filters(statement, app_dates, owner_id: Optional[uuid.UUID], opts: ListFormsOptions):
    if owner_id is not None:
        statement = statement.where(col(Form.created_by) == owner_id)

    if opts.form_type:
        statement = statement.where(col(Form.form_type) == opts.form_type)

    if opts.search_name:
        statement = statement.where(
            sa.or_(
                col(Form.first_name).icontains(opts.search_name, autoescape=True),
                col(Form.last_name).icontains(opts.search_name, autoescape=True),
            )
        )

    # Forms with at least one application of any of the given chemicals
    if opts.chemical_ids:
        statement = statement.where(
            col(Form.id).in_(
                select(PestApp.form_id).where(col(PestApp.chem_used).in_(opts.chemical_ids))
            )
        )

    if opts.date_low is not None:
        statement = statement.where(app_dates.c.first_app_date >= opts.date_low)

    if opts.date_high is not None:
        statement = statement.where(app_dates.c.last_app_date <= opts.date_high)

    if opts.zip_code:
        statement = statement.where(col(Form.zip_code) == opts.zip_code)

    if opts.jewish_holiday in ("yes", "no"):
        statement = statement.where(col(Form.is_holiday) == (opts.jewish_holiday == "yes"))

    return statement


def _order_clause(app_dates, sort_by, order):
    allowed_sorts = {
        "first_name": col(Form.first_name),
        "last_name": col(Form.last_name),
        "created_at": col(Form.created_at),
        "first_app_date": app_dates.c.first_app_date,
    }
    sort_column = allowed_sorts.get(sort_by, allowed_sorts[DEFAULT_SORT])

    order = (order or "").upper()
    if order not in ("ASC", "DESC"):
        order = DEFAULT_ORDER

    clause = sort_column.asc() if order == "ASC" else sort_column.desc()
    if sort_by == "first_app_date":
        # Forms without applications go last in either direction
        clause = clause.nulls_last()
    return clause


def list_forms(session: Session, owner_id: Optional[uuid.UUID], opts: ListFormsOptions) -> List[FormView]:
    """Lists forms of one owner, or of everybody when owner_id is None."""
    app_dates = _app_dates_subquery()
    statement = _apply_filters(_form_query(app_dates), app_dates, owner_id, opts)
    statement = statement.order_by(_order_clause(app_dates, opts.sort_by, opts.order), col(Form.id))

    if opts.limit > 0:
        statement = statement.limit(opts.limit)
    if opts.offset > 0:
        statement = statement.offset(opts.offset)

    rows = session.exec(statement).all()
    return [_hydrate(form, first, last) for form, first, last in rows]


def count_forms(session: Session, owner_id: Optional[uuid.UUID], opts: ListFormsOptions) -> int:
    """Counts the forms list_forms would return without pagination."""
    app_dates = _app_dates_subquery()
    statement = (
        select(sa.func.count())
        .select_from(Form)
        .outerjoin(app_dates, col(Form.id) == app_dates.c.form_id)
    )
    statement = _apply_filters(statement, app_dates, owner_id, opts)
    return session.exec(statement).one()


def get_form_view(session: Session, form_id: uuid.UUID, owner_id: Optional[uuid.UUID],
                  form_type: Optional[str] = None) -> FormView:
    """Fetches one form; owner_id None skips the ownership check (admin reads)."""
    app_dates = _app_dates_subquery()
    statement = _form_query(app_dates).where(col(Form.id) == form_id)
    if owner_id is not None:
        statement = statement.where(col(Form.created_by) == owner_id)
    if form_type is not None:
        statement = statement.where(col(Form.form_type) == form_type)

    form, first, last = session.exec(statement).one()
    return _hydrate(form, first, last)


def get_typed_form(session: Session, form_type: str, form_id: uuid.UUID, owner_id: Optional[uuid.UUID]) -> FormView:
    return get_form_view(session, form_id, owner_id, form_type)


def _check_chemicals(session: Session, applications: List[PestAppCreate]):
    wanted = {app.chem_used for app in applications}
    if not wanted:
        return
    found = set(session.exec(select(Chemical.id).where(col(Chemical.id).in_(wanted))).all())
    if wanted - found:
        raise UnknownChemicalError(wanted - found)


def _commit(session: Session, action: str):
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Rolled back transaction while trying to %s", action)
        raise


def _create_form(session: Session, owner_id: uuid.UUID, form_type: str, form_in) -> uuid.UUID:
    _check_chemicals(session, form_in.applications)

    form = Form(
        created_by=owner_id,
        form_type=form_type,
        **form_in.model_dump(include=FORM_FIELDS),
    )
    details_model = DETAILS_MODELS[form_type]
    setattr(form, form_type, details_model(**form_in.model_dump(include=DETAILS_FIELDS[form_type])))
    form.applications = [PestApp(**app.model_dump()) for app in form_in.applications]

    # Base row, details row and applications go in together or not at all
    session.add(form)
    _commit(session, f"insert {form_type} form for {form_in.first_name} {form_in.last_name}")

    logger.info("Created %s form %s for user %s", form_type, form.id, owner_id)
    return form.id


def create_shrub_form(session: Session, owner_id: uuid.UUID, form_in) -> uuid.UUID:
    return _create_form(session, owner_id, FORM_TYPE_SHRUB, form_in)


def create_lawn_form(session: Session, owner_id: uuid.UUID, form_in) -> uuid.UUID:
    return _create_form(session, owner_id, FORM_TYPE_LAWN, form_in)


def create_pesticide_form(session: Session, owner_id: uuid.UUID, form_in) -> uuid.UUID:
    return _create_form(session, owner_id, FORM_TYPE_PESTICIDE, form_in)


def _get_owned_form(session: Session, form_id: uuid.UUID, owner_id: uuid.UUID,
                    form_type: Optional[str] = None) -> Form:
    statement = select(Form).where(col(Form.id) == form_id, col(Form.created_by) == owner_id)
    if form_type is not None:
        statement = statement.where(col(Form.form_type) == form_type)
    return session.exec(statement).one()


def update_form(session: Session, form_type: str, form_id: uuid.UUID, owner_id: uuid.UUID, form_in) -> FormView:
    """Updates a form of the given type; its form_type itself never changes."""
    form = _get_owned_form(session, form_id, owner_id, form_type)
    details = getattr(form, form_type)
    if details is None:
        raise FormIntegrityError(f"{form_type} form {form_id} has no {form_type} details")

    for key, value in form_in.model_dump(include=FORM_FIELDS).items():
        setattr(form, key, value)
    for key, value in form_in.model_dump(include=DETAILS_FIELDS[form_type]).items():
        setattr(details, key, value)

    # Applications are replaced only when the caller sent a list
    if form_in.applications is not None:
        _check_chemicals(session, form_in.applications)
        form.applications = [PestApp(**app.model_dump()) for app in form_in.applications]

    form.update_timestamp()
    session.add(form)
    _commit(session, f"update {form_type} form {form_id}")

    return get_typed_form(session, form_type, form_id, owner_id)


def delete_form(session: Session, form_id: uuid.UUID, owner_id: uuid.UUID):
    """Deletes a form; its details and applications cascade with it."""
    form = _get_owned_form(session, form_id, owner_id)
    session.delete(form)
    _commit(session, f"delete form {form_id}")
    logger.info("Deleted form %s of user %s", form_id, owner_id)
