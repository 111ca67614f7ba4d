import re
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import field_validator
from sqlmodel import Field, Relationship, SQLModel

from .base import BaseModel
from .user import User

FORM_TYPE_SHRUB = "shrub"
FORM_TYPE_LAWN = "lawn"
FORM_TYPE_PESTICIDE = "pesticide"
FORM_TYPES = (FORM_TYPE_SHRUB, FORM_TYPE_LAWN, FORM_TYPE_PESTICIDE)

ZIP_CODE_RE = re.compile(r"^\d{5}(-\d{4})?$")


# Client and visit info shared by every form type
class FormFields(SQLModel):
    first_name: str = Field(min_length=1, index=True)
    last_name: str = Field(min_length=1, index=True)
    street_number: str
    street_name: str = Field(index=True)
    town: str = Field(index=True)
    zip_code: str = Field(index=True)
    home_phone: str
    other_phone: str = ""
    call_before: bool = False
    is_holiday: bool = False

    @field_validator("zip_code")
    @classmethod
    def check_zip_code(cls, value):
        if not ZIP_CODE_RE.match(value):
            raise ValueError("zip_code must look like 12345 or 12345-6789")
        return value


class Form(BaseModel, FormFields, table=True):
    __tablename__ = "forms"

    created_by: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    form_type: str = Field(index=True)  # 'shrub', 'lawn' or 'pesticide'

    owner: Optional[User] = Relationship(back_populates="forms")
    shrub: Optional["ShrubDetails"] = Relationship(
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"}
    )
    lawn: Optional["LawnDetails"] = Relationship(
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"}
    )
    pesticide: Optional["PesticideDetails"] = Relationship(
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"}
    )
    applications: List["PestApp"] = Relationship(
        back_populates="form",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "PestApp.app_timestamp",
        },
    )


class ShrubDetailsBase(SQLModel):
    num_shrubs: int = Field(default=0, ge=0)
    flea_only: bool = False


class ShrubDetails(ShrubDetailsBase, table=True):
    __tablename__ = "shrubs"

    form_id: uuid.UUID = Field(foreign_key="forms.id", ondelete="CASCADE", primary_key=True)


class LawnDetailsBase(SQLModel):
    lawn_area_sq_ft: int = Field(ge=0)
    fert_only: bool = False


class LawnDetails(LawnDetailsBase, table=True):
    __tablename__ = "lawn_forms"

    form_id: uuid.UUID = Field(foreign_key="forms.id", ondelete="CASCADE", primary_key=True)


class PesticideDetailsBase(SQLModel):
    pesticide_name: str = Field(min_length=1)


class PesticideDetails(PesticideDetailsBase, table=True):
    __tablename__ = "pesticides"

    form_id: uuid.UUID = Field(foreign_key="forms.id", ondelete="CASCADE", primary_key=True)


DETAILS_FIELDS = {
    FORM_TYPE_SHRUB: set(ShrubDetailsBase.model_fields),
    FORM_TYPE_LAWN: set(LawnDetailsBase.model_fields),
    FORM_TYPE_PESTICIDE: set(PesticideDetailsBase.model_fields),
}
DETAILS_MODELS = {
    FORM_TYPE_SHRUB: ShrubDetails,
    FORM_TYPE_LAWN: LawnDetails,
    FORM_TYPE_PESTICIDE: PesticideDetails,
}


# Pesticide application records
class PestAppBase(SQLModel):
    chem_used: int
    app_timestamp: datetime
    rate: str
    amount_applied: Decimal = Field(max_digits=10, decimal_places=2, ge=0)
    # Site code such as "1A" (front yard, lawn)
    location_code: str = Field(min_length=2, max_length=2)


class PestApp(PestAppBase, table=True):
    __tablename__ = "pest_apps"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    form_id: uuid.UUID = Field(foreign_key="forms.id", ondelete="CASCADE", index=True)
    chem_used: int = Field(foreign_key="chemicals.id", index=True)

    form: Optional[Form] = Relationship(back_populates="applications")


class PestAppCreate(PestAppBase):
    pass


class PestAppPublic(PestAppBase):
    id: uuid.UUID


# Request bodies
class ShrubFormCreate(FormFields, ShrubDetailsBase):
    applications: List[PestAppCreate] = []


class LawnFormCreate(FormFields, LawnDetailsBase):
    applications: List[PestAppCreate] = []


class PesticideFormCreate(FormFields, PesticideDetailsBase):
    applications: List[PestAppCreate] = []


# On update, omitted applications are left as they are
class ShrubFormUpdate(FormFields, ShrubDetailsBase):
    applications: Optional[List[PestAppCreate]] = None


class LawnFormUpdate(FormFields, LawnDetailsBase):
    applications: Optional[List[PestAppCreate]] = None


class PesticideFormUpdate(FormFields, PesticideDetailsBase):
    applications: Optional[List[PestAppCreate]] = None


# Responses
class FormCreated(SQLModel):
    id: uuid.UUID


class FormPublic(FormFields):
    id: uuid.UUID
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime
    form_type: str
    first_app_date: Optional[datetime] = None
    last_app_date: Optional[datetime] = None
    applications: List[PestAppPublic] = []

    # Only the fields of the form's own type are filled in
    num_shrubs: Optional[int] = None
    flea_only: Optional[bool] = None
    lawn_area_sq_ft: Optional[int] = None
    fert_only: Optional[bool] = None
    pesticide_name: Optional[str] = None


class FormList(SQLModel):
    forms: List[FormPublic]
    count: int
    total: int
