from typing import List, Optional

from pydantic import field_validator
from sqlmodel import Field, SQLModel

CHEMICAL_CATEGORIES = ("lawn", "shrub")


class ChemicalBase(SQLModel):
    category: str = Field(index=True)  # 'lawn' or 'shrub'
    brand_name: str = Field(min_length=1)
    chemical_name: str = Field(min_length=1)
    epa_reg_no: str = ""
    recipe: str = ""
    unit: str = ""

    @field_validator("category")
    @classmethod
    def check_category(cls, value):
        if value not in CHEMICAL_CATEGORIES:
            raise ValueError("category must be 'lawn' or 'shrub'")
        return value


class Chemical(ChemicalBase, table=True):
    __tablename__ = "chemicals"

    id: Optional[int] = Field(default=None, primary_key=True)


class ChemicalCreate(ChemicalBase):
    pass


class ChemicalPublic(ChemicalBase):
    id: int


class ChemicalList(SQLModel):
    chemicals: List[ChemicalPublic]
    count: int
