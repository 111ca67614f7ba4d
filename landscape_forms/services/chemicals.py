import logging
from typing import List, Optional

from sqlmodel import Session, col, select

from landscape_forms.models.chemical import Chemical, ChemicalCreate
from landscape_forms.models.form import PestApp

logger = logging.getLogger(__name__)


class ChemicalInUseError(Exception):
    def __init__(self, chemical_id):
        self.chemical_id = chemical_id
        super().__init__(f"Chemical {chemical_id} is used by existing pesticide applications")


def create_chemical(session: Session, chemical_in: ChemicalCreate) -> Chemical:
    chemical = Chemical.model_validate(chemical_in)
    session.add(chemical)
    session.commit()
    session.refresh(chemical)
    logger.info("Created chemical %s (%s)", chemical.id, chemical.chemical_name)
    return chemical


def list_chemicals(session: Session, category: Optional[str] = None) -> List[Chemical]:
    statement = select(Chemical)
    if category is not None:
        statement = statement.where(Chemical.category == category)
    statement = statement.order_by(col(Chemical.category), col(Chemical.id))
    return list(session.exec(statement).all())


def get_chemical(session: Session, chemical_id: int) -> Chemical:
    return session.exec(select(Chemical).where(Chemical.id == chemical_id)).one()


def update_chemical(session: Session, chemical_id: int, chemical_in: ChemicalCreate) -> Chemical:
    chemical = get_chemical(session, chemical_id)
    chemical.sqlmodel_update(chemical_in.model_dump())
    session.add(chemical)
    session.commit()
    session.refresh(chemical)
    return chemical


def delete_chemical(session: Session, chemical_id: int):
    chemical = get_chemical(session, chemical_id)
    in_use = session.exec(select(PestApp.id).where(PestApp.chem_used == chemical_id)).first()
    if in_use is not None:
        raise ChemicalInUseError(chemical_id)
    session.delete(chemical)
    session.commit()
    logger.info("Deleted chemical %s", chemical_id)
