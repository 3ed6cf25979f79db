"""Repository encapsulating class roster database operations.

The repository returns SQLModel objects and commits where appropriate.
SQLAlchemy failures are rolled back and re-raised as roster errors so
callers only ever see the domain taxonomy.
"""

import enum
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.attributes import flag_modified
from sqlmodel import Session, select

from . import models
from .errors import Conflict, NotFound, ServiceError


class ImportOutcome(str, enum.Enum):
    """Which branch of an upsert was taken."""
    CREATED = 'created'
    REPLACED = 'replaced'


class ClassRepository:
    """CRUD operations for `ClassRoster` rows."""
    def __init__(self, session: Session):
        self.session = session

    def list_names(self) -> List[str]:
        """Return every class name in ascending order."""
        stmt = select(models.ClassRoster.name).order_by(models.ClassRoster.name)
        try:
            return list(self.session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise ServiceError(f'Ralat mendapatkan senarai kelas: {e}') from e

    def get_by_name(self, name: str) -> Optional[models.ClassRoster]:
        """Return a class by exact name or `None` if not found."""
        stmt = select(models.ClassRoster).where(models.ClassRoster.name == name)
        try:
            return self.session.exec(stmt).first()
        except SQLAlchemyError as e:
            raise ServiceError(f'Ralat mendapatkan data kelas: {e}') from e

    def get(self, name: str) -> models.ClassRoster:
        """Like `get_by_name` but raise `NotFound` for a missing class."""
        row = self.get_by_name(name)
        if row is None:
            raise NotFound('Kelas tidak ditemui.')
        return row

    def replace_students(self, name: str, students: List[dict]) -> models.ClassRoster:
        """Replace the whole student list of an existing class."""
        row = self.get_by_name(name)
        if row is None:
            raise NotFound('Kelas tidak ditemui untuk dikemas kini.')
        self._set_students(row, students)
        self._commit(row, 'Ralat menyimpan data')
        return row

    def upsert(self, name: str, students: List[dict]) -> Tuple[models.ClassRoster, ImportOutcome]:
        """Replace the students of `name`, creating the class if needed.

        A concurrent create of the same name trips the unique constraint;
        that surfaces as `Conflict` and is not retried.
        """
        row = self.get_by_name(name)
        if row is not None:
            self._set_students(row, students)
            self._commit(row, 'Ralat menyimpan senarai pelajar ke DB')
            return row, ImportOutcome.REPLACED
        row = models.ClassRoster(name=name, students=students)
        self._commit(row, 'Ralat menyimpan senarai pelajar ke DB')
        return row, ImportOutcome.CREATED

    def delete(self, name: str) -> None:
        """Delete a class and with it all of its students."""
        row = self.get_by_name(name)
        if row is None:
            raise NotFound('Kelas tidak ditemui.')
        try:
            self.session.delete(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise ServiceError(f'Ralat memadam kelas: {e}') from e

    def _set_students(self, row: models.ClassRoster, students: List[dict]):
        row.students = students
        # JSON columns are not mutation-tracked
        flag_modified(row, 'students')
        row.touch()

    def _commit(self, row: models.ClassRoster, context: str):
        try:
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except IntegrityError as e:
            self.session.rollback()
            raise Conflict('Nama Kelas ini sudah wujud. Sila pilih dari dropdown atau guna nama lain.') from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise ServiceError(f'{context}: {e}') from e
