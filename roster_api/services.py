"""Business logic used by HTTP controllers and the CLI import script.

`RosterService` is intentionally thin: it validates required inputs,
runs the roster import transform and persists through the repository.
Errors from the repository propagate unchanged.
"""

import logging
from typing import List, Tuple, Union

from sqlmodel import Session

from . import models, repositories
from .errors import ValidationError
from .repositories import ImportOutcome
from .schemas import Student
from .utils.parsers import parse_roster

logger = logging.getLogger("roster_api.services")


def _require_name(name) -> str:
    # whitespace-only names count as present; they just never match a class
    if not name:
        raise ValidationError('Nama kelas diperlukan.')
    return name


class RosterService:
    """List, fetch, replace, import and delete class rosters."""
    def __init__(self, session: Session):
        self.session = session
        self.class_repo = repositories.ClassRepository(session)

    def list_class_names(self) -> List[str]:
        return self.class_repo.list_names()

    def get_class(self, name: str) -> models.ClassRoster:
        return self.class_repo.get(name)

    def replace_roster(self, name: str, students: List[Student]) -> models.ClassRoster:
        """Replace the roster of an existing class.

        The class must already exist; this never creates one.
        """
        _require_name(name)
        if students is None:
            raise ValidationError('Nama kelas atau data pelajar diperlukan.')
        row = self.class_repo.replace_students(name, [s.to_record() for s in students])
        logger.info("roster_replaced class=%s students=%d", name, len(row.students))
        return row

    def import_roster(self, name: str, content: Union[bytes, str]) -> Tuple[models.ClassRoster, ImportOutcome]:
        """Parse an uploaded roster and create or replace the class.

        Every imported student starts with all default subjects unset;
        the file never carries marks.
        """
        _require_name(name)
        students = parse_roster(content)
        row, outcome = self.class_repo.upsert(name, students)
        logger.info("roster_imported class=%s students=%d outcome=%s", name, len(students), outcome.value)
        return row, outcome

    def delete_class(self, name: str) -> None:
        _require_name(name)
        self.class_repo.delete(name)
        logger.info("class_deleted class=%s", name)
