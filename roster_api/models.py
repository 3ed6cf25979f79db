"""SQLModel data models.

A class roster is stored as one row: the class name is the unique key
and the students are embedded as a JSON document, so a class and its
students are always written and removed together.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

DEFAULT_SUBJECTS = ('bm', 'bi', 'mt', 'sn', 'pai', 'ba', 'pm', 'pj', 'pk', 'sej', 'mz', 'psv', 'rbt')


def utcnow() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive value read back from a driver that drops tzinfo."""
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def default_marks(subjects=DEFAULT_SUBJECTS) -> Dict[str, Optional[float]]:
    """Return a marks mapping with every subject present and unset."""
    return {s: None for s in subjects}


class ClassRoster(SQLModel, table=True):
    """A named class and its ordered student list.

    Fields:
    - `name`: unique class name (`namaKelas` on the wire)
    - `students`: list of `{name, external_id, marks}` dicts in display order
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, nullable=False, unique=True)
    students: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self):
        """Advance `updated_at`, strictly past its previous value."""
        now = utcnow()
        if self.updated_at is not None:
            previous = as_utc(self.updated_at)
            if now <= previous:
                now = previous + timedelta(microseconds=1)
        self.updated_at = now
