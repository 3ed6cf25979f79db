"""Pydantic request/response schemas used by the API.

Python attribute names are English; the wire names (`namaKelas`,
`pelajar`, `nama`, `markah`, ...) are kept as aliases because existing
frontends already speak them.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from . import models


class Student(BaseModel):
    """A single student in a roster."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias='nama', min_length=1)
    external_id: Optional[str] = Field(default=None, alias='id')
    marks: Dict[str, Optional[float]] = Field(default_factory=dict, alias='markah')

    @field_validator('external_id', mode='before')
    @classmethod
    def id_as_text(cls, v):
        # spreadsheets happily turn ids into numbers
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def to_record(self) -> dict:
        """Plain dict stored in the `students` JSON column."""
        return {'name': self.name, 'external_id': self.external_id, 'marks': dict(self.marks)}


class RosterSaveIn(BaseModel):
    """Body of `POST /api/kelas/simpan`.

    Both fields are optional here so a missing one can be answered with
    400 by the controller rather than a schema error.
    """
    model_config = ConfigDict(populate_by_name=True)

    class_name: Optional[str] = Field(default=None, alias='namaKelas')
    students: Optional[List[Student]] = Field(default=None, alias='pelajar')


class ClassNameOut(BaseModel):
    """Entry of the class list."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias='namaKelas')


class ClassOut(BaseModel):
    """Full class record as returned by the API."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias='namaKelas')
    students: List[Student] = Field(alias='pelajar')
    created_at: datetime = Field(alias='createdAt')
    updated_at: datetime = Field(alias='updatedAt')

    @field_serializer('created_at', 'updated_at')
    def serialize_timestamp(self, dt: datetime) -> str:
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt.isoformat(timespec='microseconds') + 'Z'

    @classmethod
    def from_model(cls, row: models.ClassRoster) -> 'ClassOut':
        return cls(
            name=row.name,
            students=[Student.model_validate(s) for s in row.students],
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class MessageOut(BaseModel):
    message: str


class SaveOut(BaseModel):
    """Response of a roster replace."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    saved_data: ClassOut = Field(alias='savedData')


class UploadOut(BaseModel):
    """Response of a roster upload."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    class_data: ClassOut = Field(alias='kelasData')
