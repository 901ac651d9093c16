"""
Pydantic data models for the InfluxDB client.

Points are immutable once built; a batch is built once per write.
"""

from datetime import datetime, timezone
from typing import Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

FieldValue = Union[bool, int, float, str]


class Point(BaseModel):
    """A single measurement with its fields at one instant."""

    model_config = ConfigDict(frozen=True)

    measurement: str
    fields: Dict[str, FieldValue]
    time: datetime
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("measurement")
    @classmethod
    def _non_empty(cls, v):
        if not v:
            raise ValueError("measurement must not be empty")
        return v

    @field_validator("time")
    @classmethod
    def _utc(cls, v):
        # naive timestamps are taken as UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class BatchPoints(BaseModel):
    """Ordered points bound for one database."""

    database: str
    points: List[Point] = Field(default_factory=list)

    @field_validator("database")
    @classmethod
    def _database_required(cls, v):
        if not v:
            raise ValueError("database must not be empty")
        return v

    def __len__(self) -> int:
        return len(self.points)
