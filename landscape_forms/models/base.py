import uuid
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def utc_now():
    """Returns the current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class BaseModel(SQLModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    # Method to update the timestamp automatically
    def update_timestamp(self):
        self.updated_at = utc_now()
