from datetime import datetime
from typing import List
from pydantic import BaseModel, Field, field_validator, model_validator

class SystemLayout(BaseModel):
    positions_per_row: List[int] = Field(..., min_length=1)

    @field_validator("positions_per_row")
    @classmethod
    def non_negative_positions(cls, value):
        if any(p < 0 for p in value):
            raise ValueError("Positions per row must be non-negative integers")
        return value

class SystemCreate(SystemLayout):
    name: str = Field(..., min_length=1)
    rows: int = Field(..., ge=1)

    @model_validator(mode="after")
    def rows_match_positions(self):
        if self.rows != len(self.positions_per_row):
            raise ValueError("Row count must match the number of position entries")
        return self

class SystemResponse(BaseModel):
    id: int
    name: str
    rows: int
    positions_per_row: List[int]

    class Config:
        from_attributes = True

class UserSystemResponse(BaseModel):
    id: int
    system_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    system: SystemResponse

    class Config:
        from_attributes = True
