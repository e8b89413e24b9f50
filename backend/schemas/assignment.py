# backend/schemas/assignment.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AssignmentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: int = Field(validation_alias="customerId")
    employee_id: int = Field(validation_alias="employeeId")


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    employee_id: int
    created_at: Optional[datetime] = None
