"""
Wire schemas for the payroll collaborators.

The payroll backend speaks camelCase JSON. Every model accepts either the
camelCase alias or the snake_case field name, and ignores columns it does not
know about (the backend ships more than the engine needs).
"""
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


PAY_TYPES = ("yearly", "daily", "hourly")


class Employee(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    pay_type: str = Field("hourly", alias="payType")
    rate: float = 0.0  # dollars per year / day / hour depending on pay_type
    schedule_id: Optional[str] = Field(None, alias="scheduleId")

    @field_validator("id", mode="before")
    @classmethod
    def force_string_id(cls, v):
        return str(v)

    @field_validator("pay_type")
    @classmethod
    def pay_type_must_be_known(cls, v):
        v = v.lower()
        if v not in PAY_TYPES:
            raise ValueError(f"payType must be one of {PAY_TYPES}, got '{v}'")
        return v


class TimeEntry(BaseModel):
    # Dates and clocks stay raw strings: malformed values are the extractor's
    # problem (it rejects them) rather than a reason to drop the whole batch.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    employee_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("employeeId", "recipientId", "employee_id"),
    )
    date: str
    clock_in: str = Field(..., alias="clockIn")
    clock_out: Optional[str] = Field(None, alias="clockOut")

    @field_validator("id", mode="before")
    @classmethod
    def force_string_id(cls, v):
        return str(v)

    @property
    def is_complete(self) -> bool:
        return bool(self.clock_out)


class PayRun(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    period_start: str = Field(..., alias="periodStart")
    period_end: str = Field(..., alias="periodEnd")
    status: str = "draft"


class Schedule(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    hours_per_day: float = Field(8.0, alias="hoursPerDay")
    working_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5], alias="workingDays")
    start_time: Optional[str] = Field(None, alias="startTime")

    @field_validator("id", mode="before")
    @classmethod
    def force_string_id(cls, v):
        return str(v)
