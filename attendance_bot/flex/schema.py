"""
Pydantic models for Flex OpenAPI records.

Field aliases follow the Flex JSON names so records can be validated
straight from the response payload.
"""

from datetime import date, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FlexModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class WorkBlock(FlexModel):
    """One block of a work schedule. ``blockFrom``/``blockTo`` are the punches."""

    form_name: str = Field(default="", alias="formName")
    block_from: Optional[str] = Field(None, alias="blockFrom")
    block_to: Optional[str] = Field(None, alias="blockTo")


class WorkSchedule(FlexModel):
    """
    Work schedule with clock records for one employee on one date.

    Maps to: GET /users/work-schedules-with-work-clock/dates/{date}
    """

    employee_number: str = Field(..., alias="employeeNumber")
    work_date: date = Field(..., alias="date")
    work_blocks: list[WorkBlock] = Field(default_factory=list, alias="workBlocks")

    def find_block(self, form_name: str) -> Optional[WorkBlock]:
        """Return the first block with the given form name."""
        for block in self.work_blocks:
            if block.form_name == form_name:
                return block
        return None


class TimeOffUse(FlexModel):
    """
    A time-off use (vacation, half day, remote work, field work).

    Maps to: GET /users/time-off-uses/dates/{date}
    """

    employee_number: str = Field(..., alias="employeeNumber")
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")
    time_off_type: str = Field(default="", alias="timeOffType")
    start_at: Optional[str] = Field(None, alias="startAt")
    end_at: Optional[str] = Field(None, alias="endAt")

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @property
    def dedup_key(self) -> tuple[str, date, date, str]:
        return (self.employee_number, self.start_date, self.end_date, self.time_off_type)

    @property
    def return_date(self) -> date:
        """First day back at work."""
        return self.end_date + timedelta(days=1)


class AttendanceStatus(FlexModel):
    """Derived check-in/out state of one employee on one date."""

    employee_number: str
    work_date: date
    has_check_in: bool = False
    has_check_out: bool = False
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    is_on_vacation: bool = False

    @property
    def missing_check_in(self) -> bool:
        return not self.is_on_vacation and not self.has_check_in

    @property
    def missing_check_out(self) -> bool:
        return not self.is_on_vacation and self.has_check_in and not self.has_check_out
