from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    login: str = Field(description="username or email")
    password: str


class AuthUser(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    name: str = ""
    role: str


class LoginResponse(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    user: AuthUser


class ProfileIn(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class EmploymentIn(BaseModel):
    designation: Optional[str] = None
    date_of_joining: Optional[str] = None
    gross_remuneration: Optional[float] = None


class UserCreateIn(BaseModel):
    username: str
    password: str = Field(min_length=6)
    email: Optional[str] = None
    role: str
    profile: ProfileIn = Field(default_factory=ProfileIn)
    employment: EmploymentIn = Field(default_factory=EmploymentIn)
    documents: dict[str, Any] = Field(default_factory=dict)
    bank_details: dict[str, Any] = Field(default_factory=dict)


class UserUpdateIn(BaseModel):
    email: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
    profile: Optional[ProfileIn] = None
    employment: Optional[EmploymentIn] = None
    documents: Optional[dict[str, Any]] = None
    bank_details: Optional[dict[str, Any]] = None
    leave_balance: Optional[dict[str, float]] = None


class AccessEntry(BaseModel):
    id: str
    name: Optional[str] = None
    has_access: bool = False


class RoleCreateIn(BaseModel):
    role_id: str = Field(min_length=2, max_length=50, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
    display_name: str
    hierarchy_level: int = Field(default=5, ge=0, le=10)
    description: str = ""
    component_access: list[AccessEntry] = Field(default_factory=list)
    feature_access: list[AccessEntry] = Field(default_factory=list)


class RoleUpdateIn(BaseModel):
    display_name: Optional[str] = None
    hierarchy_level: Optional[int] = Field(default=None, ge=0, le=10)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    component_access: Optional[list[AccessEntry]] = None
    feature_access: Optional[list[AccessEntry]] = None


class Location(BaseModel):
    latitude: float
    longitude: float


class CheckInOut(BaseModel):
    location: Optional[Location] = None


class LeaveApplyIn(BaseModel):
    leave_type: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    number_of_days: Optional[float] = None
    reason: Optional[str] = None
    contact_no: Optional[str] = None
    person_in_charge: Optional[str] = None
    reporting_to_id: Optional[str] = None


class LeaveReviewIn(BaseModel):
    remarks: Optional[str] = None


class ForwardIn(BaseModel):
    original_transfer_id: Optional[str] = None
    recipient_id: Optional[str] = None
    note: Optional[str] = None


class RemunerationRowIn(BaseModel):
    employee_id: str
    employee_code: Optional[str] = None
    gross_remuneration: float = 0
    days_worked: float = 0
    casual_leave: float = 0
    weekly_off: float = 0
    holidays: float = 0
    lwp_days: float = 0
    total_days: float = 0
    payable_days: float = 0
    fixed_remuneration: float = 0
    variable_remuneration: float = 0
    total_remuneration: float = 0
    tds: float = 0
    other_deduction: float = 0
    net_payable: float = 0
    pan_bank_details: str = ""


class RemunerationSaveIn(BaseModel):
    month: Optional[int] = None
    year: Optional[int] = None
    remuneration_data: list[RemunerationRowIn] = Field(default_factory=list)


class VariableRowIn(BaseModel):
    employee_id: str
    punctuality: Optional[float] = None
    sincerity: Optional[float] = None
    responsiveness: Optional[float] = None
    assigned_task: Optional[float] = None
    peer_rating: Optional[float] = None
    max_remuneration: Optional[float] = None


class VariableSaveIn(BaseModel):
    month: Optional[int] = None
    year: Optional[int] = None
    remuneration_data: list[VariableRowIn] = Field(default_factory=list)


class PeerRatingIn(BaseModel):
    ratee_id: Optional[str] = None
    month: Optional[int] = None
    year: Optional[int] = None
    rating: Optional[float] = None
