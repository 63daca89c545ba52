"""
Pydantic Schemas - Request Validation

All API request schemas in one file for simplicity. Responses are built with
the envelope helpers in app.utils.responses.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class SubscriptionPlan(str, Enum):
    basic = "basic"
    premium = "premium"
    enterprise = "enterprise"


class Gender(str, Enum):
    male = "Male"
    female = "Female"


class LeadershipCategory(str, Enum):
    school_level = "school_level"
    class_level = "class_level"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class SchoolSignupRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1, max_length=20)
    email: EmailStr
    logo_url: Optional[str] = None
    subscription_plan: SubscriptionPlan = SubscriptionPlan.basic
    password: str = Field(..., min_length=6)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# ============================================================
# SESSION / TERM SCHEMAS
# ============================================================

class SessionCreate(BaseModel):
    session_name: str = Field(..., min_length=1, max_length=50)
    start_date: date
    end_date: date
    is_active: bool = True

class SessionUpdate(BaseModel):
    session_name: Optional[str] = Field(None, min_length=1, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

class SessionToggle(BaseModel):
    is_active: bool

class TermCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    is_current: bool = False


# ============================================================
# CLASS SCHEMAS
# ============================================================

class ClassArmCreate(BaseModel):
    class_level_id: int
    arm_name: str = Field(..., min_length=1, max_length=50)

class ClassArmUpdate(BaseModel):
    arm_name: str = Field(..., min_length=1, max_length=50)


# ============================================================
# SUBJECT SCHEMAS
# ============================================================

class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    subject_code: Optional[str] = None
    category: Optional[str] = None
    is_compulsory: bool = True
    class_subjects: List[int] = []

class SubjectUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    subject_code: str
    category: str


# ============================================================
# TEACHER SCHEMAS
# ============================================================

class TeacherCreate(BaseModel):
    employee_id: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    middle_name: Optional[str] = None
    email: EmailStr
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    qualification: str = Field(..., min_length=1)
    hire_date: date
    salary: float
    is_active: bool = True
    primary_subjects: List[int] = []

class TeacherUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    middle_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    qualification: Optional[str] = None
    hire_date: Optional[date] = None
    salary: Optional[float] = None
    is_active: Optional[bool] = None
    primary_subjects: Optional[List[int]] = None


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentCreate(BaseModel):
    admission_number: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    middle_name: Optional[str] = None
    email: EmailStr
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    state_of_origin: Optional[str] = None
    lga: Optional[str] = None
    nationality: Optional[str] = None
    religion: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    guardian_email: Optional[EmailStr] = None
    guardian_address: Optional[str] = None
    guardian_relationship: Optional[str] = None
    admission_date: Optional[date] = None
    passport_url: Optional[str] = None
    is_active: bool = True
    class_arm_id: int

class StudentUpdate(BaseModel):
    admission_number: Optional[str] = Field(None, min_length=1)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    middle_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    state_of_origin: Optional[str] = None
    lga: Optional[str] = None
    nationality: Optional[str] = None
    religion: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    guardian_email: Optional[EmailStr] = None
    guardian_address: Optional[str] = None
    guardian_relationship: Optional[str] = None
    admission_date: Optional[date] = None
    passport_url: Optional[str] = None
    is_active: Optional[bool] = None


# ============================================================
# LEADERSHIP SCHEMAS
# ============================================================

class LeadershipRoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    category: LeadershipCategory

class StudentLeadershipCreate(BaseModel):
    student_id: int
    role_id: int
    class_arm_id: int
    session_id: Optional[int] = None
    term_id: Optional[int] = None

class StudentLeadershipUpdate(BaseModel):
    student_id: int
    role_id: int
    class_arm_id: int
    session_id: int
    term_id: int


# ============================================================
# ANNOUNCEMENT SCHEMAS
# ============================================================

class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    subject: str = Field(..., min_length=1)
