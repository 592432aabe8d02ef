# src/planledger/db/models/enums.py
from __future__ import annotations

import enum


class PlanVersionStatus(str, enum.Enum):
    FINAL = "FINAL"
    DISTRIBUTED = "DISTRIBUTED"
    SUPERSEDED = "SUPERSEDED"


class ExportFormat(str, enum.Enum):
    PDF = "PDF"
    DOCX = "DOCX"
    HTML = "HTML"


class DecisionType(str, enum.Enum):
    ELIGIBILITY_CATEGORY = "ELIGIBILITY_CATEGORY"
    PLACEMENT_LRE = "PLACEMENT_LRE"
    SERVICES_CHANGE = "SERVICES_CHANGE"
    GOALS_CHANGE = "GOALS_CHANGE"
    ACCOMMODATIONS_CHANGE = "ACCOMMODATIONS_CHANGE"
    ESY_DECISION = "ESY_DECISION"
    ASSESSMENT_PARTICIPATION = "ASSESSMENT_PARTICIPATION"
    BEHAVIOR_SUPPORTS = "BEHAVIOR_SUPPORTS"
    TRANSITION_SERVICES = "TRANSITION_SERVICES"
    OTHER = "OTHER"


class DecisionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    VOID = "VOID"


class SignaturePacketStatus(str, enum.Enum):
    OPEN = "OPEN"
    COMPLETE = "COMPLETE"
    EXPIRED = "EXPIRED"


class SignatureRole(str, enum.Enum):
    PARENT_GUARDIAN = "PARENT_GUARDIAN"
    CASE_MANAGER = "CASE_MANAGER"
    SPECIAL_ED_TEACHER = "SPECIAL_ED_TEACHER"
    GENERAL_ED_TEACHER = "GENERAL_ED_TEACHER"
    RELATED_SERVICE_PROVIDER = "RELATED_SERVICE_PROVIDER"
    ADMINISTRATOR = "ADMINISTRATOR"
    STUDENT = "STUDENT"
    OTHER = "OTHER"


class SignatureMethod(str, enum.Enum):
    ELECTRONIC = "ELECTRONIC"
    IN_PERSON = "IN_PERSON"
    PAPER_RETURNED = "PAPER_RETURNED"


class SignatureStatus(str, enum.Enum):
    PENDING = "PENDING"
    SIGNED = "SIGNED"
    DECLINED = "DECLINED"


DECISION_TYPE_LABELS: dict[DecisionType, tuple[str, str]] = {
    DecisionType.ELIGIBILITY_CATEGORY: ("Eligibility Category", "Determination of disability category"),
    DecisionType.PLACEMENT_LRE: ("Placement / LRE", "Least Restrictive Environment decision"),
    DecisionType.SERVICES_CHANGE: ("Services Change", "Changes to special education or related services"),
    DecisionType.GOALS_CHANGE: ("Goals Change", "Modifications to annual goals or objectives"),
    DecisionType.ACCOMMODATIONS_CHANGE: ("Accommodations Change", "Changes to accommodations or modifications"),
    DecisionType.ESY_DECISION: ("ESY Decision", "Extended School Year eligibility determination"),
    DecisionType.ASSESSMENT_PARTICIPATION: ("Assessment Participation", "State and district assessment participation decisions"),
    DecisionType.BEHAVIOR_SUPPORTS: ("Behavior Supports", "Behavioral intervention or support decisions"),
    DecisionType.TRANSITION_SERVICES: ("Transition Services", "Post-secondary transition planning decisions"),
    DecisionType.OTHER: ("Other", "Other plan-related decisions"),
}

SIGNATURE_ROLE_LABELS: dict[SignatureRole, str] = {
    SignatureRole.PARENT_GUARDIAN: "Parent/Guardian",
    SignatureRole.CASE_MANAGER: "Case Manager",
    SignatureRole.SPECIAL_ED_TEACHER: "Special Education Teacher",
    SignatureRole.GENERAL_ED_TEACHER: "General Education Teacher",
    SignatureRole.RELATED_SERVICE_PROVIDER: "Related Service Provider",
    SignatureRole.ADMINISTRATOR: "Administrator",
    SignatureRole.STUDENT: "Student",
    SignatureRole.OTHER: "Other",
}
