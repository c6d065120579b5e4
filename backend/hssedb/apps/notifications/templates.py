from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .models import NotificationChannel

DEFAULT_LANGUAGE = os.getenv("NOTIFICATIONS_DEFAULT_LANGUAGE", "en")

EMAIL = NotificationChannel.EMAIL
SMS = NotificationChannel.SMS
WHATSAPP = NotificationChannel.WHATSAPP
PUSH = NotificationChannel.PUSH


@dataclass(frozen=True)
class NotificationTemplate:
    key: str
    audience: str
    channels: Tuple[NotificationChannel, ...]
    subject: str
    body: str
    language: str = DEFAULT_LANGUAGE


class _Context(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(text: str, context: Dict[str, Any]) -> str:
    return text.format_map(_Context(context))


TEMPLATES: Dict[str, List[NotificationTemplate]] = {
    "training.scheduled": [
        NotificationTemplate(
            key="training_scheduled",
            audience="training_participants",
            channels=(EMAIL, PUSH),
            subject="Training {ref} scheduled",
            body="Training {ref} is scheduled for {scheduled_date} ({duration_minutes} minutes).",
        ),
    ],
    "training.participant_enrolled": [
        NotificationTemplate(
            key="training_enrolment_confirmation",
            audience="participant",
            channels=(EMAIL,),
            subject="Enrolled in {title}",
            body="{user_name}, you are enrolled in {title} ({ref}). Waitlisted: {waitlisted}.",
        ),
    ],
    "training.cancelled": [
        NotificationTemplate(
            key="training_cancelled",
            audience="training_participants",
            channels=(EMAIL, PUSH),
            subject="Training {ref} cancelled",
            body="Training {ref} has been cancelled: {reason}",
        ),
    ],
    "training.completed": [
        NotificationTemplate(
            key="training_completed",
            audience="training_coordinator",
            channels=(EMAIL,),
            subject="Training {ref} completed",
            body="Training {ref} completed. Rating: {effectiveness_rating}. Passed: {completed_count}, failed: {failed_count}.",
        ),
    ],
    "training.requirement_overdue": [
        NotificationTemplate(
            key="training_requirement_overdue",
            audience="training_coordinator",
            channels=(EMAIL,),
            subject="Overdue requirement on training {ref}",
            body="{description} for {title} ({ref}) was due on {due_date}. Mandatory: {is_mandatory}.",
        ),
    ],
    "certification.issued": [
        NotificationTemplate(
            key="certificate_issued",
            audience="certificate_holder",
            channels=(EMAIL, PUSH),
            subject="Certificate {certificate_number} issued",
            body="{holder_name}, your certificate {certificate_number} has been issued. Expiry: {expiry_date}.",
        ),
    ],
    "certification.renewed": [
        NotificationTemplate(
            key="certificate_renewed",
            audience="certificate_holder",
            channels=(EMAIL,),
            subject="Certificate {certificate_number} renewed",
            body="Certificate {certificate_number} has been renewed. New expiry: {expiry_date}.",
        ),
    ],
    "certification.suspended": [
        NotificationTemplate(
            key="certificate_suspended",
            audience="certificate_holder",
            channels=(EMAIL,),
            subject="Certificate {certificate_number} suspended",
            body="Certificate {certificate_number} is suspended until {suspension_end_date}: {reason}",
        ),
    ],
    "certification.revoked": [
        NotificationTemplate(
            key="certificate_revoked",
            audience="certificate_holder",
            channels=(EMAIL,),
            subject="Certificate {certificate_number} revoked",
            body="Certificate {certificate_number} has been revoked: {reason}",
        ),
    ],
    "security_incident.created": [
        NotificationTemplate(
            key="security_incident_reported",
            audience="security_team",
            channels=(EMAIL, PUSH),
            subject="Security incident {ref} reported",
            body="{title} ({incident_type}, {severity}) reported at {location} on {incident_datetime}.",
        ),
    ],
    "security_incident.escalated": [
        NotificationTemplate(
            key="security_incident_escalated",
            audience="security_management",
            channels=(EMAIL, SMS, WHATSAPP),
            subject="ESCALATED: security incident {ref}",
            body="Security incident {ref} ({title}) escalated: {reason}. Severity {severity}.",
        ),
    ],
    "security_incident.assigned": [
        NotificationTemplate(
            key="security_incident_assigned",
            audience="assignee",
            channels=(EMAIL, PUSH),
            subject="Security incident {ref} assigned to you",
            body="{assignee_name}, security incident {ref} ({title}) has been assigned to you.",
        ),
    ],
    "security_incident.data_breach_detected": [
        NotificationTemplate(
            key="security_data_breach",
            audience="data_protection_officer",
            channels=(EMAIL, SMS),
            subject="Data breach recorded on {ref}",
            body="A data breach was recorded on security incident {ref} ({title}). Affected persons: {affected_persons_count}.",
        ),
    ],
    "security_incident.closed": [
        NotificationTemplate(
            key="security_incident_closed",
            audience="security_team",
            channels=(EMAIL,),
            subject="Security incident {ref} closed",
            body="Security incident {ref} ({title}) has been closed.",
        ),
    ],
    "inspection.scheduled": [
        NotificationTemplate(
            key="inspection_scheduled",
            audience="inspector",
            channels=(EMAIL, PUSH),
            subject="Inspection {ref} scheduled",
            body="Inspection {ref} ({title}) is scheduled for {scheduled_date}.",
        ),
    ],
    "inspection.finding_added": [
        NotificationTemplate(
            key="inspection_finding_raised",
            audience="hse_officer",
            channels=(EMAIL,),
            subject="Finding {finding_number} raised on {ref}",
            body="A {severity} finding ({finding_type}) was raised on inspection {ref}. Inspection risk: {risk_level}.",
        ),
    ],
    "work_permit.submitted": [
        NotificationTemplate(
            key="work_permit_approval_requested",
            audience="permit_approvers",
            channels=(EMAIL, PUSH),
            subject="Work permit {ref} awaiting approval",
            body="Work permit {ref} ({title}, {permit_type}) needs approval from: {required_approvals}.",
        ),
    ],
    "work_permit.approved": [
        NotificationTemplate(
            key="work_permit_approved",
            audience="requester",
            channels=(EMAIL, WHATSAPP),
            subject="Work permit {ref} approved",
            body="Work permit {ref} ({title}) has been approved.",
        ),
    ],
    "work_permit.rejected": [
        NotificationTemplate(
            key="work_permit_rejected",
            audience="requester",
            channels=(EMAIL,),
            subject="Work permit {ref} rejected",
            body="Work permit {ref} ({title}) was rejected: {reason}",
        ),
    ],
}


def templates_for(event_type: str) -> List[NotificationTemplate]:
    return list(TEMPLATES.get(event_type, ()))
