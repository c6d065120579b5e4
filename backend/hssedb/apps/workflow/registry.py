from __future__ import annotations

from .guards import (
    guard_attendance_present,
    guard_lessons_learned_documented,
    guard_required_precautions_completed,
    guard_verification_required,
)

# Each workflow lists the legal edges FROM -> TO with the guards that must
# pass, plus the message raised when TO is requested from any other state.
WORKFLOWS = {
    "training": {
        "label": "Training",
        "transitions": {
            "DRAFT": {"SCHEDULED": [], "CANCELLED": []},
            "SCHEDULED": {"SCHEDULED": [], "IN_PROGRESS": [], "CANCELLED": []},
            "IN_PROGRESS": {"COMPLETED": [], "CANCELLED": []},
            "COMPLETED": {},
            "CANCELLED": {},
        },
        "requirements": {
            "SCHEDULED": "Training must be in draft or scheduled status to be scheduled",
            "IN_PROGRESS": "Training must be scheduled before it can be started",
            "COMPLETED": "Training must be in progress before it can be completed",
            "CANCELLED": "Training must be draft, scheduled or in progress to be cancelled",
        },
    },
    "training_participant": {
        "label": "Participant",
        "transitions": {
            "ENROLLED": {"ATTENDED": [], "ABSENT": [], "CANCELLED": []},
            "WAITLISTED": {"ENROLLED": [], "CANCELLED": []},
            "ATTENDED": {
                "ATTENDED": [],
                "ABSENT": [],
                "IN_PROGRESS": [guard_attendance_present],
                "COMPLETED": [guard_attendance_present],
                "FAILED": [guard_attendance_present],
                "CANCELLED": [],
            },
            "IN_PROGRESS": {
                "ATTENDED": [],
                "ABSENT": [],
                "COMPLETED": [guard_attendance_present],
                "FAILED": [guard_attendance_present],
                "CANCELLED": [],
            },
            "ABSENT": {"CANCELLED": []},
            "COMPLETED": {"CANCELLED": []},
            "FAILED": {"ATTENDED": [guard_attendance_present], "CANCELLED": []},
            "CANCELLED": {"CANCELLED": []},
        },
        "requirements": {
            "ATTENDED": "Participant must be enrolled, attended or in progress to have attendance marked",
            "ABSENT": "Participant must be enrolled, attended or in progress to have attendance marked",
            "ENROLLED": "Participant must be waitlisted to be moved from the waitlist",
            "IN_PROGRESS": "Participant must be attended first",
            "COMPLETED": "Participant must be attended first",
            "FAILED": "Participant must be attended first",
        },
    },
    "training_requirement": {
        "label": "Requirement",
        "transitions": {
            "PENDING": {"IN_PROGRESS": [], "COMPLETED": [], "OVERDUE": [], "WAIVED": [], "NOT_APPLICABLE": []},
            "IN_PROGRESS": {"COMPLETED": [], "OVERDUE": [], "WAIVED": [], "NOT_APPLICABLE": []},
            "OVERDUE": {"IN_PROGRESS": [], "COMPLETED": [], "WAIVED": [], "NOT_APPLICABLE": []},
            "COMPLETED": {"VERIFIED": [guard_verification_required], "IN_PROGRESS": []},
            "VERIFIED": {"IN_PROGRESS": []},
            "WAIVED": {},
            "NOT_APPLICABLE": {},
        },
        "requirements": {
            "IN_PROGRESS": "Waived or not applicable requirements cannot be reopened",
            "COMPLETED": "Requirement is already completed or closed",
            "OVERDUE": "Only open requirements can become overdue",
            "VERIFIED": "Only completed requirements can be verified",
            "WAIVED": "Cannot waive completed or closed requirements",
            "NOT_APPLICABLE": "Completed or closed requirements cannot be marked not applicable",
        },
    },
    "certification": {
        "label": "Certification",
        "transitions": {
            "VALID": {"VALID": [], "SUSPENDED": [], "REVOKED": []},
            "SUSPENDED": {"VALID": [], "SUSPENDED": [], "REVOKED": []},
            # Renewal of a revoked certification is kept open; see DESIGN.md.
            "REVOKED": {"VALID": []},
        },
        "requirements": {
            "SUSPENDED": "Certification must be valid or suspended to be suspended",
            "REVOKED": "Certification is already revoked",
        },
    },
    "security_incident": {
        "label": "Incident",
        "transitions": {
            "OPEN": {"ASSIGNED": []},
            "ASSIGNED": {"ASSIGNED": [], "INVESTIGATING": []},
            "INVESTIGATING": {"INVESTIGATING": [], "CONTAINED": []},
            "CONTAINED": {"ERADICATING": []},
            "ERADICATING": {"RECOVERING": []},
            "RECOVERING": {"RESOLVED": []},
            "RESOLVED": {"CLOSED": [guard_lessons_learned_documented]},
            "CLOSED": {},
        },
        "requirements": {
            "ASSIGNED": "Incident must be open or assigned to be assigned",
            "INVESTIGATING": "Incident must be assigned before investigation",
            "CONTAINED": "Incident must be under investigation before containment",
            "ERADICATING": "Incident must be contained before eradication",
            "RECOVERING": "Incident must be in eradication phase before recovery",
            "RESOLVED": "Incident must be in recovery before it can be resolved",
            "CLOSED": "Incident must be resolved before closing",
        },
    },
    "security_control": {
        "label": "Control",
        "transitions": {
            "PLANNED": {"IMPLEMENTING": [], "RETIRED": []},
            "IMPLEMENTING": {"ACTIVE": [], "RETIRED": []},
            "ACTIVE": {"RETIRED": []},
            "RETIRED": {},
        },
        "requirements": {
            "IMPLEMENTING": "Can only start implementation of planned controls",
            "ACTIVE": "Can only complete implementation of controls that are being implemented",
            "RETIRED": "Control is already retired",
        },
    },
    "threat_indicator": {
        "label": "Threat indicator",
        "transitions": {
            "ACTIVE": {"INACTIVE": []},
            "INACTIVE": {"ACTIVE": []},
        },
        "requirements": {
            "INACTIVE": "Threat indicator is already inactive",
            "ACTIVE": "Threat indicator is already active",
        },
    },
    "inspection": {
        "label": "Inspection",
        "transitions": {
            "DRAFT": {"SCHEDULED": [], "CANCELLED": []},
            "SCHEDULED": {"SCHEDULED": [], "IN_PROGRESS": [], "CANCELLED": []},
            "IN_PROGRESS": {"COMPLETED": [], "CANCELLED": []},
            "COMPLETED": {"ARCHIVED": []},
            "CANCELLED": {"ARCHIVED": []},
            "ARCHIVED": {},
        },
        "requirements": {
            "SCHEDULED": "Inspection must be in draft or scheduled status to be scheduled",
            "IN_PROGRESS": "Inspection must be scheduled before it can be started",
            "COMPLETED": "Inspection must be in progress before it can be completed",
            "CANCELLED": "Completed or archived inspections cannot be cancelled",
            "ARCHIVED": "Inspection must be completed or cancelled before archiving",
        },
    },
    "inspection_finding": {
        "label": "Finding",
        "transitions": {
            "OPEN": {"IN_PROGRESS": []},
            "IN_PROGRESS": {"IN_PROGRESS": [], "RESOLVED": []},
            "RESOLVED": {"VERIFIED": []},
            "VERIFIED": {"CLOSED": []},
            "CLOSED": {"OPEN": []},
        },
        "requirements": {
            "IN_PROGRESS": "Corrective actions can only be assigned to open or in-progress findings",
            "RESOLVED": "Only in-progress findings can be marked as resolved",
            "VERIFIED": "Only resolved findings can be verified",
            "CLOSED": "Only verified findings can be closed",
            "OPEN": "Only closed findings can be reopened",
        },
    },
    "work_permit": {
        "label": "Work permit",
        "transitions": {
            "DRAFT": {"PENDING_APPROVAL": [], "CANCELLED": []},
            "PENDING_APPROVAL": {
                "PENDING_APPROVAL": [],
                "APPROVED": [],
                "REJECTED": [],
                "CANCELLED": [],
            },
            "APPROVED": {"IN_PROGRESS": [guard_required_precautions_completed], "CANCELLED": []},
            "IN_PROGRESS": {"COMPLETED": [], "CANCELLED": []},
            "REJECTED": {},
            "COMPLETED": {},
            "CANCELLED": {},
        },
        "requirements": {
            "PENDING_APPROVAL": "Only draft permits can be submitted for approval",
            "APPROVED": "Only permits pending approval can be approved",
            "REJECTED": "Only permits pending approval can be rejected",
            "IN_PROGRESS": "Only approved permits can be started",
            "COMPLETED": "Only in-progress permits can be completed",
            "CANCELLED": "Completed, rejected or already cancelled permits cannot be cancelled",
        },
    },
}
