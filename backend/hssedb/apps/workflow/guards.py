from __future__ import annotations

from typing import Any, Dict, List

GuardResult = List[Dict[str, str]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _state(value: Any) -> Any:
    return getattr(value, "value", value)


def guard_lessons_learned_documented(
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    responses = _get_value(after_obj, "responses") or []
    for response in responses:
        if _state(_get_value(response, "response_type")) == "LESSONS_LEARNED":
            return []
    return [{"field": "responses", "reason": "Lessons learned must be documented before closing"}]


def guard_attendance_present(
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    if _get_value(after_obj, "is_present") is not True:
        missing.append({"field": "is_present", "reason": "Participant must be attended first"})
    if not _get_value(after_obj, "attendance_marked_at"):
        missing.append({"field": "attendance_marked_at", "reason": "attendance timestamp required"})
    return missing


def guard_required_precautions_completed(
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    for precaution in _get_value(after_obj, "precautions") or []:
        if _get_value(precaution, "is_required") and not _get_value(precaution, "is_completed"):
            missing.append(
                {
                    "field": "precautions",
                    "reason": f"Required precaution not completed: {_get_value(precaution, 'description')}",
                }
            )
    return missing


def guard_verification_required(
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if _get_value(after_obj, "requires_verification"):
        return []
    return [{"field": "requires_verification", "reason": "This requirement does not require verification"}]
