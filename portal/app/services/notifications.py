"""
Applicant-facing notification text for lifecycle events.

Delivery (email, push, in-app inbox) belongs to a separate service; this module
renders title/message pairs and hands them to the logger so the delivery side can
be attached as another `events` subscriber.
"""
import logging
from typing import Any

from . import events

logger = logging.getLogger(__name__)


def build_status_notification(payload: dict[str, Any]) -> dict[str, str] | None:
    status = payload.get("to_status")
    target = (payload.get("target_title") or "the position").strip()

    if status == "withdrawn":
        # Applicant initiated; nothing to tell them.
        return None

    next_steps = payload.get("next_steps")
    if status == "under_review":
        title, message = "Application Under Review", f"Your application for {target} is now being reviewed."
    elif status == "shortlisted":
        title = "You've Been Shortlisted!"
        message = f"Great news! You've been shortlisted for {target}. We'll contact you soon regarding the next steps."
    elif status == "interviewed":
        title = "Interview Scheduled"
        when = payload.get("interview_date")
        message = (
            f"Your interview for {target} has been scheduled for {when}."
            if when
            else f"Your interview for {target} has been scheduled."
        )
    elif status == "approved":
        title = "Application Approved"
        message = f"Congratulations! Your application for {target} has been approved. {next_steps or 'We will contact you soon with the next steps.'}"
    elif status == "denied":
        title = "Application Update"
        reason = payload.get("denial_reason") or "Please check your application for more information."
        message = f"Your application for {target} was reviewed. {reason} We encourage you to apply for other positions."
    elif status == "hired":
        title = "Welcome to the Team!"
        message = f"Congratulations! You've been hired for {target}. {next_steps or 'HR will contact you with onboarding details.'}"
    elif status == "certified":
        title = "Certificate Issued"
        message = f"Your certificate for {target} has been issued."
    elif status == "archived":
        title, message = "Application Archived", f"Your application for {target} has been archived."
    else:
        title, message = "Application Status Updated", f"Your application status for {target} has been updated."

    return {"title": title, "message": message.strip()}


def build_reroute_notification(payload: dict[str, Any]) -> dict[str, str]:
    old = payload.get("from_job_title") or "your previous position"
    new = payload.get("to_job_title") or "another position"
    message = (
        f'Your application for "{old}" has been re-routed to "{new}", '
        f"a position that matches your qualifications."
    )
    if payload.get("message"):
        message = f"{message} {payload['message']}"
    return {"title": "Application Re-routed", "message": message}


def build_release_notification(payload: dict[str, Any]) -> dict[str, str]:
    target = (payload.get("target_title") or "a position").strip()
    message = f'Your hire status for "{target}" has been released. You may now apply for other positions.'
    if payload.get("release_reason"):
        message = f"{message} Reason: {payload['release_reason']}"
    return {"title": "Hire Status Released", "message": message}


def log_notification(event_name: str, payload: dict[str, Any]) -> None:
    if event_name == events.APPLICATION_REROUTED:
        note = build_reroute_notification(payload)
    elif event_name == events.HIRE_RELEASED:
        note = build_release_notification(payload)
    else:
        note = build_status_notification(payload)
    if not note:
        return
    logger.info(
        "notify applicant=%s application=%s title=%r message=%r",
        payload.get("applicant_id"),
        payload.get("application_id"),
        note["title"],
        note["message"],
    )


def register() -> None:
    events.subscribe(events.STATUS_CHANGED, log_notification)
    events.subscribe(events.APPLICATION_REROUTED, log_notification)
    events.subscribe(events.HIRE_RELEASED, log_notification)
