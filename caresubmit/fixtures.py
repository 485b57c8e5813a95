"""Seed data for form sessions.

Every fixture is a factory returning fresh objects so that forms can be reset
to exactly their initial state and no two sessions share mutable data.
"""

from __future__ import annotations

import calendar
import random
from datetime import date
from typing import Any

from caresubmit.models import DailyServiceRecord, DocumentRequirement, License, ServiceLine, SubmissionRecord


_CLAIM_DOCUMENTS: tuple[tuple[str, str, bool, str], ...] = (
    ("claim-form", "Daman Claim Submission Form", True, "Official Daman form for claim submission"),
    ("service-log", "Service Log/Visit Notes", True, "Detailed log of all services provided during billing period"),
    ("authorization-letter", "Authorization Approval Letter", True, "Copy of the approved authorization letter from Daman"),
    ("invoice", "Detailed Invoice", True, "Itemized invoice for all services being claimed"),
    ("attendance-sheet", "Staff Attendance Sheet", True, "Staff attendance record with timestamps for each visit"),
    ("clinical-notes", "Clinical Progress Notes", True, "Clinical documentation for the billing period"),
    ("mar", "Medication Administration Record", True, "Documentation of medication administration during billing period"),
    ("vital-signs", "Vital Signs Monitoring Sheet", True, "Record of patient's vital signs measurements"),
    ("thiqa-card", "Patient Thiqa Card copy", True, "Copy of patient's Thiqa insurance card"),
    ("emirates-id", "Patient Emirates ID copy", True, "Copy of patient's Emirates ID"),
    ("provider-licenses", "Provider Licenses", True, "Copies of professional licenses for all providers"),
    ("previous-claim", "Previous Claim Documentation", False, "Documentation from previous claims (if applicable)"),
)

_AUTHORIZATION_DOCUMENTS: tuple[tuple[str, str, bool, str], ...] = (
    ("auth-request-form", "Daman Authorization Request Form", True, "Official Daman form for requesting prior authorization"),
    ("medical-report", "Medical Report/Discharge Summary", True, "Recent medical report or hospital discharge summary"),
    ("face-to-face", "Face-to-Face Assessment Form", True, "Physician face-to-face encounter documentation"),
    ("daman-consent", "Daman Consent Form", True, "Patient consent for Daman to process the request"),
    ("doh-assessment", "DOH Healthcare Assessment Form (Scoring)", True, "DOH homecare eligibility scoring"),
    ("medication-list", "Medication List", True, "Current medications with dosage and frequency"),
    ("physician-report", "Physician Internal Medical Report", True, "Internal medical report from the treating physician"),
    ("vital-signs", "Vital Signs Monitoring Sheet", True, "Record of patient's vital signs measurements"),
    ("mar", "Medication Administration Record (MAR)", True, "Medication administration record"),
    ("pt-ot-form", "Daman PT & OT Assessment Form", False, "Therapy assessment when PT/OT is requested"),
    ("thiqa-card", "Patient Thiqa Card copy", True, "Copy of patient's Thiqa insurance card"),
    ("emirates-id", "Patient Emirates ID copy", True, "Copy of patient's Emirates ID"),
    ("nurse-license", "Nurse License verification", True, "DOH license of the assigned nurse"),
    ("physician-license", "Physician License verification", True, "DOH license of the referring physician"),
    ("therapist-license", "Therapist License verification", False, "DOH license of the assigned therapist"),
    ("location-map", "Location Map with GPS coordinates", True, "Map of the patient's residence"),
    ("justification-letter", "Justification Letter", False, "Additional clinical justification"),
    ("previous-auth", "Previous Authorization Letter", False, "Most recent authorization letter (if any)"),
    ("progress-notes", "Clinical Progress Notes", True, "Recent clinical progress notes"),
    ("lab-results", "Laboratory Results", True, "Recent laboratory results"),
    ("imaging-reports", "Imaging Reports", False, "Relevant imaging reports"),
    ("specialist-notes", "Specialist Consultation Notes", False, "Notes from specialist consultations"),
    ("equipment-list", "Equipment/Supply Requirements List", True, "Medical equipment and supplies required at home"),
)


def _documents(entries: tuple[tuple[str, str, bool, str], ...]) -> list[DocumentRequirement]:
    return [
        DocumentRequirement(id=doc_id, name=name, required=required, description=description)
        for doc_id, name, required, description in entries
    ]


def claim_documents() -> list[DocumentRequirement]:
    return _documents(_CLAIM_DOCUMENTS)


def authorization_documents() -> list[DocumentRequirement]:
    return _documents(_AUTHORIZATION_DOCUMENTS)


def default_service_lines(authorization_id: str = "AUTH-12345") -> list[ServiceLine]:
    return [
        ServiceLine(
            id="sl-001",
            service_code="HN001",
            service_description="Home Nursing Visit - Standard",
            quantity=30,
            unit_price=250.0,
            date_of_service="2024-01-20 to 2024-02-19",
            provider_id="N12345",
            provider_name="Nurse Sarah Ahmed",
            authorization_reference=authorization_id,
        ),
        ServiceLine(
            id="sl-002",
            service_code="PT001",
            service_description="Physical Therapy Session - Standard",
            quantity=12,
            unit_price=300.0,
            date_of_service="2024-01-22 to 2024-02-17",
            provider_id="PT6789",
            provider_name="Therapist Ali Hassan",
            authorization_reference=authorization_id,
        ),
    ]


def default_licenses() -> list[License]:
    rows: list[dict[str, Any]] = [
        {
            "id": "license-1", "clinician_name": "Sarah Ahmed", "employee_id": "N12345", "role": "Nurse",
            "department": "Nursing", "license_number": "DOH-N-2023-12345", "issue_date": "2023-01-15",
            "expiry_date": "2025-01-14", "license_status": "Active", "compliance_status": "Compliant",
            "continuing_education_completed": True,
        },
        {
            "id": "license-2", "clinician_name": "Ali Hassan", "employee_id": "PT6789", "role": "PT",
            "department": "Therapy", "license_number": "DOH-PT-2022-67890", "issue_date": "2022-03-10",
            "expiry_date": "2024-03-09", "license_status": "Pending Renewal", "compliance_status": "Compliant",
            "renewal_initiated": True, "continuing_education_completed": True,
        },
        {
            "id": "license-3", "clinician_name": "Dr. Mohammed Al Mansoori", "employee_id": "MD3001", "role": "Physician",
            "department": "Medical", "license_number": "DOH-MD-2021-54321", "issue_date": "2021-05-20",
            "expiry_date": "2024-05-19", "license_status": "Active", "compliance_status": "Non-Compliant",
        },
        {
            "id": "license-4", "clinician_name": "Fatima Al Zaabi", "employee_id": "OT4567", "role": "OT",
            "department": "Therapy", "license_number": "DOH-OT-2022-13579", "issue_date": "2022-09-15",
            "expiry_date": "2023-09-14", "license_status": "Expired", "compliance_status": "Non-Compliant",
            "continuing_education_completed": True, "currently_active_for_claims": False,
        },
        {
            "id": "license-5", "clinician_name": "Khalid Rahman", "employee_id": "ST8901", "role": "ST",
            "department": "Therapy", "license_number": "DOH-ST-2023-24680", "issue_date": "2023-04-01",
            "expiry_date": "2024-03-31", "license_status": "Pending Renewal", "compliance_status": "Compliant",
            "renewal_initiated": True, "continuing_education_completed": True,
        },
    ]
    return [License.model_validate(row) for row in rows]


def claim_history() -> list[SubmissionRecord]:
    return [
        SubmissionRecord(
            id="claim-001", reference_number="DAMAN-CL-2023-12345", submission_date="2023-12-15",
            status="paid", amount=11250.0, paid_amount=11250.0,
            comments="Claim processed and payment issued", reviewer="Daman Claims Department",
            review_date="2023-12-22", payment_date="2023-12-25", payment_reference="PAY-2023-98765",
        ),
        SubmissionRecord(
            id="claim-002", reference_number="DAMAN-CL-2024-00123", submission_date="2024-01-15",
            status="partial", amount=10800.0, paid_amount=9720.0,
            comments="Partial payment due to service code adjustment", reviewer="Daman Claims Department",
            review_date="2024-01-22", payment_date="2024-01-25", payment_reference="PAY-2024-12345",
        ),
        SubmissionRecord(
            id="claim-003", reference_number="DAMAN-CL-2024-00456", submission_date="2024-02-15",
            status="in-review", amount=11100.0,
            comments="Under financial review", reviewer="Daman Claims Department",
        ),
    ]


def authorization_history() -> list[SubmissionRecord]:
    return [
        SubmissionRecord(
            id="sub-001", reference_number="DAMAN-PA-2023-12345", submission_date="2023-11-15",
            status="approved", comments="Approved for 30 days of home healthcare services",
            reviewer="Dr. Ahmed Al Mansouri", review_date="2023-11-20",
        ),
        SubmissionRecord(
            id="sub-002", reference_number="DAMAN-PA-2023-12789", submission_date="2023-12-10",
            status="rejected", comments="Insufficient clinical justification for continued services",
            reviewer="Dr. Fatima Al Zaabi", review_date="2023-12-15",
        ),
        SubmissionRecord(
            id="sub-003", reference_number="DAMAN-PA-2024-00123", submission_date="2024-01-05",
            status="additional-info", comments="Please provide updated clinical assessment and recent lab results",
            reviewer="Dr. Mohammed Al Hashimi", review_date="2024-01-08",
        ),
        SubmissionRecord(
            id="sub-004", reference_number="DAMAN-PA-2024-00456", submission_date="2024-02-20",
            status="in-review", comments="Under clinical review", reviewer="Pending",
        ),
    ]


def claim_defaults() -> dict[str, Any]:
    return {
        "claim_type": "initial",
        "billing_period": "current-month",
        "claim_notes": "",
        "include_all_services": True,
    }


def authorization_defaults() -> dict[str, Any]:
    return {
        "clinical_justification": "",
        "requested_services": [],
        "requested_duration": 30,
        "urgency_level": "standard",
        "additional_notes": "",
    }


EMERGENCY_REQUIRED_FIELDS: tuple[str, ...] = (
    "overall_risk_level",
    "primary_emergency_contact",
    "primary_contact_phone",
    "cardiac_emergency_procedure",
    "respiratory_emergency_procedure",
    "emergency_kit_location",
    "primary_communication_method",
    "staff_training_completed",
    "plan_last_reviewed",
    "incident_reporting_procedure",
)
EMERGENCY_SELECTION_GROUPS: tuple[str, ...] = ("equipment", "communication", "emergency_types")

QUALITY_REQUIRED_FIELDS: tuple[str, ...] = (
    "overall_quality_score",
    "patient_satisfaction_score",
    "clinical_outcomes_score",
    "last_audit_date",
    "audit_score",
    "compliance_status",
    "current_initiatives",
    "improvement_goals",
    "staff_competency_assessment",
    "identified_risks",
)
QUALITY_SELECTION_GROUPS: tuple[str, ...] = ("indicators", "audit_types")


def emergency_defaults() -> dict[str, Any]:
    values: dict[str, Any] = {name: "" for name in EMERGENCY_REQUIRED_FIELDS}
    values.update(
        {
            "medical_complexity": "low",
            "mobility_limitations": "none",
            "cognitive_status": "intact",
            "local_emergency_services": "911",
            "poison_control_center": "1-800-222-1222",
            "backup_power_source": "no",
            "water_supply": "adequate",
            "food_supply": "adequate",
            "emergency_notification_system": "no",
            "regulatory_compliance": "yes",
        }
    )
    return values


def quality_defaults() -> dict[str, Any]:
    values: dict[str, Any] = {name: "" for name in QUALITY_REQUIRED_FIELDS}
    values.update({"quality_committee": "active", "meeting_frequency": "monthly"})
    return values


_PROVIDERS_BY_SERVICE: dict[str, tuple[str, str]] = {
    "nursing": ("N12345", "Sarah Ahmed"),
    "physiotherapy": ("PT6789", "Ali Hassan"),
    "occupational": ("OT4567", "Fatima Al Zaabi"),
    "speech": ("ST8901", "Khalid Rahman"),
}


def _pick_service_type(rng: random.Random) -> str:
    roll = rng.random()
    if roll > 0.6:
        return "nursing"
    if roll > 0.3:
        return "physiotherapy"
    if roll > 0.15:
        return "occupational"
    return "speech"


def generate_daily_records(year: int, month: int, *, today: date, rng: random.Random) -> list[DailyServiceRecord]:
    """Create plausible per-day service records for every past day of a month.

    Weekends are less likely to have a visit, and older visits are more likely
    to have complete documentation.
    """

    records: list[DailyServiceRecord] = []
    days_in_month = calendar.monthrange(year, month)[1]
    for day in range(1, days_in_month + 1):
        current = date(year, month, day)
        if current >= today:
            break
        is_weekend = current.weekday() >= 5
        has_service = rng.random() > (0.7 if is_weekend else 0.2)
        if not has_service:
            records.append(
                DailyServiceRecord(
                    service_date=current,
                    service_provided=False,
                    notes="Weekend - No scheduled service" if is_weekend else "No service provided",
                )
            )
            continue

        service_type = _pick_service_type(rng)
        provider_id, provider_name = _PROVIDERS_BY_SERVICE[service_type]
        days_since = (today - current).days
        complete = rng.random() < min(0.95, 0.7 + days_since * 0.05)
        records.append(
            DailyServiceRecord(
                service_date=current,
                service_provided=True,
                service_type=service_type,
                provider_id=provider_id,
                provider_name=provider_name,
                documentation_complete=complete,
                documentation_id=f"DOC-{day}-{month}-{year}" if complete else None,
                notes=None if complete else "Documentation pending completion",
            )
        )
    return records
