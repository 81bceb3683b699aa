"""
Step calculator for certification applications.

Fixed shape of the pipeline:
1. Payment
2. One form step per certification form slot (deduplicated by template,
   ordered by the slot's stage number)
3. Document Upload
4. Evidence Upload (images and videos)
5. Assessment (only when a slot is filled by a user, assessor or mapping)
6. Certificate Issue

The calculator is pure: it reads a snapshot loaded in one pass and never
touches the database, so the same snapshot always yields the same result.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from models.enums import (
    ASSESSMENT_DONE_STATUSES,
    FilledBy,
    OverallStatus,
    PaymentStatus,
    StepType,
    SubmissionStatus,
)

USER_VISIBLE_FILLERS = (FilledBy.USER, FilledBy.THIRD_PARTY)
ASSESSED_FILLERS = (FilledBy.USER, FilledBy.ASSESSOR, FilledBy.MAPPING)


@dataclass
class Step:
    step_number: int
    type: StepType
    title: str
    is_completed: bool
    status: str
    actor: str
    is_user_visible: bool
    is_required: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)
    filled_by: Optional[FilledBy] = None
    form_template_id: Optional[int] = None
    submission_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'step_number': self.step_number,
            'type': self.type.value,
            'title': self.title,
            'is_required': self.is_required,
            'is_completed': self.is_completed,
            'status': self.status,
            'actor': self.actor,
            'is_user_visible': self.is_user_visible,
            'metadata': self.metadata,
        }
        if self.type == StepType.FORM:
            data['filled_by'] = self.filled_by.value
            data['form_template_id'] = self.form_template_id
            data['submission_id'] = self.submission_id
        return data


@dataclass
class ProgressSnapshot:
    """Every record the calculation depends on, read within one invocation."""
    application: Any
    form_slots: List[Any]
    payment: Any = None
    form_submissions: List[Any] = field(default_factory=list)
    third_party_submissions: List[Any] = field(default_factory=list)
    document_upload: Any = None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def unique_form_slots(form_slots: List[Any]) -> List[Any]:
    """
    Collapse slots sharing a template (first occurrence wins), drop
    inactive templates, then order by stage number.
    """
    seen = set()
    unique = []
    for slot in form_slots:
        if slot.form_template_id in seen:
            continue
        seen.add(slot.form_template_id)
        unique.append(slot)

    active = [
        slot for slot in unique
        if slot.form_template is None or slot.form_template.is_active is not False
    ]
    # sorted() is stable, so equal stage numbers keep first-seen order
    return sorted(active, key=lambda s: (s.step_number is None, s.step_number or 0))


class StepCalculator:
    """Derives the ordered step list, current step and overall status."""

    def __init__(self, snapshot: ProgressSnapshot):
        self.snapshot = snapshot
        self.application = snapshot.application
        self.steps: List[Step] = []

    def calculate(self) -> Dict[str, Any]:
        """
        Calculate all steps for the application.

        Returns:
            Progress read model
        """
        self.steps = []
        slots = unique_form_slots(self.snapshot.form_slots)

        self._add_payment_step()
        for slot in slots:
            self._add_form_step(slot)
        self._add_document_step()
        self._add_evidence_step()
        if any(FilledBy(slot.filled_by) in ASSESSED_FILLERS for slot in slots):
            self._add_assessment_step(slots)
        self._add_certificate_step()

        total_steps = len(self.steps)
        completed_steps = sum(1 for step in self.steps if step.is_completed)

        return {
            'application_id': self.application.id,
            'current_step': current_step_number(self.steps),
            'total_steps': total_steps,
            'completed_steps': completed_steps,
            'steps': [step.to_dict() for step in self.steps],
            'progress_percentage': round(completed_steps / total_steps * 100) if total_steps else 0,
            'overall_status': overall_status(self.steps).value,
            'user_view': self._user_view(),
        }

    def _next_number(self) -> int:
        return len(self.steps) + 1

    def _add_payment_step(self) -> None:
        payment = self.snapshot.payment
        self.steps.append(Step(
            step_number=self._next_number(),
            type=StepType.PAYMENT,
            title='Payment',
            is_completed=bool(payment and payment.is_fully_paid()),
            status=payment_status(payment),
            actor='student',
            is_user_visible=True,
            metadata={
                'payment_type': payment.payment_type if payment else 'pending',
                'total_amount': float(payment.total_amount or 0) if payment else 0,
                'remaining_amount': float(payment.remaining_amount or 0) if payment else 0,
            }
        ))

    def _add_form_step(self, slot) -> None:
        filled_by = FilledBy(slot.filled_by)
        template = slot.form_template

        if filled_by == FilledBy.THIRD_PARTY:
            is_completed, status, submission, extra = self._third_party_form_state(slot)
            actor = 'third_party'
        elif filled_by == FilledBy.USER:
            is_completed, status, submission, extra = self._filler_form_state(slot)
            actor = 'student'
        elif filled_by == FilledBy.ASSESSOR or filled_by == FilledBy.MAPPING:
            is_completed, status, submission, extra = self._filler_form_state(slot)
            actor = 'assessor'
        else:
            raise ValueError(f"Unhandled form filler: {filled_by}")

        metadata = {
            'certification_step_number': slot.step_number,
            'submitted_at': _iso(getattr(submission, 'submitted_at', None)),
            'assessment_required': filled_by in (FilledBy.USER, FilledBy.MAPPING),
            'resubmission_required': bool(getattr(submission, 'requires_resubmission', False)),
            'version': getattr(submission, 'version', None) or 1,
            'assessor_feedback': getattr(submission, 'assessor_feedback', None),
            'assessed': getattr(submission, 'assessed', None),
        }
        metadata.update(extra)

        self.steps.append(Step(
            step_number=self._next_number(),
            type=StepType.FORM,
            title=slot.title or (template.name if template else f'Form {slot.form_template_id}'),
            is_required=slot.is_required is not False,
            is_completed=is_completed,
            status=status,
            actor=actor,
            is_user_visible=filled_by in USER_VISIBLE_FILLERS,
            metadata=metadata,
            filled_by=filled_by,
            form_template_id=slot.form_template_id,
            submission_id=getattr(submission, 'id', None),
        ))

    def _filler_form_state(self, slot) -> Tuple[bool, str, Any, Dict[str, Any]]:
        """User, assessor and mapping forms: submitted or assessed, and not sent back."""
        submission = next((
            s for s in self.snapshot.form_submissions
            if s.form_template_id == slot.form_template_id
            and s.filled_by != FilledBy.THIRD_PARTY.value
        ), None)

        if submission is None:
            status = 'not_started'
        elif submission.requires_resubmission:
            status = 'resubmission_required'
        elif submission.status in (SubmissionStatus.SUBMITTED.value, SubmissionStatus.ASSESSED.value):
            status = 'completed'
        else:
            status = 'in_progress'
        return status == 'completed', status, submission, {}

    def _third_party_form_state(self, slot) -> Tuple[bool, str, Any, Dict[str, Any]]:
        """Third-party forms: the request's completion flag, unless the merged submission was sent back."""
        requests = [
            r for r in self.snapshot.third_party_submissions
            if r.form_template_id == slot.form_template_id
        ]
        request = requests[-1] if requests else None
        merged = next((
            s for s in self.snapshot.form_submissions
            if s.form_template_id == slot.form_template_id
            and s.filled_by == FilledBy.THIRD_PARTY.value
        ), None)

        if merged is not None and merged.requires_resubmission:
            status = 'resubmission_required'
        elif request is not None and request.is_fully_completed:
            status = 'completed'
        elif request is not None and request.is_partially_submitted:
            status = 'in_progress'
        else:
            status = 'not_started'

        extra = {
            'third_party_request_id': request.id if request else None,
            'verification_status': request.verification_status if request else None,
        }
        return status == 'completed', status, merged or request, extra

    def _add_document_step(self) -> None:
        upload = self.snapshot.document_upload
        documents = upload.supporting_documents if upload else []
        document_count = len(documents)
        self.steps.append(Step(
            step_number=self._next_number(),
            type=StepType.DOCUMENT_UPLOAD,
            title='Document Upload',
            is_completed=document_count > 0,
            status='completed' if document_count > 0 else 'not_started',
            actor='student',
            is_user_visible=True,
            metadata={
                'document_count': document_count,
                'rejected_count': sum(1 for d in documents if d.verification_status == 'rejected'),
                'uploaded_at': _iso(upload.updated_at) if upload else None,
                'verification_status': upload.status if upload else 'pending',
            }
        ))

    def _add_evidence_step(self) -> None:
        upload = self.snapshot.document_upload
        image_count = upload.image_count if upload else 0
        video_count = upload.video_count if upload else 0
        has_evidence = image_count + video_count > 0
        self.steps.append(Step(
            step_number=self._next_number(),
            type=StepType.EVIDENCE_UPLOAD,
            title='Evidence Upload',
            is_completed=has_evidence,
            status='completed' if has_evidence else 'not_started',
            actor='student',
            is_user_visible=True,
            metadata={
                'image_count': image_count,
                'video_count': video_count,
                'total_evidence_count': image_count + video_count,
                'uploaded_at': _iso(upload.updated_at) if upload else None,
            }
        ))

    def _add_assessment_step(self, slots) -> None:
        fillers = {FilledBy(slot.filled_by) for slot in slots}
        self.steps.append(Step(
            step_number=self._next_number(),
            type=StepType.ASSESSMENT,
            title='Assessment',
            is_completed=self.application.overall_status in ASSESSMENT_DONE_STATUSES,
            status=self._assessment_status(),
            actor='assessor',
            is_user_visible=False,
            metadata={
                'assigned_assessor': self.application.assigned_assessor_id,
                'has_assessor_forms': FilledBy.ASSESSOR in fillers,
                'has_user_forms': bool(fillers & {FilledBy.USER, FilledBy.MAPPING}),
            }
        ))

    def _assessment_status(self) -> str:
        status = self.application.overall_status
        if status in ASSESSMENT_DONE_STATUSES:
            return 'completed'
        if status == OverallStatus.ASSESSMENT_PENDING.value:
            return 'in_progress'
        if self.application.assigned_assessor_id:
            return 'assigned'
        return 'pending'

    def _add_certificate_step(self) -> None:
        application = self.application
        issued = application.has_final_certificate
        self.steps.append(Step(
            step_number=self._next_number(),
            type=StepType.CERTIFICATE,
            title='Certificate Issue',
            is_completed=issued,
            status='completed' if issued else 'pending',
            actor='admin',
            is_user_visible=False,
            metadata={
                'certificate_number': application.final_certificate_number,
                'issued_at': _iso(application.final_certificate_issued_at),
                'expiry_date': _iso(application.final_certificate_expiry_date),
            }
        ))

    def _user_view(self) -> Dict[str, Any]:
        """Progress over the steps a student can see, numbered as in the full list."""
        user_steps = [step for step in self.steps if step.is_user_visible]
        completed = sum(1 for step in user_steps if step.is_completed)
        return {
            'current_step': current_step_number(user_steps) if user_steps else 1,
            'total_steps': len(user_steps),
            'completed_steps': completed,
            'progress_percentage': round(completed / len(user_steps) * 100) if user_steps else 0,
        }


def payment_status(payment) -> str:
    if payment is None:
        return 'payment_required'
    if payment.is_fully_paid():
        return 'completed'
    if payment.status == PaymentStatus.PROCESSING.value:
        return 'processing'
    if payment.status == PaymentStatus.FAILED.value:
        return 'failed'
    return 'payment_required'


def current_step_number(steps: List[Step]) -> int:
    """First incomplete step, or the last step when everything is done."""
    for step in steps:
        if not step.is_completed:
            return step.step_number
    return steps[-1].step_number


def overall_status(steps: List[Step]) -> OverallStatus:
    """Derive the overall status from the step list, first match wins."""
    completed = [step for step in steps if step.is_completed]
    if not completed:
        return OverallStatus.PAYMENT_PENDING
    if len(completed) == len(steps):
        return OverallStatus.COMPLETED

    by_type = {}
    for step in steps:
        by_type.setdefault(step.type, []).append(step)

    payment_done = by_type[StepType.PAYMENT][0].is_completed
    forms_done = all(step.is_completed for step in by_type.get(StepType.FORM, []))
    documents_done = by_type[StepType.DOCUMENT_UPLOAD][0].is_completed
    evidence_done = by_type[StepType.EVIDENCE_UPLOAD][0].is_completed
    assessment = by_type.get(StepType.ASSESSMENT)

    if not payment_done:
        return OverallStatus.PAYMENT_PENDING
    if not forms_done:
        return OverallStatus.IN_PROGRESS
    if not documents_done or not evidence_done:
        return OverallStatus.IN_PROGRESS
    if assessment and not assessment[0].is_completed:
        return OverallStatus.ASSESSMENT_PENDING
    return OverallStatus.ASSESSMENT_COMPLETED
