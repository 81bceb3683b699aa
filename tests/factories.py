"""
Factory helpers for building database fixtures and inbox messages.
Kept separate from conftest.py so test modules can import them directly.
"""
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Optional, Sequence

from models import (
    Application,
    Certification,
    CertificationForm,
    DocumentUpload,
    FormSubmission,
    FormTemplate,
    Payment,
    Student,
    UploadedDocument,
)


def make_student(session, first_name="Ada", last_name="Lovelace", email="ada@example.com"):
    student = Student(first_name=first_name, last_name=last_name, email=email)
    session.add(student)
    session.flush()
    return student


def make_template(session, name="Form", filled_by="user", step_number=None, is_active=True):
    template = FormTemplate(
        name=name,
        filled_by=filled_by,
        step_number=step_number,
        fields=[],
        is_active=is_active,
    )
    session.add(template)
    session.flush()
    return template


def make_certification(session, slots: Sequence = (), name="Certificate III in Carpentry"):
    """
    Create a certification with form slots.

    slots: (template, step_number, filled_by) tuples, in insertion order.
    """
    certification = Certification(name=name)
    session.add(certification)
    session.flush()
    for template, step_number, filled_by in slots:
        session.add(CertificationForm(
            certification_id=certification.id,
            form_template_id=template.id,
            step_number=step_number,
            filled_by=filled_by,
            title=template.name,
        ))
    session.flush()
    return certification


def make_application(session, certification, student=None, **kwargs):
    student = student or make_student(session)
    application = Application(
        user_id=student.id,
        certification_id=certification.id,
        **kwargs,
    )
    session.add(application)
    session.flush()
    return application


def make_payment(session, application, status="completed", remaining_amount=0,
                 total_amount=1500, payment_type="one_time"):
    payment = Payment(
        application_id=application.id,
        payment_type=payment_type,
        status=status,
        total_amount=total_amount,
        remaining_amount=remaining_amount,
    )
    session.add(payment)
    session.flush()
    return payment


def make_upload(session, application, mime_types: Sequence[str] = ()):
    upload = DocumentUpload(application_id=application.id)
    session.add(upload)
    session.flush()
    for index, mime_type in enumerate(mime_types):
        session.add(UploadedDocument(
            upload_id=upload.id,
            document_type="evidence" if mime_type.startswith(("image/", "video/")) else "id",
            original_name=f"file-{index}",
            mime_type=mime_type,
        ))
    session.flush()
    session.refresh(upload)
    return upload


def make_raw_message(
    subject="Re: Employment Verification Request",
    body="Confirmed, they worked with us.",
    to="verify@example.com",
    delivered_to: Optional[str] = None,
    cc: Optional[str] = None,
    in_reply_to: Optional[str] = None,
    references: Optional[str] = None,
    sender="manager@employer.example",
) -> bytes:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = to
    message["Subject"] = subject
    message["Date"] = datetime.now(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S +0000")
    if delivered_to:
        message["Delivered-To"] = delivered_to
    if cc:
        message["Cc"] = cc
    if in_reply_to:
        message["In-Reply-To"] = in_reply_to
    if references:
        message["References"] = references
    message.set_content(body)
    return message.as_bytes()


def make_submission(session, application, template, filled_by="user", status="submitted",
                    assessed="pending", form_data=None):
    submission = FormSubmission(
        application_id=application.id,
        form_template_id=template.id,
        filled_by=filled_by,
        form_data=form_data or {"answer": "yes"},
        status=status,
        assessed=assessed,
        previous_versions=[],
        submitted_at=None if status == "draft" else datetime.now(timezone.utc),
    )
    session.add(submission)
    session.flush()
    return submission
