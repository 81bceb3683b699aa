"""
Tests for third-party requests: token scoping, completion, merging and resubmission.
"""
from datetime import datetime, timedelta, timezone

import pytest

import config.settings as settings
from factories import make_application, make_certification, make_template
from models import Application, FormSubmission
from services.exceptions import AlreadyExistsError, AlreadySubmittedError, NotFoundError, ValidationError
from services.form_submission_service import FormSubmissionService
from services.third_party_form_service import ThirdPartyFormService

EMPLOYER = {"name": "Grace Hopper", "email": "grace@builder.example"}
REFERENCE = {"name": "Alan Turing", "email": "alan@referee.example"}


@pytest.fixture
def service(injector):
    return injector.get(ThirdPartyFormService)


@pytest.fixture
def template(session):
    return make_template(session, "Third Party Report", filled_by="third-party")


@pytest.fixture
def application(session, template):
    return make_application(session, make_certification(session, slots=[(template, 1, "third-party")]))


def emails(kafka):
    return kafka.on_topic(settings.EMAIL_TOPIC)


def merged_submission(session, application, template):
    return session.query(FormSubmission).filter_by(
        application_id=application.id,
        form_template_id=template.id,
        filled_by="third-party",
    ).one()


class TestInitiate:

    def test_distinct_emails_get_separate_links(self, session, service, application, template, kafka):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        assert tpr.is_same_email is False
        assert tpr.combined_token is None
        assert tpr.employer_token != tpr.reference_token
        assert [m["template"] for m in emails(kafka)] == ["third_party_employer", "third_party_reference"]
        assert emails(kafka)[0]["context"]["form_url"].endswith(tpr.employer_token)
        assert tpr.employer_email_sent and tpr.reference_email_sent
        assert [v.party for v in tpr.verifications] == ["employer", "reference"]
        assert all(v.status == "not_sent" for v in tpr.verifications)
        assert tpr.verification_status == "none"

    def test_same_email_collapses_to_one_combined_link(self, session, service, application, template, kafka):
        tpr = service.initiate(
            session, application.id, template.id,
            {"name": "Grace Hopper", "email": "a@x.com"},
            {"name": "Alan Turing", "email": "A@X.com"},
        )

        assert tpr.is_same_email is True
        assert tpr.combined_token
        assert len(emails(kafka)) == 1
        message = emails(kafka)[0]
        assert message["template"] == "third_party_combined"
        assert message["to"] == "a@x.com"
        assert message["context"]["reference_name"] == "Alan Turing"
        assert message["context"]["form_url"].endswith(tpr.combined_token)
        assert tpr.combined_email_sent is True
        assert [v.party for v in tpr.verifications] == ["combined"]

    def test_individual_tokens_of_same_email_request_do_not_resolve(self, session, service, application, template):
        tpr = service.initiate(
            session, application.id, template.id,
            {"name": "Grace Hopper", "email": "a@x.com"},
            {"name": "Alan Turing", "email": "A@X.com"},
        )

        with pytest.raises(NotFoundError):
            service.get_form(session, tpr.employer_token)
        with pytest.raises(NotFoundError):
            service.submit(session, tpr.reference_token, {"role": "Carpenter"})

        form = service.get_form(session, tpr.combined_token)
        assert form["access_type"] == "combined"
        assert form["is_same_email"] is True

    def test_live_request_blocks_a_second_one(self, session, service, application, template, kafka):
        service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        with pytest.raises(AlreadyExistsError):
            service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        assert len(emails(kafka)) == 2

    def test_expired_request_can_be_replaced(self, session, service, application, template):
        first = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)
        first.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        session.flush()

        second = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        assert second.id != first.id
        with pytest.raises(NotFoundError):
            service.get_form(session, first.employer_token)

    @pytest.mark.parametrize("employer", [
        {"name": "", "email": "grace@builder.example"},
        {"name": "Grace Hopper", "email": "not-an-email"},
        None,
    ])
    def test_invalid_party_details_are_rejected(self, session, service, application, template, employer, kafka):
        with pytest.raises(ValidationError):
            service.initiate(session, application.id, template.id, employer, REFERENCE)
        assert emails(kafka) == []

    def test_unknown_application_or_non_third_party_template(self, session, service, application, template):
        user_template = make_template(session, "Enrolment", filled_by="user")

        with pytest.raises(NotFoundError):
            service.initiate(session, 999, template.id, EMPLOYER, REFERENCE)
        with pytest.raises(NotFoundError):
            service.initiate(session, application.id, user_template.id, EMPLOYER, REFERENCE)


class TestSubmit:

    def test_one_slot_is_partial(self, session, service, application, template, kafka):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        result = service.submit(session, tpr.employer_token, {"role": "Carpenter"}, ip_address="10.0.0.1")

        assert result == {
            "id": tpr.id,
            "access_type": "employer",
            "status": "partially_completed",
            "is_fully_completed": False,
            "form_submission_id": None,
        }
        assert kafka.on_topic(settings.PROGRESS_TOPIC) == []
        assert tpr.get_slot("employer")["ip_address"] == "10.0.0.1"

    def test_both_slots_merge_with_reference_taking_precedence(self, session, service, application, template, kafka):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        service.submit(session, tpr.employer_token, {"role": "Carpenter", "start_date": "2019-02-01"})
        result = service.submit(session, tpr.reference_token, {"role": "Site lead", "phone": "0400 000 000"})

        assert result["status"] == "completed"
        assert result["is_fully_completed"] is True
        merged = merged_submission(session, application, template)
        assert result["form_submission_id"] == merged.id
        assert merged.form_data == {"role": "Site lead", "start_date": "2019-02-01", "phone": "0400 000 000"}
        assert merged.status == "submitted"
        assert merged.submission_metadata["third_party_request_id"] == tpr.id

        events = kafka.on_topic(settings.PROGRESS_TOPIC)
        assert len(events) == 1
        assert events[0]["application_id"] == application.id
        assert events[0]["reason"] == "third_party_completed"

    def test_completion_recomputes_application_progress(self, session, service, application, template):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        service.submit(session, tpr.employer_token, {"role": "Carpenter"})
        service.submit(session, tpr.reference_token, {"role": "Carpenter"})

        stored = session.get(Application, application.id)
        assert stored.overall_status == "payment_pending"
        assert stored.current_step == 1

    def test_progress_is_recomputed_before_the_event_is_published(
            self, session, service, application, template, kafka, monkeypatch):
        calls = []
        recompute = service.progress_service.update_application_progress
        publish = kafka.publish_progress_recompute
        monkeypatch.setattr(service.progress_service, "update_application_progress",
                            lambda *args: calls.append("recompute") or recompute(*args))
        monkeypatch.setattr(kafka, "publish_progress_recompute",
                            lambda *args: calls.append("event") or publish(*args))
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        service.submit(session, tpr.employer_token, {"role": "Carpenter"})
        service.submit(session, tpr.reference_token, {"role": "Carpenter"})

        assert calls == ["recompute", "event"]

    def test_combined_slot_completes_alone(self, session, service, application, template):
        tpr = service.initiate(
            session, application.id, template.id,
            {"name": "Grace Hopper", "email": "a@x.com"},
            {"name": "Alan Turing", "email": "a@x.com"},
        )

        result = service.submit(session, tpr.combined_token, {"role": "Carpenter"})

        assert result["access_type"] == "combined"
        assert result["status"] == "completed"
        assert merged_submission(session, application, template).form_data == {"role": "Carpenter"}

    def test_submitted_slot_cannot_be_submitted_again(self, session, service, application, template):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)
        service.submit(session, tpr.employer_token, {"role": "Carpenter"})

        with pytest.raises(AlreadySubmittedError):
            service.submit(session, tpr.employer_token, {"role": "Joiner"})

        assert tpr.get_slot("employer")["form_data"] == {"role": "Carpenter"}

    def test_keys_with_dots_and_tildes_survive_storage(self, session, service, application, template):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)
        form_data = {"address.street": "1 Main St", "a~b": 1, "plain": True}

        service.submit(session, tpr.employer_token, form_data)

        assert tpr.get_slot("employer")["form_data"] == {"address~1street": "1 Main St", "a~0b": 1, "plain": True}
        form = service.get_form(session, tpr.employer_token)
        assert form["existing_data"] == form_data
        assert form["is_submitted"] is True

        service.submit(session, tpr.reference_token, {})
        assert merged_submission(session, application, template).form_data == form_data

    def test_expired_token_is_not_found(self, session, service, application, template):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)
        tpr.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        session.flush()

        with pytest.raises(NotFoundError):
            service.get_form(session, tpr.employer_token)
        with pytest.raises(NotFoundError):
            service.submit(session, tpr.employer_token, {"role": "Carpenter"})

    def test_form_data_must_be_an_object(self, session, service, application, template):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        with pytest.raises(ValidationError):
            service.submit(session, tpr.employer_token, ["not", "a", "dict"])

    def test_sent_back_form_reopens_and_versions(self, session, service, injector, application, template):
        forms = injector.get(FormSubmissionService)
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)
        service.submit(session, tpr.employer_token, {"role": "Carpenter"})
        service.submit(session, tpr.reference_token, {"years": 3})
        merged = merged_submission(session, application, template)

        forms.assess(session, merged.id, "requires_changes", feedback="Add employment dates")

        reopened = service.submit(session, tpr.employer_token, {"role": "Carpenter", "start_date": "2019-02-01"})
        assert reopened["status"] == "partially_completed"
        assert tpr.get_slot("reference")["is_submitted"] is False

        result = service.submit(session, tpr.reference_token, {"years": 4})
        assert result["status"] == "completed"
        assert result["form_submission_id"] == merged.id

        merged = merged_submission(session, application, template)
        assert merged.version == 2
        assert merged.assessed == "pending"
        assert merged.form_data == {"role": "Carpenter", "start_date": "2019-02-01", "years": 4}
        assert len(merged.previous_versions) == 1
        assert merged.previous_versions[0]["version"] == 1
        assert merged.previous_versions[0]["form_data"] == {"role": "Carpenter", "years": 3}
        assert merged.previous_versions[0]["assessor_feedback"] == "Add employment dates"

        with pytest.raises(AlreadySubmittedError):
            service.submit(session, tpr.reference_token, {"years": 5})


class TestStatusAndResend:

    def test_status_reports_slots_and_verifications(self, session, service, application, template):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)
        service.submit(session, tpr.employer_token, {"role": "Carpenter"})

        status = service.get_status(session, application.id, template.id)

        assert status["id"] == tpr.id
        assert status["status"] == "partially_completed"
        assert status["employer_submitted"] is True
        assert status["reference_submitted"] is False
        assert status["is_expired"] is False
        assert [v["party"] for v in status["verifications"]] == ["employer", "reference"]

    def test_same_email_status_shows_only_the_combined_slot(self, session, service, application, template):
        tpr = service.initiate(
            session, application.id, template.id,
            {"name": "Grace Hopper", "email": "a@x.com"},
            {"name": "Alan Turing", "email": "a@x.com"},
        )
        service.submit(session, tpr.combined_token, {"role": "Carpenter"})

        status = service.get_status(session, application.id, template.id)

        assert status["combined_submitted"] is True
        assert status["combined_email_sent"] is True
        for hidden in ("employer_submitted", "reference_submitted", "employer_email_sent", "reference_email_sent"):
            assert hidden not in status
        assert [v["party"] for v in status["verifications"]] == ["combined"]

    def test_status_without_request_is_not_found(self, session, service, application, template):
        with pytest.raises(NotFoundError):
            service.get_status(session, application.id, template.id)

    def test_resend_delivers_links_again(self, session, service, application, template, kafka):
        service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)

        status = service.resend(session, application.id, template.id)

        assert len(emails(kafka)) == 4
        assert status["employer_email_sent"] is True

    def test_resend_needs_a_live_request(self, session, service, application, template):
        tpr = service.initiate(session, application.id, template.id, EMPLOYER, REFERENCE)
        tpr.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        session.flush()

        with pytest.raises(NotFoundError):
            service.resend(session, application.id, template.id)
        assert service.get_status(session, application.id, template.id)["is_expired"] is True
