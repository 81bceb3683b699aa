"""
Dependency injection configuration using Flask-Injector.
"""
from injector import Module, provider, singleton
from services.kafka_service import KafkaService
from services.notification_service import NotificationService
from services.progress_service import ProgressService
from services.form_submission_service import FormSubmissionService
from services.third_party_form_service import ThirdPartyFormService
from services.tpr_verification_service import TPRVerificationService
from services.poll_guard import PollGuard
from services.mailbox import MailboxFactory
from services.tpr_reconciler import TPRReconciler
from repositories.application_repository import ApplicationRepository
from repositories.certification_repository import CertificationRepository, FormTemplateRepository
from repositories.payment_repository import PaymentRepository, DocumentUploadRepository
from repositories.form_submission_repository import FormSubmissionRepository
from repositories.third_party_form_repository import ThirdPartyFormRepository
from repositories.tpr_verification_repository import TPRVerificationRepository
from repositories.poller_lease_repository import PollerLeaseRepository


class ServiceModule(Module):
    """Module that configures dependency injection bindings."""

    @singleton
    @provider
    def provide_kafka_service(self) -> KafkaService:
        """Provide Kafka service instance."""
        return KafkaService()

    @singleton
    @provider
    def provide_notification_service(self, kafka_service: KafkaService) -> NotificationService:
        """Provide notification service instance."""
        return NotificationService(kafka_service)

    @singleton
    @provider
    def provide_progress_service(
        self,
        application_repository: ApplicationRepository,
        certification_repository: CertificationRepository,
        payment_repository: PaymentRepository,
        document_upload_repository: DocumentUploadRepository,
        form_submission_repository: FormSubmissionRepository,
        third_party_form_repository: ThirdPartyFormRepository
    ) -> ProgressService:
        """Provide progress service instance with repositories injected."""
        return ProgressService(
            application_repository,
            certification_repository,
            payment_repository,
            document_upload_repository,
            form_submission_repository,
            third_party_form_repository
        )

    @singleton
    @provider
    def provide_form_submission_service(
        self,
        submission_repository: FormSubmissionRepository,
        application_repository: ApplicationRepository,
        template_repository: FormTemplateRepository,
        progress_service: ProgressService
    ) -> FormSubmissionService:
        """Provide form submission service instance."""
        return FormSubmissionService(
            submission_repository,
            application_repository,
            template_repository,
            progress_service
        )

    @singleton
    @provider
    def provide_third_party_form_service(
        self,
        request_repository: ThirdPartyFormRepository,
        verification_repository: TPRVerificationRepository,
        application_repository: ApplicationRepository,
        template_repository: FormTemplateRepository,
        submission_repository: FormSubmissionRepository,
        form_submission_service: FormSubmissionService,
        progress_service: ProgressService,
        notification_service: NotificationService,
        kafka_service: KafkaService
    ) -> ThirdPartyFormService:
        """Provide third-party form service instance with dependencies injected."""
        return ThirdPartyFormService(
            request_repository,
            verification_repository,
            application_repository,
            template_repository,
            submission_repository,
            form_submission_service,
            progress_service,
            notification_service,
            kafka_service
        )

    @singleton
    @provider
    def provide_tpr_verification_service(
        self,
        request_repository: ThirdPartyFormRepository,
        verification_repository: TPRVerificationRepository,
        notification_service: NotificationService
    ) -> TPRVerificationService:
        """Provide verification service instance."""
        return TPRVerificationService(request_repository, verification_repository, notification_service)

    @singleton
    @provider
    def provide_poll_guard(self, lease_repository: PollerLeaseRepository) -> PollGuard:
        """Provide the process-wide reconciler guard."""
        return PollGuard(lease_repository)

    @singleton
    @provider
    def provide_mailbox_factory(self) -> MailboxFactory:
        """Provide IMAP mailbox factory."""
        return MailboxFactory()

    @singleton
    @provider
    def provide_tpr_reconciler(
        self,
        verification_repository: TPRVerificationRepository,
        request_repository: ThirdPartyFormRepository,
        verification_service: TPRVerificationService,
        guard: PollGuard,
        mailbox_factory: MailboxFactory
    ) -> TPRReconciler:
        """Provide inbox reconciler instance."""
        return TPRReconciler(
            verification_repository,
            request_repository,
            verification_service,
            guard,
            mailbox_factory
        )

    # Repository Providers
    @singleton
    @provider
    def provide_application_repository(self) -> ApplicationRepository:
        """Provide application repository instance."""
        return ApplicationRepository()

    @singleton
    @provider
    def provide_certification_repository(self) -> CertificationRepository:
        """Provide certification repository instance."""
        return CertificationRepository()

    @singleton
    @provider
    def provide_form_template_repository(self) -> FormTemplateRepository:
        """Provide form template repository instance."""
        return FormTemplateRepository()

    @singleton
    @provider
    def provide_payment_repository(self) -> PaymentRepository:
        """Provide payment repository instance."""
        return PaymentRepository()

    @singleton
    @provider
    def provide_document_upload_repository(self) -> DocumentUploadRepository:
        """Provide document upload repository instance."""
        return DocumentUploadRepository()

    @singleton
    @provider
    def provide_form_submission_repository(self) -> FormSubmissionRepository:
        """Provide form submission repository instance."""
        return FormSubmissionRepository()

    @singleton
    @provider
    def provide_third_party_form_repository(self) -> ThirdPartyFormRepository:
        """Provide third-party form repository instance."""
        return ThirdPartyFormRepository()

    @singleton
    @provider
    def provide_tpr_verification_repository(self) -> TPRVerificationRepository:
        """Provide verification repository instance."""
        return TPRVerificationRepository()

    @singleton
    @provider
    def provide_poller_lease_repository(self) -> PollerLeaseRepository:
        """Provide poller lease repository instance."""
        return PollerLeaseRepository()
