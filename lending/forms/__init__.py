from .action_forms import (
    ACTION_FORMS,
    ActionForm,
    ActivationForm,
    AgentAssignmentForm,
    BankDetailsForm,
    ExplanationForm,
    InspectionReportForm,
    OfferTermsForm,
    PaymentReferenceForm,
    ReasonForm,
    RescheduleForm,
    SettlementForm,
    TransferForm,
    form_for,
)
from .request_forms import LoanRequestForm
