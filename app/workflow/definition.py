from enum import Enum


class RequestStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FULFILLED = "FULFILLED"


class WorkflowAction(str, Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    FULFILL = "FULFILL"
    PRESIDENCY_APPROVE = "PRESIDENCY_APPROVE"
    PRESIDENCY_REJECT = "PRESIDENCY_REJECT"


REQUEST_WORKFLOW_KEY = "REQUEST_STANDARD"
REQUEST_WORKFLOW_NAME = "Fluxo padrao de requisicoes"

# (code, name, sort_order, is_initial, is_terminal, request_status)
STATE_TEMPLATES = [
    ("DRAFT", "Rascunho", 10, True, False, RequestStatus.DRAFT),
    ("AWAITING_SUPERVISOR_APPROVAL", "Aguarda aprovacao da chefia", 20, False, False, RequestStatus.SUBMITTED),
    ("AWAITING_ADMIN_APPROVAL", "Aguarda aprovacao final", 30, False, False, RequestStatus.SUBMITTED),
    ("APPROVED", "Aprovada", 40, False, False, RequestStatus.APPROVED),
    ("REJECTED", "Rejeitada", 50, False, True, RequestStatus.REJECTED),
    ("FULFILLED", "Concluida", 60, False, True, RequestStatus.FULFILLED),
]

# (from_state, action, to_state, required_permission)
TRANSITION_TEMPLATES = [
    ("DRAFT", WorkflowAction.SUBMIT, "AWAITING_SUPERVISOR_APPROVAL", None),
    ("AWAITING_SUPERVISOR_APPROVAL", WorkflowAction.APPROVE, "AWAITING_ADMIN_APPROVAL", "requests.approve"),
    ("AWAITING_SUPERVISOR_APPROVAL", WorkflowAction.REJECT, "REJECTED", "requests.reject"),
    ("AWAITING_ADMIN_APPROVAL", WorkflowAction.APPROVE, "APPROVED", "requests.final_approve"),
    ("AWAITING_ADMIN_APPROVAL", WorkflowAction.REJECT, "REJECTED", "requests.final_reject"),
    ("AWAITING_SUPERVISOR_APPROVAL", WorkflowAction.PRESIDENCY_APPROVE, "APPROVED", "presidency.approve"),
    ("AWAITING_SUPERVISOR_APPROVAL", WorkflowAction.PRESIDENCY_REJECT, "REJECTED", "presidency.approve"),
    ("AWAITING_ADMIN_APPROVAL", WorkflowAction.PRESIDENCY_APPROVE, "APPROVED", "presidency.approve"),
    ("AWAITING_ADMIN_APPROVAL", WorkflowAction.PRESIDENCY_REJECT, "REJECTED", "presidency.approve"),
    ("APPROVED", WorkflowAction.FULFILL, "FULFILLED", "requests.pickup_sign"),
    ("APPROVED", WorkflowAction.REJECT, "REJECTED", "requests.final_reject"),
]

LEGACY_TARGET_STATUS_ACTIONS = {
    RequestStatus.SUBMITTED: WorkflowAction.SUBMIT,
    RequestStatus.APPROVED: WorkflowAction.APPROVE,
    RequestStatus.REJECTED: WorkflowAction.REJECT,
    RequestStatus.FULFILLED: WorkflowAction.FULFILL,
}
