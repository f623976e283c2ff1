from typing import Iterable

from app.core.errors import Failure, forbidden
from app.db import models
from app.rbac.catalog import is_final_decision
from app.rbac.service import PermissionGrant, has_permission
from app.workflow.definition import WorkflowAction
from app.workflow.engine import TransitionPlan


def is_admin_user(user: models.User) -> bool:
    return user.role == "ADMIN"


def has_scoped_permission(grants: Iterable[PermissionGrant], key: str, request: models.Request) -> bool:
    return has_permission(grants, key, request.requesting_service_id)


def has_global_permission(grants: Iterable[PermissionGrant], key: str) -> bool:
    return has_permission(grants, key, None)


def is_request_party(user: models.User, request: models.Request) -> bool:
    return user.id in {request.user_id, request.created_by_user_id}


def can_submit(grants: Iterable[PermissionGrant], user: models.User, request: models.Request) -> bool:
    if is_request_party(user, request):
        return True
    return has_global_permission(grants, "requests.change_status")


def can_view_request(grants: Iterable[PermissionGrant], user: models.User, request: models.Request) -> bool:
    if is_admin_user(user) or is_request_party(user, request):
        return True
    grants = list(grants)
    return has_scoped_permission(grants, "requests.view", request) or has_scoped_permission(
        grants, "requests.change_status", request
    )


def authorize_transition(
    grants: Iterable[PermissionGrant],
    user: models.User,
    request: models.Request,
    plan: TransitionPlan,
) -> Failure | None:
    grants = list(grants)
    if plan.action == WorkflowAction.SUBMIT.value:
        if can_submit(grants, user, request):
            return None
        return forbidden("submit_not_allowed", "Sem permissao para submeter esta requisicao", action=plan.action)

    key = plan.required_permission
    if not key:
        return None
    if is_final_decision(key):
        allowed = has_global_permission(grants, key)
    else:
        allowed = has_scoped_permission(grants, key, request)
    if allowed:
        return None
    return forbidden("missing_permission", "Permissao negada", permission=key, action=plan.action)
