from pydantic import BaseModel, Field, model_validator

from app.workflow.definition import LEGACY_TARGET_STATUS_ACTIONS, RequestStatus, WorkflowAction


class WorkflowActionPayload(BaseModel):
    """Either ``{action, note}`` or the legacy ``{targetStatus, note}`` body."""

    model_config = {"populate_by_name": True}

    action: WorkflowAction | None = None
    target_status: RequestStatus | None = Field(default=None, alias="targetStatus")
    note: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _one_shape(self):
        if self.action is None and self.target_status is None:
            raise ValueError("Informe action ou targetStatus")
        return self

    def resolved_action(self) -> WorkflowAction | None:
        if self.action is not None:
            return self.action
        # DRAFT has no forward action
        return LEGACY_TARGET_STATUS_ACTIONS.get(self.target_status)

    def clean_note(self) -> str | None:
        note = (self.note or "").strip()
        return note or None
