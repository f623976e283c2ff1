import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    slug = Column(String, nullable=True, unique=True)
    status = Column(String, nullable=False, default="ATIVO")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")


class RequestingService(Base):
    __tablename__ = "requesting_services"
    __table_args__ = (UniqueConstraint("tenant_id", "codigo", name="uq_requesting_service_codigo"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    codigo = Column(String, nullable=False)
    designacao = Column(String, nullable=False)
    ativo = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tenant_id", "login", name="uq_tenant_login"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    login = Column(String, nullable=False)
    email = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="USER")
    is_active = Column(Boolean, nullable=False, default=True)
    requesting_service_id = Column(Integer, ForeignKey("requesting_services.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="users")
    requesting_service = relationship("RequestingService")


class AccessPermission(Base):
    __tablename__ = "access_permissions"
    __table_args__ = (UniqueConstraint("tenant_id", "key", name="uq_access_permission_key"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    key = Column(String, nullable=False)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    group_name = Column(String, nullable=True)
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AccessRole(Base):
    __tablename__ = "access_roles"
    __table_args__ = (UniqueConstraint("tenant_id", "key", name="uq_access_role_key"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    key = Column(String, nullable=False)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    permissions = relationship("AccessRolePermission", back_populates="role", cascade="all, delete-orphan")


class AccessRolePermission(Base):
    __tablename__ = "access_role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_access_role_permission"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    role_id = Column(String, ForeignKey("access_roles.id"), nullable=False, index=True)
    permission_id = Column(String, ForeignKey("access_permissions.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    role = relationship("AccessRole", back_populates="permissions")
    permission = relationship("AccessPermission")


class UserRoleAssignment(Base):
    __tablename__ = "user_role_assignments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    role_id = Column(String, ForeignKey("access_roles.id"), nullable=False)
    requesting_service_id = Column(Integer, ForeignKey("requesting_services.id"), nullable=True)
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    note = Column(String, nullable=True)
    assigned_by_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    role = relationship("AccessRole")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True)
    action = Column(String, nullable=False)
    resource_type = Column(String, nullable=False)
    resource_id = Column(String, nullable=True)
    note = Column(String, nullable=True)
    payload_resumo = Column(JSON, nullable=True)
    ip = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class WorkflowDefinition(Base):
    __tablename__ = "workflow_definitions"
    __table_args__ = (UniqueConstraint("tenant_id", "key", "version", name="uq_workflow_definition_version"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    key = Column(String, nullable=False)
    name = Column(String, nullable=False)
    target_type = Column(String, nullable=False, default="REQUEST")
    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    states = relationship("WorkflowState", back_populates="workflow", order_by="WorkflowState.sort_order")


class WorkflowState(Base):
    __tablename__ = "workflow_states"
    __table_args__ = (UniqueConstraint("workflow_id", "code", name="uq_workflow_state_code"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    workflow_id = Column(String, ForeignKey("workflow_definitions.id"), nullable=False, index=True)
    code = Column(String, nullable=False)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_initial = Column(Boolean, nullable=False, default=False)
    is_terminal = Column(Boolean, nullable=False, default=False)
    request_status = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    workflow = relationship("WorkflowDefinition", back_populates="states")


class WorkflowTransition(Base):
    __tablename__ = "workflow_transitions"
    __table_args__ = (
        UniqueConstraint("workflow_id", "from_state_id", "action", name="uq_workflow_transition_action"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    workflow_id = Column(String, ForeignKey("workflow_definitions.id"), nullable=False, index=True)
    from_state_id = Column(String, ForeignKey("workflow_states.id"), nullable=False)
    to_state_id = Column(String, ForeignKey("workflow_states.id"), nullable=False)
    action = Column(String, nullable=False)
    required_permission = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    from_state = relationship("WorkflowState", foreign_keys=[from_state_id])
    to_state = relationship("WorkflowState", foreign_keys=[to_state_id])


class WorkflowInstance(Base):
    __tablename__ = "workflow_instances"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    workflow_id = Column(String, ForeignKey("workflow_definitions.id"), nullable=False)
    request_id = Column(String, ForeignKey("requests.id"), nullable=False, unique=True)
    current_state_id = Column(String, ForeignKey("workflow_states.id"), nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    current_state = relationship("WorkflowState")


class WorkflowEvent(Base):
    __tablename__ = "workflow_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    instance_id = Column(String, ForeignKey("workflow_instances.id"), nullable=False, index=True)
    request_id = Column(String, ForeignKey("requests.id"), nullable=False)
    position = Column(Integer, nullable=False, default=1)
    action = Column(String, nullable=False)
    from_state_id = Column(String, ForeignKey("workflow_states.id"), nullable=True)
    to_state_id = Column(String, ForeignKey("workflow_states.id"), nullable=True)
    actor_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    from_state = relationship("WorkflowState", foreign_keys=[from_state_id])
    to_state = relationship("WorkflowState", foreign_keys=[to_state_id])
    actor = relationship("User")


class Request(Base):
    __tablename__ = "requests"
    __table_args__ = (
        UniqueConstraint("tenant_id", "gtmi_year", "gtmi_seq", name="uq_request_gtmi_seq"),
        UniqueConstraint("tenant_id", "gtmi_number", name="uq_request_gtmi_number"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    request_type = Column(String, nullable=False, default="STANDARD")
    status = Column(String, nullable=False, default="DRAFT")
    title = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    priority = Column(String, nullable=True)
    gtmi_year = Column(Integer, nullable=False)
    gtmi_seq = Column(Integer, nullable=False)
    gtmi_number = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_by_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    requesting_service_id = Column(Integer, ForeignKey("requesting_services.id"), nullable=True)
    requesting_service = Column(String, nullable=True)
    requester_name = Column(String, nullable=True)
    supplier_option1 = Column(String, nullable=True)
    supplier_option2 = Column(String, nullable=True)
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    owner = relationship("User", foreign_keys=[user_id])
    items = relationship(
        "RequestItem",
        back_populates="request",
        order_by="RequestItem.position",
        cascade="all, delete-orphan",
    )


class RequestItem(Base):
    __tablename__ = "request_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    request_id = Column(String, ForeignKey("requests.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String, ForeignKey("products.id"), nullable=True)
    unit_id = Column(String, ForeignKey("product_units.id"), nullable=True)
    description = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit = Column(String, nullable=False, default="un")
    reference = Column(String, nullable=True)
    destination = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    role = Column(String, nullable=False, default="STANDARD")

    request = relationship("Request", back_populates="items")


class RequestStatusAudit(Base):
    __tablename__ = "request_status_audits"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    request_id = Column(String, ForeignKey("requests.id"), nullable=False, index=True)
    from_status = Column(String, nullable=True)
    to_status = Column(String, nullable=False)
    changed_by_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    source = Column(String, nullable=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (UniqueConstraint("tenant_id", "sku", name="uq_product_sku"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    sku = Column(String, nullable=False)
    description = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="Stock Out")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ProductUnit(Base):
    __tablename__ = "product_units"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    product_id = Column(String, ForeignKey("products.id"), nullable=False, index=True)
    code = Column(String, nullable=False, unique=True)
    status = Column(String, nullable=False, default="IN_STOCK")
    serial_number = Column(String, nullable=True)
    asset_tag = Column(String, nullable=True)
    invoice_id = Column(String, nullable=True)
    acquired_at = Column(DateTime, nullable=True)
    acquired_by_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    acquired_reason = Column(String, nullable=True)
    cost_center = Column(String, nullable=True)
    acquired_notes = Column(String, nullable=True)
    assigned_to_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    pending_return_request_id = Column(String, ForeignKey("requests.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    product = relationship("Product")


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    stock_delta = Column(Integer, nullable=False, default=0)
    product_id = Column(String, ForeignKey("products.id"), nullable=False, index=True)
    unit_id = Column(String, ForeignKey("product_units.id"), nullable=True, index=True)
    request_id = Column(String, ForeignKey("requests.id"), nullable=True)
    invoice_id = Column(String, nullable=True)
    performed_by_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    assigned_to_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    reason = Column(String, nullable=True)
    cost_center = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
