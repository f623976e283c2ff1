"""inventory core tables

Revision ID: 0001_inventory_core
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_inventory_core"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = False) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(), nullable=False))
    return columns


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=True, unique=True),
        sa.Column("status", sa.String(), nullable=False),
        *_timestamps(updated=True),
    )

    op.create_table(
        "requesting_services",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("codigo", sa.String(), nullable=False),
        sa.Column("designacao", sa.String(), nullable=False),
        sa.Column("ativo", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "codigo", name="uq_requesting_service_codigo"),
    )
    op.create_index("ix_requesting_services_tenant_id", "requesting_services", ["tenant_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("login", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("requesting_service_id", sa.Integer(), sa.ForeignKey("requesting_services.id"), nullable=True),
        *_timestamps(updated=True),
        sa.UniqueConstraint("tenant_id", "login", name="uq_tenant_login"),
    )
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])

    op.create_table(
        "access_permissions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("group_name", sa.String(), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "key", name="uq_access_permission_key"),
    )
    op.create_index("ix_access_permissions_tenant_id", "access_permissions", ["tenant_id"])

    op.create_table(
        "access_roles",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        *_timestamps(updated=True),
        sa.UniqueConstraint("tenant_id", "key", name="uq_access_role_key"),
    )
    op.create_index("ix_access_roles_tenant_id", "access_roles", ["tenant_id"])

    op.create_table(
        "access_role_permissions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("role_id", sa.String(), sa.ForeignKey("access_roles.id"), nullable=False),
        sa.Column("permission_id", sa.String(), sa.ForeignKey("access_permissions.id"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("role_id", "permission_id", name="uq_access_role_permission"),
    )
    op.create_index("ix_access_role_permissions_role_id", "access_role_permissions", ["role_id"])

    op.create_table(
        "user_role_assignments",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role_id", sa.String(), sa.ForeignKey("access_roles.id"), nullable=False),
        sa.Column("requesting_service_id", sa.Integer(), sa.ForeignKey("requesting_services.id"), nullable=True),
        sa.Column("starts_at", sa.DateTime(), nullable=True),
        sa.Column("ends_at", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("assigned_by_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(updated=True),
    )
    op.create_index("ix_user_role_assignments_tenant_id", "user_role_assignments", ["tenant_id"])
    op.create_index("ix_user_role_assignments_user_id", "user_role_assignments", ["user_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("resource_type", sa.String(), nullable=False),
        sa.Column("resource_id", sa.String(), nullable=True),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("payload_resumo", sa.JSON(), nullable=True),
        sa.Column("ip", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_tenant_id", "audit_logs", ["tenant_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sku", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        *_timestamps(updated=True),
        sa.UniqueConstraint("tenant_id", "sku", name="uq_product_sku"),
    )
    op.create_index("ix_products_tenant_id", "products", ["tenant_id"])

    op.create_table(
        "requests",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("request_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("priority", sa.String(), nullable=True),
        sa.Column("gtmi_year", sa.Integer(), nullable=False),
        sa.Column("gtmi_seq", sa.Integer(), nullable=False),
        sa.Column("gtmi_number", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_by_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("requesting_service_id", sa.Integer(), sa.ForeignKey("requesting_services.id"), nullable=True),
        sa.Column("requesting_service", sa.String(), nullable=True),
        sa.Column("requester_name", sa.String(), nullable=True),
        sa.Column("supplier_option1", sa.String(), nullable=True),
        sa.Column("supplier_option2", sa.String(), nullable=True),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        *_timestamps(updated=True),
        sa.UniqueConstraint("tenant_id", "gtmi_year", "gtmi_seq", name="uq_request_gtmi_seq"),
        sa.UniqueConstraint("tenant_id", "gtmi_number", name="uq_request_gtmi_number"),
    )
    op.create_index("ix_requests_tenant_id", "requests", ["tenant_id"])

    op.create_table(
        "product_units",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("product_id", sa.String(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("code", sa.String(), nullable=False, unique=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("serial_number", sa.String(), nullable=True),
        sa.Column("asset_tag", sa.String(), nullable=True),
        sa.Column("invoice_id", sa.String(), nullable=True),
        sa.Column("acquired_at", sa.DateTime(), nullable=True),
        sa.Column("acquired_by_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("acquired_reason", sa.String(), nullable=True),
        sa.Column("cost_center", sa.String(), nullable=True),
        sa.Column("acquired_notes", sa.String(), nullable=True),
        sa.Column("assigned_to_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("pending_return_request_id", sa.String(), sa.ForeignKey("requests.id"), nullable=True),
        *_timestamps(updated=True),
    )
    op.create_index("ix_product_units_tenant_id", "product_units", ["tenant_id"])
    op.create_index("ix_product_units_product_id", "product_units", ["product_id"])

    op.create_table(
        "request_items",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("request_id", sa.String(), sa.ForeignKey("requests.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("unit_id", sa.String(), sa.ForeignKey("product_units.id"), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(), nullable=False),
        sa.Column("reference", sa.String(), nullable=True),
        sa.Column("destination", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
    )
    op.create_index("ix_request_items_request_id", "request_items", ["request_id"])

    op.create_table(
        "request_status_audits",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("request_id", sa.String(), sa.ForeignKey("requests.id"), nullable=False),
        sa.Column("from_status", sa.String(), nullable=True),
        sa.Column("to_status", sa.String(), nullable=False),
        sa.Column("changed_by_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("note", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_request_status_audits_request_id", "request_status_audits", ["request_id"])

    op.create_table(
        "workflow_definitions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("target_type", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "key", "version", name="uq_workflow_definition_version"),
    )

    op.create_table(
        "workflow_states",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("workflow_id", sa.String(), sa.ForeignKey("workflow_definitions.id"), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_initial", sa.Boolean(), nullable=False),
        sa.Column("is_terminal", sa.Boolean(), nullable=False),
        sa.Column("request_status", sa.String(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("workflow_id", "code", name="uq_workflow_state_code"),
    )

    op.create_table(
        "workflow_transitions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("workflow_id", sa.String(), sa.ForeignKey("workflow_definitions.id"), nullable=False),
        sa.Column("from_state_id", sa.String(), sa.ForeignKey("workflow_states.id"), nullable=False),
        sa.Column("to_state_id", sa.String(), sa.ForeignKey("workflow_states.id"), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("required_permission", sa.String(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("workflow_id", "from_state_id", "action", name="uq_workflow_transition_action"),
    )

    op.create_table(
        "workflow_instances",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("workflow_id", sa.String(), sa.ForeignKey("workflow_definitions.id"), nullable=False),
        sa.Column("request_id", sa.String(), sa.ForeignKey("requests.id"), nullable=False, unique=True),
        sa.Column("current_state_id", sa.String(), sa.ForeignKey("workflow_states.id"), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("instance_id", sa.String(), sa.ForeignKey("workflow_instances.id"), nullable=False),
        sa.Column("request_id", sa.String(), sa.ForeignKey("requests.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("from_state_id", sa.String(), sa.ForeignKey("workflow_states.id"), nullable=True),
        sa.Column("to_state_id", sa.String(), sa.ForeignKey("workflow_states.id"), nullable=True),
        sa.Column("actor_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("note", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_workflow_events_instance_id", "workflow_events", ["instance_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("stock_delta", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("unit_id", sa.String(), sa.ForeignKey("product_units.id"), nullable=True),
        sa.Column("request_id", sa.String(), sa.ForeignKey("requests.id"), nullable=True),
        sa.Column("invoice_id", sa.String(), nullable=True),
        sa.Column("performed_by_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("assigned_to_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("cost_center", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_stock_movements_tenant_id", "stock_movements", ["tenant_id"])
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_unit_id", "stock_movements", ["unit_id"])


def downgrade() -> None:
    for table in (
        "stock_movements",
        "workflow_events",
        "workflow_instances",
        "workflow_transitions",
        "workflow_states",
        "workflow_definitions",
        "request_status_audits",
        "request_items",
        "product_units",
        "requests",
        "products",
        "audit_logs",
        "user_role_assignments",
        "access_role_permissions",
        "access_roles",
        "access_permissions",
        "users",
        "requesting_services",
        "tenants",
    ):
        op.drop_table(table)
