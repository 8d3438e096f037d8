"""E-filing routing core: organisation, geography, workflow graph and SLA tables

Revision ID: a1e0f1l1n001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "a1e0f1l1n001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ── Geography ────────────────────────────────────────────────────────
    op.create_table(
        "divisions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("code", sa.String(50)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_table(
        "districts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(150), nullable=False),
    )
    op.create_table(
        "towns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("town", sa.String(150), nullable=False),
        sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id", ondelete="SET NULL"), index=True),
    )
    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
    )

    # ── Organisation ─────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(200), unique=True),
        sa.Column("designation", sa.String(150)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "efiling_departments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(50), unique=True),
        sa.Column("department_type", sa.String(20), nullable=False, server_default="district",
                  comment="global | division | district | town"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_table(
        "efiling_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("efiling_departments.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_table(
        "efiling_role_groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(50), unique=True),
        sa.Column("role_codes", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_table(
        "efiling_role_locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("efiling_roles.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE")),
        sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id", ondelete="CASCADE")),
        sa.Column("division_id", sa.Integer(), sa.ForeignKey("divisions.id", ondelete="CASCADE")),
    )
    op.create_table(
        "efiling_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("efiling_role_id", sa.Integer(), sa.ForeignKey("efiling_roles.id", ondelete="SET NULL")),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("efiling_departments.id", ondelete="SET NULL")),
        sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id", ondelete="SET NULL")),
        sa.Column("town_id", sa.Integer(), sa.ForeignKey("towns.id", ondelete="SET NULL")),
        sa.Column("division_id", sa.Integer(), sa.ForeignKey("divisions.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true"), index=True),
    )
    op.create_index("ix_efiling_users_geo", "efiling_users", ["district_id", "town_id", "division_id"])

    # ── Workflow graph ───────────────────────────────────────────────────
    op.create_table(
        "efiling_file_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(50), unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_table(
        "efiling_workflow_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("file_category_id", sa.Integer(),
                  sa.ForeignKey("efiling_file_categories.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "efiling_workflow_stages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("template_id", sa.Integer(),
                  sa.ForeignKey("efiling_workflow_templates.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("stage_order", sa.Integer(), nullable=False),
        sa.Column("stage_name", sa.String(200), nullable=False),
        sa.Column("stage_code", sa.String(50), nullable=False),
        sa.Column("stage_type", sa.String(30), nullable=False, server_default="APPROVAL"),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("efiling_departments.id", ondelete="SET NULL")),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("efiling_roles.id", ondelete="SET NULL")),
        sa.Column("role_group_id", sa.Integer(), sa.ForeignKey("efiling_role_groups.id", ondelete="SET NULL")),
        sa.Column("sla_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("requirements", sa.JSON(), nullable=False),
        sa.Column("can_attach_files", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("can_comment", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("can_escalate", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("template_id", "stage_order", name="uq_workflow_stage_order"),
    )
    op.create_table(
        "efiling_workflow_transitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("from_stage_id", sa.Integer(),
                  sa.ForeignKey("efiling_workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("to_stage_id", sa.Integer(),
                  sa.ForeignKey("efiling_workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("transition_type", sa.String(20), nullable=False, server_default="FORWARD"),
        sa.Column("condition", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "uq_workflow_transition_active_pair",
        "efiling_workflow_transitions",
        ["from_stage_id", "to_stage_id"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )

    # ── File workflow instances & history ────────────────────────────────
    op.create_table(
        "efiling_file_workflows",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("file_id", sa.Integer(), nullable=False, index=True),
        sa.Column("template_id", sa.Integer(),
                  sa.ForeignKey("efiling_workflow_templates.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("current_stage_id", sa.Integer(), sa.ForeignKey("efiling_workflow_stages.id", ondelete="SET NULL")),
        sa.Column("current_assignee_id", sa.Integer(), sa.ForeignKey("efiling_users.id", ondelete="SET NULL")),
        sa.Column("workflow_status", sa.String(20), nullable=False, server_default="IN_PROGRESS"),
        sa.Column("sla_deadline", sa.DateTime(timezone=True)),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "efiling_workflow_actions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workflow_id", sa.Integer(),
                  sa.ForeignKey("efiling_file_workflows.id", ondelete="CASCADE"), index=True),
        sa.Column("stage_id", sa.Integer(),
                  sa.ForeignKey("efiling_workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("action_type", sa.String(30), nullable=False),
        sa.Column("performed_by", sa.Integer(), sa.ForeignKey("efiling_users.id", ondelete="SET NULL")),
        sa.Column("details", sa.JSON()),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "efiling_file_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("file_id", sa.Integer(), nullable=False, index=True),
        sa.Column("from_user_id", sa.Integer(), sa.ForeignKey("efiling_users.id", ondelete="SET NULL")),
        sa.Column("to_user_id", sa.Integer(), sa.ForeignKey("efiling_users.id", ondelete="SET NULL")),
        sa.Column("transition_id", sa.Integer(),
                  sa.ForeignKey("efiling_workflow_transitions.id", ondelete="SET NULL")),
        sa.Column("sla_hours", sa.Integer()),
        sa.Column("sla_deadline", sa.DateTime(timezone=True)),
        sa.Column("remarks", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # ── SLA matrix ───────────────────────────────────────────────────────
    op.create_table(
        "efiling_sla_matrix",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("from_role_code", sa.String(100), nullable=False),
        sa.Column("to_role_code", sa.String(100), nullable=False),
        sa.Column("level_scope", sa.String(20), nullable=False, server_default="district"),
        sa.Column("sla_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("description", sa.Text()),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("efiling_departments.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true"), index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table("efiling_sla_matrix")
    op.drop_table("efiling_file_movements")
    op.drop_table("efiling_workflow_actions")
    op.drop_table("efiling_file_workflows")
    op.drop_index("uq_workflow_transition_active_pair", table_name="efiling_workflow_transitions")
    op.drop_table("efiling_workflow_transitions")
    op.drop_table("efiling_workflow_stages")
    op.drop_table("efiling_workflow_templates")
    op.drop_table("efiling_file_categories")
    op.drop_index("ix_efiling_users_geo", table_name="efiling_users")
    op.drop_table("efiling_users")
    op.drop_table("efiling_role_locations")
    op.drop_table("efiling_role_groups")
    op.drop_table("efiling_roles")
    op.drop_table("efiling_departments")
    op.drop_table("users")
    op.drop_table("zones")
    op.drop_table("towns")
    op.drop_table("districts")
    op.drop_table("divisions")
