"""
Workflow graph tables.

A ``WorkflowTemplate`` owns an ordered list of ``WorkflowStage`` rows
(``stage_order`` dense 1..N among active stages) joined by
``WorkflowTransition`` edges. ``FileWorkflow`` rows are the in-flight
instances stepping through a template; they hold stage ids, so stage rows
are updated in place and never deleted while a template is referenced.

Business rules:
- Exactly one active FORWARD transition per consecutive stage pair.
- Transitions are deactivated, never deleted, when a pair stops being
  consecutive.
- ``requirements`` on stages and ``condition`` on transitions are opaque
  payloads stored and returned verbatim.
"""

from datetime import datetime, timezone

from efiling.models import db

STAGE_TYPES = frozenset({"INITIATION", "REVIEW", "APPROVAL", "SIGNATURE", "NOTIFICATION", "COMPLETION"})

TRANSITION_KINDS = frozenset({"FORWARD", "RETURN", "ESCALATE"})

WORKFLOW_STATUSES = frozenset({"IN_PROGRESS", "COMPLETED", "REJECTED", "CANCELLED"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileCategory(db.Model):
    __tablename__ = "efiling_file_categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), nullable=True, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code, "is_active": self.is_active}


class WorkflowTemplate(db.Model):
    __tablename__ = "efiling_workflow_templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    file_category_id = db.Column(
        db.Integer,
        db.ForeignKey("efiling_file_categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "file_category_id": self.file_category_id,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<WorkflowTemplate #{self.id} {self.name!r}>"


class WorkflowStage(db.Model):
    __tablename__ = "efiling_workflow_stages"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer,
        db.ForeignKey("efiling_workflow_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stage_order = db.Column(db.Integer, nullable=False)
    stage_name = db.Column(db.String(200), nullable=False)
    stage_code = db.Column(db.String(50), nullable=False)
    stage_type = db.Column(db.String(30), nullable=False, default="APPROVAL")
    department_id = db.Column(
        db.Integer, db.ForeignKey("efiling_departments.id", ondelete="SET NULL"), nullable=True,
    )
    role_id = db.Column(db.Integer, db.ForeignKey("efiling_roles.id", ondelete="SET NULL"), nullable=True)
    role_group_id = db.Column(
        db.Integer, db.ForeignKey("efiling_role_groups.id", ondelete="SET NULL"), nullable=True,
    )
    sla_hours = db.Column(db.Integer, nullable=False, default=24)
    requirements = db.Column(db.JSON, nullable=False, default=dict)
    can_attach_files = db.Column(db.Boolean, nullable=False, default=True)
    can_comment = db.Column(db.Boolean, nullable=False, default=True)
    can_escalate = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("template_id", "stage_order", name="uq_workflow_stage_order"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "stage_order": self.stage_order,
            "stage_name": self.stage_name,
            "stage_code": self.stage_code,
            "stage_type": self.stage_type,
            "department_id": self.department_id,
            "role_id": self.role_id,
            "role_group_id": self.role_group_id,
            "sla_hours": self.sla_hours,
            "requirements": self.requirements if self.requirements is not None else {},
            "can_attach_files": self.can_attach_files,
            "can_comment": self.can_comment,
            "can_escalate": self.can_escalate,
            "is_active": self.is_active,
        }

    def __repr__(self) -> str:
        return f"<WorkflowStage #{self.id} t={self.template_id} #{self.stage_order} {self.stage_code}>"


class WorkflowTransition(db.Model):
    __tablename__ = "efiling_workflow_transitions"

    id = db.Column(db.Integer, primary_key=True)
    from_stage_id = db.Column(
        db.Integer, db.ForeignKey("efiling_workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    to_stage_id = db.Column(
        db.Integer, db.ForeignKey("efiling_workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    transition_type = db.Column(db.String(20), nullable=False, default="FORWARD")
    condition = db.Column(db.JSON, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        # One active edge per ordered stage pair; inactive history rows may repeat.
        db.Index(
            "uq_workflow_transition_active_pair",
            "from_stage_id",
            "to_stage_id",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_stage_id": self.from_stage_id,
            "to_stage_id": self.to_stage_id,
            "transition_type": self.transition_type,
            "condition": self.condition,
            "is_active": self.is_active,
        }

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<WorkflowTransition #{self.id} {self.from_stage_id}->{self.to_stage_id} {state}>"


class FileWorkflow(db.Model):
    """A file's instance of a template; keeps the template's history alive."""

    __tablename__ = "efiling_file_workflows"

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.Integer, nullable=False, index=True)
    template_id = db.Column(
        db.Integer,
        db.ForeignKey("efiling_workflow_templates.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    current_stage_id = db.Column(
        db.Integer, db.ForeignKey("efiling_workflow_stages.id", ondelete="SET NULL"), nullable=True,
    )
    current_assignee_id = db.Column(
        db.Integer, db.ForeignKey("efiling_users.id", ondelete="SET NULL"), nullable=True,
    )
    workflow_status = db.Column(db.String(20), nullable=False, default="IN_PROGRESS")
    sla_deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_id": self.file_id,
            "template_id": self.template_id,
            "current_stage_id": self.current_stage_id,
            "current_assignee_id": self.current_assignee_id,
            "workflow_status": self.workflow_status,
            "sla_deadline": self.sla_deadline.isoformat() if self.sla_deadline else None,
        }


class WorkflowAction(db.Model):
    """Action taken on a stage (approve / forward / return / escalate)."""

    __tablename__ = "efiling_workflow_actions"

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(
        db.Integer, db.ForeignKey("efiling_file_workflows.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    stage_id = db.Column(
        db.Integer, db.ForeignKey("efiling_workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    action_type = db.Column(db.String(30), nullable=False)
    performed_by = db.Column(
        db.Integer, db.ForeignKey("efiling_users.id", ondelete="SET NULL"), nullable=True,
    )
    details = db.Column(db.JSON, nullable=True)
    performed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)


class FileMovement(db.Model):
    """Hand-off of a file between two e-filing users."""

    __tablename__ = "efiling_file_movements"

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.Integer, nullable=False, index=True)
    from_user_id = db.Column(
        db.Integer, db.ForeignKey("efiling_users.id", ondelete="SET NULL"), nullable=True,
    )
    to_user_id = db.Column(
        db.Integer, db.ForeignKey("efiling_users.id", ondelete="SET NULL"), nullable=True,
    )
    transition_id = db.Column(
        db.Integer, db.ForeignKey("efiling_workflow_transitions.id", ondelete="SET NULL"), nullable=True,
    )
    sla_hours = db.Column(db.Integer, nullable=True)
    sla_deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
