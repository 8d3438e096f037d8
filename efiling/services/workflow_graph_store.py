"""
Workflow graph store — template / stage / transition maintenance.

A template's active stages form a dense 1..N sequence joined by exactly one
active FORWARD transition per consecutive pair. Edits keep that invariant
while preserving the ids in-flight file workflows point at:

  - stages are updated in place by id, never deleted by an update; stages
    dropped from the sequence are parked after it, otherwise untouched
  - FORWARD transitions whose pair is no longer consecutive are deactivated;
    missing ones are reactivated or inserted
  - a template referenced by any file workflow is disabled, not deleted

Every mutation runs inside ``atomic``; a failure anywhere leaves the graph
exactly as it was.
"""

from __future__ import annotations

import enum
import logging

from sqlalchemy import delete, func, or_, select, update

from efiling.core.exceptions import NotFoundError, ValidationError
from efiling.models import db
from efiling.models.organization import EfilingDepartment, EfilingRole, EfilingRoleGroup
from efiling.models.workflow import (
    STAGE_TYPES,
    FileCategory,
    FileMovement,
    FileWorkflow,
    WorkflowAction,
    WorkflowStage,
    WorkflowTemplate,
    WorkflowTransition,
)
from efiling.services.helpers.transactions import atomic

logger = logging.getLogger(__name__)

FORWARD = "FORWARD"

# Incoming stage payloads may use either naming; first key present wins.
_STAGE_FIELDS = {
    "stage_name": ("stage_name", "name"),
    "stage_code": ("stage_code", "code"),
    "stage_type": ("stage_type", "type"),
    "department_id": ("department_id", "departmentId"),
    "role_id": ("role_id", "roleId"),
    "role_group_id": ("role_group_id", "roleGroupId"),
    "sla_hours": ("sla_hours", "slaHours"),
    "requirements": ("requirements",),
    "can_attach_files": ("can_attach_files", "canAttachFiles"),
    "can_comment": ("can_comment", "canComment"),
    "can_escalate": ("can_escalate", "canEscalate"),
}

_STAGE_REFERENCES = {
    "department_id": EfilingDepartment,
    "role_id": EfilingRole,
    "role_group_id": EfilingRoleGroup,
}

_NEW_STAGE_DEFAULTS = {
    "stage_type": "APPROVAL",
    "sla_hours": 24,
    "can_attach_files": True,
    "can_comment": True,
    "can_escalate": False,
}


class DeleteOutcome(str, enum.Enum):
    DELETED = "deleted"
    DISABLED = "disabled"


# ═════════════════════════════════════════════════════════════════════════════
# Payload validation
# ═════════════════════════════════════════════════════════════════════════════


def _validate_header(name, file_category_id, stages) -> None:
    errors = {}
    if not isinstance(name, str) or not name.strip():
        errors["name"] = "required"
    if not file_category_id:
        errors["file_category_id"] = "required"
    if not isinstance(stages, (list, tuple)) or not stages:
        errors["stages"] = "at least one stage is required"
    if errors:
        raise ValidationError("Template name, file category and stages are required", details=errors)

    if db.session.get(FileCategory, file_category_id) is None:
        raise ValidationError(
            f"File category {file_category_id} does not exist",
            details={"file_category_id": "unknown"},
        )


def _normalise_stage(payload, index: int) -> tuple[int | None, dict]:
    """Map one incoming stage onto column values.

    Only keys present in the payload are returned, so an in-place update
    keeps columns the caller did not send.
    """
    if not isinstance(payload, dict):
        raise ValidationError(f"Stage {index} must be an object", details={f"stages[{index}]": "invalid"})

    values = {}
    for column, keys in _STAGE_FIELDS.items():
        for key in keys:
            if key in payload:
                values[column] = payload[key]
                break

    name = values.get("stage_name")
    code = values.get("stage_code")
    if not isinstance(name, str) or not name.strip() or not isinstance(code, str) or not code.strip():
        raise ValidationError(
            f"Stage {index} requires a name and a code",
            details={f"stages[{index}]": "name and code are required"},
        )
    values["stage_name"] = name.strip()
    values["stage_code"] = code.strip().upper()

    if "stage_type" in values:
        stage_type = str(values["stage_type"] or "APPROVAL").strip().upper()
        if stage_type not in STAGE_TYPES:
            raise ValidationError(
                f"Stage {index} has unknown stage_type {stage_type!r}",
                details={f"stages[{index}].stage_type": "invalid"},
            )
        values["stage_type"] = stage_type

    if "sla_hours" in values:
        hours = values["sla_hours"]
        if hours is None:
            values["sla_hours"] = 24
        elif isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours < 0:
            raise ValidationError(
                f"Stage {index} sla_hours must be a non-negative number",
                details={f"stages[{index}].sla_hours": "invalid"},
            )
        elif hours != int(hours):
            raise ValidationError(
                f"Stage {index} sla_hours must be a whole number of hours",
                details={f"stages[{index}].sla_hours": "fractional"},
            )
        else:
            values["sla_hours"] = int(hours)

    if "requirements" in values and values["requirements"] is None:
        values["requirements"] = {}

    for flag in ("can_attach_files", "can_comment", "can_escalate"):
        if flag in values:
            values[flag] = bool(values[flag])

    for fk, model in _STAGE_REFERENCES.items():
        if fk not in values:
            continue
        ref_id = _coerce_id(values[fk], f"stages[{index}].{fk}", index)
        if ref_id is not None and db.session.get(model, ref_id) is None:
            raise ValidationError(
                f"Stage {index} references unknown {fk} {ref_id}",
                details={f"stages[{index}].{fk}": "unknown"},
            )
        values[fk] = ref_id

    return _coerce_id(payload.get("id"), f"stages[{index}].id", index), values


def _coerce_id(value, field: str, index: int) -> int | None:
    if not value:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise ValidationError(
        f"Stage {index} has a malformed {field.rsplit('.', 1)[-1]}",
        details={field: "invalid"},
    )


def _normalise_stages(stages) -> list[tuple[int | None, dict]]:
    normalised = [_normalise_stage(payload, i) for i, payload in enumerate(stages, start=1)]
    seen = set()
    for i, (stage_id, _) in enumerate(normalised, start=1):
        if stage_id is None:
            continue
        if stage_id in seen:
            raise ValidationError(
                f"Stage id {stage_id} appears more than once",
                details={f"stages[{i}].id": "duplicate"},
            )
        seen.add(stage_id)
    return normalised


# ═════════════════════════════════════════════════════════════════════════════
# Graph helpers (run inside an open transaction)
# ═════════════════════════════════════════════════════════════════════════════


def _require_template(template_id: int) -> WorkflowTemplate:
    template = db.session.get(WorkflowTemplate, template_id)
    if template is None:
        raise NotFoundError(resource="WorkflowTemplate", resource_id=template_id)
    return template


def _new_stage(template_id: int, order: int, values: dict) -> WorkflowStage:
    stage = WorkflowStage(template_id=template_id, stage_order=order, **{**_NEW_STAGE_DEFAULTS, **values})
    db.session.add(stage)
    return stage


def _sync_forward_transitions(owned_stage_ids, ordered_stages: list[WorkflowStage]) -> dict:
    """Make active FORWARD transitions equal the consecutive pairs of ``ordered_stages``.

    Stale edges are deactivated and flushed before any edge is (re)activated
    so the active-pair unique index never sees two live rows.
    """
    desired = [(a.id, b.id) for a, b in zip(ordered_stages, ordered_stages[1:])]
    desired_set = set(desired)
    counts = {"created": 0, "reactivated": 0, "deactivated": 0}

    existing = []
    if owned_stage_ids:
        existing = list(
            db.session.execute(
                select(WorkflowTransition)
                .where(
                    or_(
                        WorkflowTransition.from_stage_id.in_(owned_stage_ids),
                        WorkflowTransition.to_stage_id.in_(owned_stage_ids),
                    )
                )
                .order_by(WorkflowTransition.id)
            ).scalars()
        )

    for transition in existing:
        pair = (transition.from_stage_id, transition.to_stage_id)
        if transition.transition_type == FORWARD and transition.is_active and pair not in desired_set:
            transition.is_active = False
            counts["deactivated"] += 1
    db.session.flush()

    by_pair: dict[tuple[int, int], list[WorkflowTransition]] = {}
    for transition in existing:
        by_pair.setdefault((transition.from_stage_id, transition.to_stage_id), []).append(transition)

    for pair in desired:
        rows = by_pair.get(pair, [])
        if any(t.is_active for t in rows):
            continue
        forward_rows = [t for t in rows if t.transition_type == FORWARD]
        if forward_rows:
            forward_rows[-1].is_active = True
            counts["reactivated"] += 1
        else:
            transition = WorkflowTransition(from_stage_id=pair[0], to_stage_id=pair[1], transition_type=FORWARD)
            db.session.add(transition)
            by_pair[pair] = [transition]
            counts["created"] += 1
    db.session.flush()
    return counts


# ═════════════════════════════════════════════════════════════════════════════
# Service
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowGraphStore:
    """Stateless service over the workflow template graph."""

    @staticmethod
    def create_template(
        name: str,
        description: str | None,
        file_category_id: int,
        stages: list[dict],
        created_by: str | None = None,
    ) -> dict:
        """Create a template, its stages (order = position) and FORWARD edges.

        Raises:
            ValidationError: missing name, category or stages, or a bad stage.
            TransactionFailure: anything else; nothing is persisted.
        """
        _validate_header(name, file_category_id, stages)
        normalised = _normalise_stages(stages)

        with atomic("create_template"):
            template = WorkflowTemplate(
                name=name.strip(),
                description=description,
                file_category_id=file_category_id,
                created_by=created_by,
            )
            db.session.add(template)
            db.session.flush()

            ordered = [_new_stage(template.id, order, values) for order, (_, values) in enumerate(normalised, start=1)]
            db.session.flush()
            counts = _sync_forward_transitions([s.id for s in ordered], ordered)

        logger.info(
            "Workflow template %r created with %d stages, %d transitions",
            template.name, len(ordered), counts["created"],
            extra={"operation": "create_template", "template_id": template.id},
        )
        return WorkflowGraphStore.get_template(template.id)

    @staticmethod
    def update_template(
        template_id: int,
        name: str,
        description: str | None,
        file_category_id: int,
        stages: list[dict],
    ) -> dict:
        """Replace the template's stage sequence as one transaction.

        Stages carrying an id owned by the template are updated in place;
        any other entry is inserted. Owned stages missing from ``stages``
        are kept as they are and only parked after the new sequence.

        Raises:
            NotFoundError: template does not exist.
            ValidationError: bad header or stage payload.
            TransactionFailure: anything else; nothing is persisted.
        """
        with atomic("update_template", resource_id=template_id):
            template = _require_template(template_id)
            _validate_header(name, file_category_id, stages)
            normalised = _normalise_stages(stages)

            template.name = name.strip()
            template.description = description
            template.file_category_id = file_category_id

            owned = {
                s.id: s
                for s in db.session.execute(
                    select(WorkflowStage).where(WorkflowStage.template_id == template_id)
                ).scalars()
            }
            previous_order = {sid: s.stage_order for sid, s in owned.items()}

            # Move every owned stage to a unique negative order so the new
            # positions can be written without tripping (template_id, stage_order).
            for stage in owned.values():
                stage.stage_order = -stage.id
            db.session.flush()

            ordered = []
            kept_ids = set()
            for order, (stage_id, values) in enumerate(normalised, start=1):
                stage = owned.get(stage_id) if stage_id is not None else None
                if stage is None:
                    stage = _new_stage(template_id, order, values)
                else:
                    for column, value in values.items():
                        setattr(stage, column, value)
                    stage.stage_order = order
                    stage.is_active = True
                    kept_ids.add(stage.id)
                ordered.append(stage)

            parked = sorted(
                (s for sid, s in owned.items() if sid not in kept_ids),
                key=lambda s: (previous_order[s.id], s.id),
            )
            for order, stage in enumerate(parked, start=len(ordered) + 1):
                stage.stage_order = order
            db.session.flush()

            counts = _sync_forward_transitions(list(owned) + [s.id for s in ordered if s.id not in owned], ordered)

        logger.info(
            "Workflow template %d updated: %d stages, %d parked, transitions +%d ~%d -%d",
            template_id, len(ordered), len(parked),
            counts["created"], counts["reactivated"], counts["deactivated"],
            extra={"operation": "update_template", "template_id": template_id},
        )
        return WorkflowGraphStore.get_template(template_id)

    @staticmethod
    def delete_template(template_id: int) -> DeleteOutcome:
        """Delete an unreferenced template, or disable a referenced one.

        A template counts as referenced while any file workflow row points
        at it, finished or not.
        """
        with atomic("delete_template", resource_id=template_id):
            template = _require_template(template_id)
            referenced = db.session.execute(
                select(FileWorkflow.id).where(FileWorkflow.template_id == template_id).limit(1)
            ).first()

            if referenced is not None:
                template.is_active = False
                outcome = DeleteOutcome.DISABLED
            else:
                stage_ids = list(
                    db.session.execute(
                        select(WorkflowStage.id).where(WorkflowStage.template_id == template_id)
                    ).scalars()
                )
                if stage_ids:
                    transition_ids = list(
                        db.session.execute(
                            select(WorkflowTransition.id).where(
                                or_(
                                    WorkflowTransition.from_stage_id.in_(stage_ids),
                                    WorkflowTransition.to_stage_id.in_(stage_ids),
                                )
                            )
                        ).scalars()
                    )
                    if transition_ids:
                        db.session.execute(
                            update(FileMovement)
                            .where(FileMovement.transition_id.in_(transition_ids))
                            .values(transition_id=None)
                        )
                        db.session.execute(
                            delete(WorkflowTransition).where(WorkflowTransition.id.in_(transition_ids))
                        )
                    db.session.execute(delete(WorkflowAction).where(WorkflowAction.stage_id.in_(stage_ids)))
                    db.session.execute(delete(WorkflowStage).where(WorkflowStage.id.in_(stage_ids)))
                db.session.execute(delete(WorkflowTemplate).where(WorkflowTemplate.id == template_id))
                outcome = DeleteOutcome.DELETED

        logger.info(
            "Workflow template %d %s", template_id, outcome.value,
            extra={"operation": "delete_template", "template_id": template_id, "outcome": outcome.value},
        )
        return outcome

    @staticmethod
    def get_template(template_id: int) -> dict:
        """Template with its stages (ascending order, names resolved) and active transitions."""
        row = db.session.execute(
            select(WorkflowTemplate, FileCategory.name)
            .outerjoin(FileCategory, WorkflowTemplate.file_category_id == FileCategory.id)
            .where(WorkflowTemplate.id == template_id)
        ).first()
        if row is None:
            raise NotFoundError(resource="WorkflowTemplate", resource_id=template_id)
        template, category_name = row

        stage_rows = db.session.execute(
            select(WorkflowStage, EfilingDepartment.name, EfilingRole.name, EfilingRoleGroup.name)
            .outerjoin(EfilingDepartment, WorkflowStage.department_id == EfilingDepartment.id)
            .outerjoin(EfilingRole, WorkflowStage.role_id == EfilingRole.id)
            .outerjoin(EfilingRoleGroup, WorkflowStage.role_group_id == EfilingRoleGroup.id)
            .where(WorkflowStage.template_id == template_id)
            .order_by(WorkflowStage.stage_order)
        ).all()

        stages = []
        for stage, department_name, role_name, role_group_name in stage_rows:
            d = stage.to_dict()
            d["department_name"] = department_name
            d["role_name"] = role_name
            d["role_group_name"] = role_group_name
            stages.append(d)

        stage_ids = [s["id"] for s in stages]
        transitions = []
        if stage_ids:
            transitions = [
                t.to_dict()
                for t in db.session.execute(
                    select(WorkflowTransition)
                    .where(
                        WorkflowTransition.is_active.is_(True),
                        WorkflowTransition.from_stage_id.in_(stage_ids),
                    )
                    .order_by(WorkflowTransition.id)
                ).scalars()
            ]

        result = template.to_dict()
        result["file_category_name"] = category_name
        result["stages"] = stages
        result["transitions"] = transitions
        return result

    @staticmethod
    def list_templates(file_category_id: int | None = None, active_only: bool = False) -> list[dict]:
        """Template summaries with active stage counts, ordered by name."""
        stage_counts = (
            select(WorkflowStage.template_id, func.count(WorkflowStage.id).label("stage_count"))
            .where(WorkflowStage.is_active.is_(True))
            .group_by(WorkflowStage.template_id)
            .subquery()
        )
        stmt = (
            select(WorkflowTemplate, FileCategory.name, func.coalesce(stage_counts.c.stage_count, 0))
            .outerjoin(FileCategory, WorkflowTemplate.file_category_id == FileCategory.id)
            .outerjoin(stage_counts, stage_counts.c.template_id == WorkflowTemplate.id)
        )
        if file_category_id:
            stmt = stmt.where(WorkflowTemplate.file_category_id == file_category_id)
        if active_only:
            stmt = stmt.where(WorkflowTemplate.is_active.is_(True))
        stmt = stmt.order_by(WorkflowTemplate.name, WorkflowTemplate.id)

        results = []
        for template, category_name, stage_count in db.session.execute(stmt).all():
            d = template.to_dict()
            d["file_category_name"] = category_name
            d["stage_count"] = int(stage_count)
            results.append(d)
        return results
