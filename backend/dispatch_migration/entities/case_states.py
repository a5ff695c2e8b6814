import uuid

import structlog
from sqlalchemy import select

from dispatch_migration.core.clock import utc_now
from dispatch_migration.entities.base import EntityMigration
from dispatch_migration.legacy.tables import dispatch_instruction, dispatch_state
from dispatch_migration.models import CaseState, CaseStateType

logger = structlog.get_logger(__name__)

STATE_CODES = {
    11: CaseStateType.TREATMENT_ACTIVE,
    12: CaseStateType.CASE_CLOSED,
}


class CaseStateMigration(EntityMigration):
    """Status history rows, chained per case through ``previous_state``.

    A state belongs to a case only through its migrated order: instruction to
    order, then the order's patient to that patient's case. Rows are paged by
    legacy id, which follows ``changed_at`` in the legacy table; a row that
    goes back in time for its case is logged. The chain is seeded from whatever
    the target already holds so that a resumed or differential run continues
    the sequence.
    """

    name = "case_states"
    source_table = dispatch_state
    target_model = CaseState
    legacy_id_attr = "legacy_state_id"
    depends_on = ("cases",)
    lookups = ("order", "case", "profile")

    def source_select(self):
        s = dispatch_state.c
        i = dispatch_instruction.c
        return select(
            s.id.label("legacy_id"),
            s.status,
            s.on,
            s.changed_at,
            s.actor_id,
            s.instruction_id,
            i.patient_id,
        ).select_from(
            dispatch_state.outerjoin(dispatch_instruction, i.id == s.instruction_id)
        )

    def prepare(self, ctx, target):
        latest: dict[uuid.UUID, str] = {}
        rows = target.execute(
            select(CaseState.case_id, CaseState.current_state).order_by(
                CaseState.changed_at, CaseState.legacy_state_id
            )
        )
        for case_id, current_state in rows:
            latest[case_id] = current_state
        ctx.state["latest_state"] = latest

    def transform(self, row, ctx):
        if ctx.lookups["order"].get(row.instruction_id) is None:
            return self.skip(ctx, "order not migrated")
        case_id = ctx.lookups["case"].get(row.patient_id)
        if case_id is None:
            return self.skip(ctx, "case not migrated")
        state = STATE_CODES.get(row.status)
        if state is None:
            return self.skip(ctx, f"unmapped status code {row.status}")

        latest = ctx.state.setdefault("latest_state", {})
        previous_state = latest.get(case_id)
        latest[case_id] = state.value
        self._check_order(row, case_id, ctx)
        return [
            (
                CaseState,
                {
                    "id": uuid.uuid4(),
                    "case_id": case_id,
                    "changed_by_id": ctx.lookups["profile"].get(row.actor_id),
                    "previous_state": previous_state,
                    "current_state": state.value,
                    "reason": f"Status transition from code {row.status}",
                    "notes": "State is active" if row.on else "State is inactive",
                    "automated": True,
                    "changed_at": row.changed_at or utc_now(),
                    "metadata_": {
                        "source_status": row.status,
                        "source_on": row.on,
                        "source_actor_id": row.actor_id,
                        "source_instruction_id": row.instruction_id,
                    },
                    "legacy_state_id": row.legacy_id,
                },
            )
        ]

    def _check_order(self, row, case_id, ctx) -> None:
        if row.changed_at is None:
            return
        seen = ctx.state.setdefault("last_changed_at", {})
        last = seen.get(case_id)
        if last is not None and row.changed_at < last:
            logger.warning(
                "state_out_of_order",
                legacy_id=row.legacy_id,
                case_id=str(case_id),
                changed_at=row.changed_at.isoformat(),
                previous_changed_at=last.isoformat(),
            )
            return
        seen[case_id] = row.changed_at
