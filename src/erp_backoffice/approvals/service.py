"""Approval definitions, the workflow engine and the pending-for-me view."""

import logging
from dataclasses import replace
from typing import Any

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erp_backoffice.approvals import workflow
from erp_backoffice.approvals.models import (
    ApprovalHistoryModel,
    ApprovalLevelModel,
    ApprovalModel,
    ApprovalUserModel,
)
from erp_backoffice.approvals.workflow import StreamState
from erp_backoffice.auth.models import UserModel
from erp_backoffice.common.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    StaleApprovalStateError,
)
from erp_backoffice.common.listing import paginate
from erp_backoffice.common.schemas import ListParams, Pagination
from erp_backoffice.masterdata.resources import APPROVABLE_MODELS
from erp_backoffice.rbac.models import MenuModel

logger = logging.getLogger(__name__)


class ApprovalDefinitionService:
    """Per-menu approval definitions with contiguous, 1-based levels."""

    SORT_COLUMNS = {"id": ApprovalModel.id, "name": ApprovalModel.name, "menu_id": ApprovalModel.menu_id}

    # ── Definitions ──

    async def list_definitions(
        self, session: AsyncSession, params: ListParams
    ) -> tuple[list[ApprovalModel], Pagination]:
        return await paginate(
            session,
            select(ApprovalModel),
            params,
            search_columns=(ApprovalModel.name,),
            sort_columns=self.SORT_COLUMNS,
            tie_breaker=ApprovalModel.id,
        )

    async def get_approval(self, session: AsyncSession, approval_id: int) -> ApprovalModel:
        approval = await session.get(ApprovalModel, approval_id)
        if approval is None:
            raise NotFoundError("Approval not found")
        return approval

    async def describe(self, session: AsyncSession, approval: ApprovalModel) -> dict[str, Any]:
        """Definition with its levels in ascending order, each with its users."""
        levels = await self.get_levels(session, approval.id)
        users_by_level: dict[int, list[UserModel]] = {lv.id: [] for lv in levels}
        if levels:
            rows = await session.execute(
                select(ApprovalUserModel.level_id, UserModel)
                .join(UserModel, UserModel.id == ApprovalUserModel.user_id)
                .where(ApprovalUserModel.level_id.in_(list(users_by_level)))
                .order_by(UserModel.id)
            )
            for level_id, user in rows.all():
                users_by_level[level_id].append(user)
        return {
            "id": approval.id,
            "menu_id": approval.menu_id,
            "name": approval.name,
            "created_by_id": approval.created_by_id,
            "updated_by_id": approval.updated_by_id,
            "created_at": approval.created_at,
            "updated_at": approval.updated_at,
            "levels": [
                {
                    "id": lv.id,
                    "level": lv.level,
                    "name": lv.name,
                    "users": [
                        {"id": u.id, "username": u.username, "name": u.name}
                        for u in users_by_level[lv.id]
                    ],
                }
                for lv in levels
            ],
        }

    async def get_by_menu(self, session: AsyncSession, menu_id: int) -> ApprovalModel:
        result = await session.execute(select(ApprovalModel).where(ApprovalModel.menu_id == menu_id))
        approval = result.scalar_one_or_none()
        if approval is None:
            raise NotFoundError("Approval not found for this menu")
        return approval

    async def create_definition(
        self,
        session: AsyncSession,
        actor_id: int,
        menu_id: int,
        name: str,
        levels: list[dict[str, Any]],
    ) -> ApprovalModel:
        """Create a definition with its full level chain in one go."""
        await self._require_menu(session, menu_id)
        await self._ensure_menu_free(session, menu_id)
        numbered = _number_levels(levels)

        approval = ApprovalModel(
            menu_id=menu_id, name=name, created_by_id=actor_id, updated_by_id=actor_id
        )
        session.add(approval)
        await session.flush()
        for entry in numbered:
            await self._add_level(session, approval.id, entry["level"], entry.get("name", ""), entry.get("user_ids", []))
        logger.info("Created approval %s on menu %s with %d level(s)", approval.id, menu_id, len(numbered))
        return approval

    async def update_definition(
        self, session: AsyncSession, approval_id: int, actor_id: int, **updates
    ) -> ApprovalModel:
        approval = await self.get_approval(session, approval_id)
        menu_id = updates.get("menu_id")
        if menu_id is not None and menu_id != approval.menu_id:
            await self._require_menu(session, menu_id)
            await self._ensure_menu_free(session, menu_id)
            approval.menu_id = menu_id
        if updates.get("name") is not None:
            approval.name = updates["name"]
        approval.updated_by_id = actor_id
        await session.flush()
        return approval

    async def delete_definition(self, session: AsyncSession, approval_id: int) -> None:
        approval = await self.get_approval(session, approval_id)
        await self._ensure_unused(session, approval_id, "Approval definition is referenced by approval history")
        await session.delete(approval)
        await session.flush()

    async def _ensure_unused(self, session: AsyncSession, approval_id: int, message: str) -> None:
        """Streams fold against the level chain, so it is frozen once history exists."""
        used = (
            await session.execute(
                select(ApprovalHistoryModel.id)
                .where(ApprovalHistoryModel.approval_id == approval_id)
                .limit(1)
            )
        ).first()
        if used is not None:
            raise ConflictError(message)

    async def _require_menu(self, session: AsyncSession, menu_id: int) -> None:
        if await session.get(MenuModel, menu_id) is None:
            raise InvalidInputError("Menu does not exist")

    async def _ensure_menu_free(self, session: AsyncSession, menu_id: int) -> None:
        result = await session.execute(select(ApprovalModel.id).where(ApprovalModel.menu_id == menu_id))
        if result.first() is not None:
            raise ConflictError("Menu already has an approval definition")

    # ── Levels ──

    async def get_levels(self, session: AsyncSession, approval_id: int) -> list[ApprovalLevelModel]:
        result = await session.execute(
            select(ApprovalLevelModel)
            .where(ApprovalLevelModel.approval_id == approval_id)
            .order_by(ApprovalLevelModel.level)
        )
        return list(result.scalars().all())

    async def max_level(self, session: AsyncSession, approval_id: int) -> int:
        result = await session.execute(
            select(func.max(ApprovalLevelModel.level)).where(ApprovalLevelModel.approval_id == approval_id)
        )
        return result.scalar_one() or 0

    async def append_level(
        self,
        session: AsyncSession,
        approval_id: int,
        actor_id: int,
        level: int | None = None,
        name: str = "",
        user_ids: list[int] | None = None,
    ) -> ApprovalLevelModel:
        """Add level N+1; any other explicit index would leave a gap or a duplicate."""
        approval = await self.get_approval(session, approval_id)
        await self._ensure_unused(session, approval_id, "Levels cannot be added once approval history exists")
        expected = await self.max_level(session, approval_id) + 1
        if level is not None and level != expected:
            raise InvalidInputError(f"Next level must be {expected}")
        added = await self._add_level(session, approval_id, expected, name, user_ids or [])
        approval.updated_by_id = actor_id
        await session.flush()
        return added

    async def delete_level(self, session: AsyncSession, approval_id: int, level: int) -> None:
        await self.get_approval(session, approval_id)
        await self._ensure_unused(session, approval_id, "Levels cannot be removed once approval history exists")
        top = await self.max_level(session, approval_id)
        if level != top:
            raise InvalidInputError(f"Only the highest level ({top}) can be removed")
        if top <= 1:
            raise InvalidInputError("An approval must keep at least one level")
        await session.execute(
            delete(ApprovalLevelModel).where(
                ApprovalLevelModel.approval_id == approval_id, ApprovalLevelModel.level == level
            )
        )
        await session.flush()

    async def get_level(self, session: AsyncSession, level_id: int) -> ApprovalLevelModel:
        level = await session.get(ApprovalLevelModel, level_id)
        if level is None:
            raise NotFoundError("Approval level not found")
        return level

    async def replace_level_users(
        self, session: AsyncSession, level_id: int, user_ids: list[int]
    ) -> list[UserModel]:
        """Make ``user_ids`` the level's complete approver set."""
        await self.get_level(session, level_id)
        wanted = list(dict.fromkeys(user_ids))
        await self._require_users(session, wanted)
        await session.execute(delete(ApprovalUserModel).where(ApprovalUserModel.level_id == level_id))
        session.add_all(ApprovalUserModel(level_id=level_id, user_id=uid) for uid in wanted)
        await session.flush()
        return await self.level_users(session, level_id)

    async def level_users(self, session: AsyncSession, level_id: int) -> list[UserModel]:
        result = await session.execute(
            select(UserModel)
            .join(ApprovalUserModel, ApprovalUserModel.user_id == UserModel.id)
            .where(ApprovalUserModel.level_id == level_id)
            .order_by(UserModel.id)
        )
        return list(result.scalars().all())

    async def approver_ids(self, session: AsyncSession, approval_id: int, level: int) -> set[int]:
        result = await session.execute(
            select(ApprovalUserModel.user_id)
            .join(ApprovalLevelModel, ApprovalLevelModel.id == ApprovalUserModel.level_id)
            .where(ApprovalLevelModel.approval_id == approval_id, ApprovalLevelModel.level == level)
        )
        return set(result.scalars().all())

    async def levels_without_approvers(self, session: AsyncSession, approval_id: int) -> list[int]:
        result = await session.execute(
            select(ApprovalLevelModel.level)
            .outerjoin(ApprovalUserModel, ApprovalUserModel.level_id == ApprovalLevelModel.id)
            .where(ApprovalLevelModel.approval_id == approval_id)
            .group_by(ApprovalLevelModel.level)
            .having(func.count(ApprovalUserModel.id) == 0)
            .order_by(ApprovalLevelModel.level)
        )
        return list(result.scalars().all())

    async def _add_level(
        self, session: AsyncSession, approval_id: int, level: int, name: str, user_ids: list[int]
    ) -> ApprovalLevelModel:
        wanted = list(dict.fromkeys(user_ids))
        await self._require_users(session, wanted)
        row = ApprovalLevelModel(approval_id=approval_id, level=level, name=name)
        session.add(row)
        await session.flush()
        session.add_all(ApprovalUserModel(level_id=row.id, user_id=uid) for uid in wanted)
        await session.flush()
        return row

    @staticmethod
    async def _require_users(session: AsyncSession, user_ids: list[int]) -> None:
        if not user_ids:
            return
        found = set(
            (await session.execute(select(UserModel.id).where(UserModel.id.in_(user_ids)))).scalars().all()
        )
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise InvalidInputError(f"Unknown user id(s): {missing}")


def _number_levels(levels: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Assign missing indices by position and check the result is exactly 1..N."""
    if not levels:
        raise InvalidInputError("An approval needs at least one level")
    numbered = [
        {**entry, "level": entry.get("level") or position}
        for position, entry in enumerate(levels, start=1)
    ]
    indices = sorted(entry["level"] for entry in numbered)
    if indices != list(range(1, len(numbered) + 1)):
        raise InvalidInputError("Approval levels must be numbered 1..N without gaps")
    return sorted(numbered, key=lambda entry: entry["level"])


class WorkflowService:
    """Append-only approval streams keyed by (reference table, record id)."""

    def __init__(self, definitions: ApprovalDefinitionService):
        self.definitions = definitions

    # ── Read ──

    async def events(
        self, session: AsyncSession, ref_table: str, ref_id: int
    ) -> list[ApprovalHistoryModel]:
        result = await session.execute(
            select(ApprovalHistoryModel)
            .where(ApprovalHistoryModel.ref_table == ref_table, ApprovalHistoryModel.ref_id == ref_id)
            .order_by(ApprovalHistoryModel.seq, ApprovalHistoryModel.id)
        )
        return list(result.scalars().all())

    async def view(self, session: AsyncSession, ref_table: str, ref_id: int) -> dict[str, Any]:
        """Stream and its derived state; an empty stream reads as draft."""
        events = await self.events(session, ref_table, ref_id)
        max_level = 0
        if events:
            max_level = await self.definitions.max_level(session, events[-1].approval_id)
        state = workflow.derive_state(events, max_level)
        return {
            "ref_table": ref_table,
            "ref_id": ref_id,
            "approval_id": state.approval_id,
            "status": state.status,
            "current_level": state.current_level,
            "max_level": max_level,
            "events": events,
        }

    async def list_history(
        self,
        session: AsyncSession,
        params: ListParams,
        ref_table: str | None = None,
        actor_id: int | None = None,
    ) -> tuple[list[ApprovalHistoryModel], Pagination]:
        query = select(ApprovalHistoryModel)
        if ref_table:
            query = query.where(ApprovalHistoryModel.ref_table == ref_table)
        if actor_id is not None:
            query = query.where(ApprovalHistoryModel.actor_id == actor_id)
        return await paginate(
            session,
            query,
            params,
            search_columns=(ApprovalHistoryModel.ref_table, ApprovalHistoryModel.note),
            sort_columns={
                "id": ApprovalHistoryModel.id,
                "ref_table": ApprovalHistoryModel.ref_table,
                "ref_id": ApprovalHistoryModel.ref_id,
                "created_at": ApprovalHistoryModel.created_at,
            },
            tie_breaker=ApprovalHistoryModel.id,
        )

    # ── Transitions ──

    async def act(
        self,
        session: AsyncSession,
        action: str,
        actor_id: int,
        ref_table: str,
        ref_id: int,
        note: str = "",
        approval_id: int | None = None,
        level: int | None = None,
    ) -> tuple[ApprovalHistoryModel, StreamState]:
        """Validate ``action`` against the derived state and append exactly one event.

        ``level`` is the level the caller believes is pending; a mismatch means
        another actor moved the stream first.
        """
        if action not in workflow.ACTIONS:
            raise InvalidInputError(f"Unknown approval action {action}")
        record = await self._load_record(session, ref_table, ref_id)
        events = await self.events(session, ref_table, ref_id)

        if events:
            stream_approval = events[-1].approval_id
            if approval_id is not None and approval_id != stream_approval:
                raise InvalidInputError("approval_id does not match this approval stream")
            approval_id = stream_approval
        elif approval_id is None:
            raise InvalidInputError("approval_id is required for the first submission")

        await self.definitions.get_approval(session, approval_id)
        max_level = await self.definitions.max_level(session, approval_id)
        if max_level == 0:
            raise InvalidInputError("Approval definition has no levels")

        state = workflow.derive_state(events, max_level)
        workflow.check_transition(state, action)
        if level is not None and level != state.current_level:
            raise StaleApprovalStateError(
                f"Approval is at level {state.current_level}, not {level}"
            )

        if action in (workflow.SUBMIT, workflow.APPROVE):
            empty = await self.definitions.levels_without_approvers(session, approval_id)
            if empty:
                raise InvalidInputError(f"Approval level(s) {empty} have no approvers")

        if action in workflow.OWNER_ACTIONS:
            if record.created_by_id != actor_id:
                raise ForbiddenError(f"Only the record owner can {action}")
        else:
            approvers = await self.definitions.approver_ids(session, approval_id, state.current_level)
            if actor_id not in approvers:
                raise ForbiddenError(
                    f"You are not an approver for level {state.current_level}"
                )

        event = ApprovalHistoryModel(
            ref_table=ref_table,
            ref_id=ref_id,
            seq=state.next_seq,
            approval_id=approval_id,
            level=state.current_level,
            actor_id=actor_id,
            action=action,
            note=note,
        )
        await self._append(session, event)
        new_state = replace(
            workflow.transition(state, action, max_level),
            last_seq=event.seq,
            approval_id=approval_id,
        )
        logger.info(
            "Approval %s on %s/%s by user %s: %s -> %s (level %s)",
            action, ref_table, ref_id, actor_id, state.status, new_state.status, new_state.current_level,
        )
        return event, new_state

    async def _append(self, session: AsyncSession, event: ApprovalHistoryModel) -> None:
        """Insert the event; losing the race for ``seq`` surfaces as stale state."""
        session.add(event)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise StaleApprovalStateError() from exc

    async def _load_record(self, session: AsyncSession, ref_table: str, ref_id: int):
        model = APPROVABLE_MODELS.get(ref_table)
        if model is None:
            raise InvalidInputError(f"Table {ref_table} does not support approvals")
        record = await session.get(model, ref_id)
        if record is None:
            raise NotFoundError("Referenced record not found")
        return record

    # ── Notifications ──

    async def pending_for(self, session: AsyncSession, user_id: int) -> list[dict[str, Any]]:
        """Records whose pending level lists ``user_id`` as an approver."""
        items: list[dict[str, Any]] = []
        for table, model in APPROVABLE_MODELS.items():
            items.extend(await self._pending_in_table(session, table, model, user_id))
        items.sort(key=lambda item: item["last_event_at"], reverse=True)
        return items

    async def _pending_in_table(
        self, session: AsyncSession, table: str, model, user_id: int
    ) -> list[dict[str, Any]]:
        history = ApprovalHistoryModel
        latest = (
            select(history.ref_id, func.max(history.seq).label("seq"))
            .where(history.ref_table == table)
            .group_by(history.ref_id)
            .subquery()
        )
        pending_level = case((history.action == workflow.SUBMIT, 1), else_=history.level + 1)
        query = (
            select(history, pending_level.label("pending_level"))
            .join(latest, and_(history.ref_id == latest.c.ref_id, history.seq == latest.c.seq))
            .join(model, model.id == history.ref_id)
            .join(
                ApprovalLevelModel,
                and_(
                    ApprovalLevelModel.approval_id == history.approval_id,
                    ApprovalLevelModel.level == pending_level,
                ),
            )
            .join(
                ApprovalUserModel,
                and_(
                    ApprovalUserModel.level_id == ApprovalLevelModel.id,
                    ApprovalUserModel.user_id == user_id,
                ),
            )
            .where(
                history.ref_table == table,
                history.action.in_((workflow.SUBMIT, workflow.APPROVE)),
            )
        )
        rows = await session.execute(query)
        return [
            {
                "ref_table": event.ref_table,
                "ref_id": event.ref_id,
                "approval_id": event.approval_id,
                "level": level,
                "last_action": event.action,
                "last_actor_id": event.actor_id,
                "last_event_at": event.created_at,
            }
            for event, level in rows.all()
        ]
