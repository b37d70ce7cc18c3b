"""Override Store — per-user layout overrides with optimistic concurrency."""

import json
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from ..contracts import Position, UserLayoutOverride
from ..errors import OptimisticConcurrencyConflict
from ..utils.logging import get_logger
from ..utils.retry import with_retry

logger = get_logger("engine.override_store")


class OverrideStore:
    """Loads, compare-and-swaps and deletes ``UserLayoutOverride`` documents.

    ``override_version`` is 0 for a user who never customized the dashboard;
    the first accepted save creates version 1.
    """

    def __init__(self, db_session_factory=None, max_attempts: int = 3, backoff_base: float = 0.05):
        self._db_session_factory = db_session_factory
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base

    async def get(self, user_id: str, template_id: str) -> UserLayoutOverride | None:
        from ..models.user_layout_override import UserLayoutOverrideRecord

        async def _query():
            async with self._db_session_factory() as session:
                return (await session.execute(
                    select(UserLayoutOverrideRecord).where(
                        UserLayoutOverrideRecord.user_id == user_id,
                        UserLayoutOverrideRecord.template_id == template_id,
                    )
                )).scalar_one_or_none()

        record = await self._retry(_query, f"load override {user_id}/{template_id}")
        return self._to_override(record) if record else None

    async def current_version(self, user_id: str, template_id: str) -> int:
        override = await self.get(user_id, template_id)
        return override.override_version if override else 0

    async def save(self, override: UserLayoutOverride, expected_version: int) -> UserLayoutOverride:
        """Persist ``override`` if the stored version still equals ``expected_version``.

        Raises ``OptimisticConcurrencyConflict`` when another session wrote
        first. Returns the stored override with its version incremented.
        """
        from ..models.user_layout_override import UserLayoutOverrideRecord

        now = datetime.now(timezone.utc)
        saved = override.model_copy(update={
            "override_version": expected_version + 1,
            "updated_at": now,
        })
        values = {
            "template_version": saved.template_version,
            "widget_positions_json": json.dumps(
                {k: v.model_dump() for k, v in saved.widget_positions.items()}
            ),
            "widget_visibility_json": json.dumps(saved.widget_visibility),
            "override_version": saved.override_version,
            "updated_at": now,
        }

        async def _write() -> bool:
            async with self._db_session_factory() as session:
                if expected_version == 0:
                    session.add(UserLayoutOverrideRecord(
                        user_id=saved.user_id, template_id=saved.template_id, **values
                    ))
                    try:
                        await session.commit()
                    except IntegrityError:
                        await session.rollback()
                        return False
                    return True

                result = await session.execute(
                    update(UserLayoutOverrideRecord)
                    .where(
                        UserLayoutOverrideRecord.user_id == saved.user_id,
                        UserLayoutOverrideRecord.template_id == saved.template_id,
                        UserLayoutOverrideRecord.override_version == expected_version,
                    )
                    .values(**values)
                )
                if result.rowcount != 1:
                    await session.rollback()
                    return False
                await session.commit()
                return True

        written = await self._retry(_write, f"save override {saved.user_id}/{saved.template_id}")
        if not written:
            logger.warning(
                "override_version_conflict",
                user_id=saved.user_id,
                template_id=saved.template_id,
                expected_version=expected_version,
            )
            raise OptimisticConcurrencyConflict(saved.user_id, saved.template_id, expected_version)

        logger.info(
            "override_saved",
            user_id=saved.user_id,
            template_id=saved.template_id,
            override_version=saved.override_version,
            widgets=len(saved.referenced_widget_ids),
        )
        return saved

    async def delete(self, user_id: str, template_id: str) -> bool:
        """Delete the override, reverting the user to the template. True if one existed."""
        from ..models.user_layout_override import UserLayoutOverrideRecord

        async def _delete() -> int:
            async with self._db_session_factory() as session:
                result = await session.execute(
                    delete(UserLayoutOverrideRecord).where(
                        UserLayoutOverrideRecord.user_id == user_id,
                        UserLayoutOverrideRecord.template_id == template_id,
                    )
                )
                await session.commit()
                return result.rowcount

        deleted = await self._retry(_delete, f"delete override {user_id}/{template_id}")
        logger.info("override_deleted", user_id=user_id, template_id=template_id, existed=bool(deleted))
        return bool(deleted)

    async def _retry(self, operation, name: str):
        return await with_retry(
            operation, name=name, max_attempts=self._max_attempts, backoff_base=self._backoff_base
        )

    @staticmethod
    def _to_override(record) -> UserLayoutOverride:
        updated_at = record.updated_at
        if updated_at is not None and updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        positions = json.loads(record.widget_positions_json) if record.widget_positions_json else {}
        visibility = json.loads(record.widget_visibility_json) if record.widget_visibility_json else {}
        return UserLayoutOverride(
            user_id=record.user_id,
            template_id=record.template_id,
            template_version=record.template_version,
            widget_positions={k: Position(**v) for k, v in positions.items()},
            widget_visibility=visibility,
            updated_at=updated_at,
            override_version=record.override_version,
        )
