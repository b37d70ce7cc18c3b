"""Template Store — versioned, append-only dashboard template history."""

import json
from typing import Any

from pydantic import ValidationError
from sqlalchemy import func as sa_func, select
from sqlalchemy.exc import IntegrityError

from ..contracts import DashboardTemplate, parse_widget_config, validation_messages
from ..errors import InvalidTemplate, PersistenceFailure, TemplateNotFound
from ..utils.cache import VersionedCache
from ..utils.logging import get_logger
from ..utils.retry import with_retry

logger = get_logger("engine.template_store")


def validate_template(template: DashboardTemplate) -> list[str]:
    """Return every invariant ``template`` violates; empty when publishable."""
    violations: list[str] = []

    seen: set[str] = set()
    for widget in template.widgets:
        if widget.id in seen:
            violations.append(f"widgets: duplicate widget id '{widget.id}'")
        seen.add(widget.id)

    thresholds = [bp.pixel_threshold for bp in template.breakpoints]
    for prev, cur in zip(thresholds, thresholds[1:]):
        if cur >= prev:
            violations.append(
                f"breakpoints: pixelThreshold must strictly decrease ({prev} then {cur})"
            )
    if thresholds and thresholds[-1] != 0:
        violations.append("breakpoints: last breakpoint must be a catch-all with pixelThreshold 0")

    names = [bp.name for bp in template.breakpoints]
    if len(set(names)) != len(names):
        violations.append("breakpoints: breakpoint names must be unique")

    for widget in template.widgets:
        if widget.position.right > template.columns:
            violations.append(
                f"widgets.{widget.id}: x + w = {widget.position.right} exceeds {template.columns} columns"
            )
        try:
            parse_widget_config(widget.type, widget.config)
        except ValidationError as e:
            for message in validation_messages(e):
                violations.append(f"widgets.{widget.id}.config.{message}")

    if template.themes and template.settings.default_theme not in template.themes:
        violations.append(
            f"settings: defaultTheme '{template.settings.default_theme}' is not a defined theme"
        )

    return violations


def parse_template(document: Any) -> DashboardTemplate:
    """Build a template from a raw document, raising ``InvalidTemplate`` on schema errors."""
    if isinstance(document, DashboardTemplate):
        return document
    template_id = document.get("id", "<unknown>") if isinstance(document, dict) else "<unknown>"
    try:
        return DashboardTemplate.model_validate(document)
    except ValidationError as e:
        raise InvalidTemplate(template_id, validation_messages(e)) from e


class TemplateStore:
    """Owns canonical dashboard templates, keyed by role or tenant id.

    Every ``put`` appends a new version; nothing is ever edited in place.
    Reads of a specific version are served from cache forever, while the
    latest-version pointer moves only when a new version is published.
    """

    def __init__(
        self,
        db_session_factory=None,
        cache: VersionedCache | None = None,
        max_attempts: int = 3,
        backoff_base: float = 0.05,
    ):
        self._db_session_factory = db_session_factory
        self._cache = cache or VersionedCache()
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base

    @property
    def cache(self) -> VersionedCache:
        return self._cache

    async def get(self, template_id: str, version: int | None = None) -> DashboardTemplate:
        """Get a template version, or the latest version when ``version`` is None."""
        if version is None:
            version = self._cache.latest_version(template_id)
            if version is None:
                version = await self._load_latest_version(template_id)
                if version is None:
                    raise TemplateNotFound(template_id)
                self._cache.publish(template_id, version)

        template = await self._cache.get_or_compute(
            template_id, version, lambda: self._load_version(template_id, version)
        )
        if template is None:
            raise TemplateNotFound(template_id, version)
        return template

    async def put(self, template: DashboardTemplate | dict) -> DashboardTemplate:
        """Validate and publish ``template`` as the next version.

        The incoming ``version`` is ignored; the store assigns ``latest + 1``.
        """
        template = parse_template(template)
        violations = validate_template(template)
        if violations:
            logger.warning("template_rejected", template_id=template.id, violations=len(violations))
            raise InvalidTemplate(template.id, violations)

        published = None
        for _ in range(self._max_attempts):
            published = await with_retry(
                lambda: self._insert_next_version(template),
                name=f"publish template {template.id}",
                max_attempts=self._max_attempts,
                backoff_base=self._backoff_base,
            )
            if published is not None:
                break
            logger.info("template_version_race", template_id=template.id)
        if published is None:
            raise PersistenceFailure(
                f"publish template {template.id}", self._max_attempts, "version number contention"
            )
        self._cache.publish(published.id, published.version, published)
        logger.info("template_published", template_id=published.id, version=published.version,
                    widgets=len(published.widgets))
        return published

    async def versions(self, template_id: str) -> list[int]:
        """List published versions of ``template_id``, oldest first."""
        from ..models.dashboard_template import DashboardTemplateRecord

        async def _query():
            async with self._db_session_factory() as session:
                result = await session.execute(
                    select(DashboardTemplateRecord.version)
                    .where(DashboardTemplateRecord.template_id == template_id)
                    .order_by(DashboardTemplateRecord.version)
                )
                return list(result.scalars().all())

        versions = await with_retry(
            _query, name=f"list versions of {template_id}",
            max_attempts=self._max_attempts, backoff_base=self._backoff_base,
        )
        if not versions:
            raise TemplateNotFound(template_id)
        return versions

    async def exists(self, template_id: str) -> bool:
        if self._cache.latest_version(template_id) is not None:
            return True
        return await self._load_latest_version(template_id) is not None

    async def _insert_next_version(self, template: DashboardTemplate) -> DashboardTemplate | None:
        """Insert ``template`` as ``max(version) + 1``; None if another publish won the number."""
        from ..models.dashboard_template import DashboardTemplateRecord

        async with self._db_session_factory() as session:
            latest = (await session.execute(
                select(sa_func.max(DashboardTemplateRecord.version))
                .where(DashboardTemplateRecord.template_id == template.id)
            )).scalar_one_or_none()
            published = template.model_copy(update={"version": (latest or 0) + 1})
            session.add(DashboardTemplateRecord(
                template_id=published.id,
                version=published.version,
                document_json=json.dumps(published.to_document()),
            ))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return None
            return published

    async def _load_latest_version(self, template_id: str) -> int | None:
        from ..models.dashboard_template import DashboardTemplateRecord

        async def _query():
            async with self._db_session_factory() as session:
                return (await session.execute(
                    select(sa_func.max(DashboardTemplateRecord.version))
                    .where(DashboardTemplateRecord.template_id == template_id)
                )).scalar_one_or_none()

        return await with_retry(
            _query, name=f"load latest version of {template_id}",
            max_attempts=self._max_attempts, backoff_base=self._backoff_base,
        )

    async def _load_version(self, template_id: str, version: int) -> DashboardTemplate | None:
        from ..models.dashboard_template import DashboardTemplateRecord

        async def _query():
            async with self._db_session_factory() as session:
                return (await session.execute(
                    select(DashboardTemplateRecord).where(
                        DashboardTemplateRecord.template_id == template_id,
                        DashboardTemplateRecord.version == version,
                    )
                )).scalar_one_or_none()

        record = await with_retry(
            _query, name=f"load template {template_id} v{version}",
            max_attempts=self._max_attempts, backoff_base=self._backoff_base,
        )
        if record is None:
            return None
        logger.debug("template_loaded", template_id=template_id, version=version)
        return DashboardTemplate.model_validate(json.loads(record.document_json))
