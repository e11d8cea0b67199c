"""Property metadata resolver.

Builds a static registry mapping each mapped class to the ordered set
of columns that participate in change capture, so that saves never pay
for mapper inspection.
"""

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import Column, event, inspect
from sqlalchemy.orm import DeclarativeBase, Mapper

from audittrail.core.audit.markers import get_auditable_marker
from audittrail.core.constants import DELETION_FLAG
from audittrail.core.database.base import AuditableMixin, EntityChangeAuditableMixin
from audittrail.core.errors import MetadataError


log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class PropertySpec:
    """A column that participates in change capture.

    Attributes:
        name: Mapped attribute name on the entity
        column_name: Database column name
        values_hidden: Whether values are replaced by the redaction token
        display_format: Optional ``str.format`` template for values
    """

    name: str
    column_name: str
    values_hidden: bool = False
    display_format: str | None = None


class PropertyRegistry:
    """Registry of trackable properties per entity type.

    Resolution scans column attributes only (relationships are never
    diffed), skips primary keys, and keeps the mapper's declaration
    order. Results are cached per class.
    """

    deletion_flag = DELETION_FLAG

    def __init__(self) -> None:
        self._specs: dict[type[Any], tuple[PropertySpec, ...]] = {}

    def resolve(self, entity_type: type[Any]) -> tuple[PropertySpec, ...]:
        """Get the trackable properties of an entity type.

        Args:
            entity_type: A mapped class

        Returns:
            Ordered tuple of property specs

        Raises:
            MetadataError: If a change-auditable type has no trackable
                properties, or masks or formats its deletion flag
        """
        specs = self._specs.get(entity_type)
        if specs is None:
            specs = self._scan(inspect(entity_type))
            self._check(entity_type, specs)
            self._specs[entity_type] = specs
        return specs

    def validate(self, base: type[DeclarativeBase]) -> int:
        """Resolve every mapped class of a declarative base.

        Call this once at startup so configuration errors stop the
        application instead of surfacing during a save.

        Args:
            base: The declarative base whose registry should be checked

        Returns:
            Number of change-auditable entity types found

        Raises:
            MetadataError: On the first invalid entity type
        """
        base.registry.configure()
        audited = 0
        for mapper in base.registry.mappers:
            cls = mapper.class_
            specs = self.resolve(cls)
            if issubclass(cls, EntityChangeAuditableMixin):
                audited += 1
                log.debug(
                    "audit_metadata_resolved",
                    entity=cls.__name__,
                    properties=[spec.name for spec in specs],
                )
        log.info("audit_metadata_validated", audited_entities=audited)
        return audited

    def clear(self) -> None:
        """Drop all cached resolutions."""
        self._specs.clear()

    def _scan(self, mapper: Mapper[Any]) -> tuple[PropertySpec, ...]:
        specs: list[PropertySpec] = []
        for prop in mapper.column_attrs:
            column = prop.columns[0]
            if not isinstance(column, Column) or column.primary_key:
                continue
            marker = get_auditable_marker(column.info)
            if marker is None:
                continue
            specs.append(
                PropertySpec(
                    name=prop.key,
                    column_name=column.name,
                    values_hidden=marker.hide_values,
                    display_format=marker.display_format,
                )
            )
        return tuple(specs)

    def _check(self, entity_type: type[Any], specs: tuple[PropertySpec, ...]) -> None:
        if not issubclass(entity_type, EntityChangeAuditableMixin):
            return
        if not specs:
            raise MetadataError(
                f"{entity_type.__name__} is change-auditable but has no "
                "properties marked with auditable()",
                entity=entity_type.__name__,
            )
        for spec in specs:
            if spec.name == self.deletion_flag and (spec.values_hidden or spec.display_format):
                raise MetadataError(
                    f"{entity_type.__name__}.{spec.name} is the deletion flag "
                    "and cannot hide or format its values",
                    entity=entity_type.__name__,
                    details={"property": spec.name},
                )


# Process-wide registry used by audited sessions unless one is injected
property_registry = PropertyRegistry()


def _keep_original(target: Any, value: Any, oldvalue: Any, initiator: Any) -> None:
    """No-op; registered only for its ``active_history`` side effect."""


def _load_original_values(mapper: Mapper[Any], cls: type[Any]) -> None:
    """Load the stored value before tracked columns are overwritten.

    Without this, assigning to an expired attribute (after a commit with
    ``expire_on_commit=True``) leaves no original value in its history.
    """
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        if not isinstance(column, Column) or column.primary_key:
            continue
        if prop.key != DELETION_FLAG and get_auditable_marker(column.info) is None:
            continue
        attr = getattr(cls, prop.key)
        if not event.contains(attr, "set", _keep_original):
            event.listen(attr, "set", _keep_original, active_history=True)


for _mixin in (EntityChangeAuditableMixin, AuditableMixin):
    event.listen(_mixin, "mapper_configured", _load_original_values, propagate=True)
