"""
Create, update and delete for entity resources, including the draft lifecycle.

``MutationCompiler`` turns validated arguments into payloads, key predicates
and statements. ``MutationExecutor`` runs them inside an explicit transaction:
committed on success, rolled back on any failure or timeout.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy import Table, and_, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import ColumnElement

from schemamcp.adapters.base import DataService, Transaction
from schemamcp.adapters.sqlalchemy.schema import DRAFT_ADMIN_LINK
from schemamcp.adapters.sqlalchemy.service import fill_generated_keys, table_values
from schemamcp.annotations.structures import AssociationInfo, DraftParent, ResourceAnnotation
from schemamcp.core.coercion import coerce_key_value
from schemamcp.core.context import Principal
from schemamcp.core.errors import (
    CreateFailedError,
    DeleteFailedError,
    DraftCreateFailedError,
    ExecutionError,
    GetFailedError,
    MissingKeyError,
    NoFieldsError,
    OperationTimeoutError,
    SchemaMcpError,
    UpdateFailedError,
)
from schemamcp.logging import get_logger
from schemamcp.policy.redaction import OmissionFilter
from schemamcp.utils.timeout import DEFAULT_TIMEOUT_MS, with_timeout

logger = get_logger(__name__)

T = TypeVar("T")

_DRAFT_FLAGS = {"IsActiveEntity": False, "HasActiveEntity": False, "HasDraftEntity": False}


def normalize_key_arguments(
    resource: ResourceAnnotation,
    args: dict[str, Any],
    *,
    value_shorthand: bool = False,
) -> dict[str, Any]:
    """
    Rename key arguments to their declared spelling.

    Keys match case-insensitively. With ``value_shorthand`` a single-key
    entity also accepts its key under ``value``.
    """
    result = dict(args)
    lowered = {k.lower(): k for k in args}
    for key in resource.resource_keys:
        if key in result:
            continue
        given = lowered.get(key.lower())
        if given is not None:
            result[key] = result.pop(given)

    if value_shorthand and len(resource.resource_keys) == 1 and "value" in result:
        key = next(iter(resource.resource_keys))
        if key not in result:
            result[key] = result.pop("value")
    return result


class MutationCompiler:
    """Builds payloads, key predicates and DML statements for one resource."""

    def __init__(self, resource: ResourceAnnotation) -> None:
        self.resource = resource

    def extract_keys(self, args: dict[str, Any]) -> dict[str, Any]:
        """
        Collect and coerce every declared key.

        Raises:
            MissingKeyError: A key is absent or null
        """
        keys = {}
        for name, prop in self.resource.resource_keys.items():
            value = args.get(name)
            if value is None:
                raise MissingKeyError(name, list(self.resource.resource_keys))
            keys[name] = coerce_key_value(prop, value)
        return keys

    def build_payload(
        self, args: dict[str, Any], *, include_keys: bool = True
    ) -> tuple[dict[str, Any], dict[str, list[dict[str, Any]]]]:
        """
        Split arguments into column values and deep-insert children.

        Associations without deep insert are written through their foreign-key
        field. Computed fields are never written.
        """
        resource = self.resource
        data: dict[str, Any] = {}
        children: dict[str, list[dict[str, Any]]] = {}

        for name, prop in resource.properties.items():
            if name in resource.computed_fields:
                continue
            if name in resource.resource_keys and not include_keys:
                continue

            if prop.is_navigation:
                if name in resource.deep_insert_refs:
                    if args.get(name) is not None:
                        children[name] = list(args[name])
                    continue
                fk = resource.foreign_key_for(name)
                if fk in args and fk not in resource.computed_fields:
                    data[fk] = args[fk]
                continue

            if name in args:
                value = args[name]
                if name in resource.resource_keys and value is not None:
                    value = coerce_key_value(prop, value)
                data[name] = value

        return data, children

    def key_predicate(self, table: Table, keys: dict[str, Any]) -> ColumnElement:
        return and_(*[table.c[name] == value for name, value in keys.items()])

    def compile_insert(self, table: Table, data: dict[str, Any]) -> Any:
        return insert(table).values(table_values(table, data))

    def compile_update(self, table: Table, keys: dict[str, Any], data: dict[str, Any]) -> Any:
        return update(table).where(self.key_predicate(table, keys)).values(table_values(table, data))

    def compile_delete(self, table: Table, keys: dict[str, Any]) -> Any:
        return delete(table).where(self.key_predicate(table, keys))


class MutationExecutor:
    """
    Runs create, update and delete in explicit transactions.

    Example:
        executor = MutationExecutor(resource, service)
        row = await executor.create({"title": "Emma", "author_ID": 7}, principal)
    """

    def __init__(
        self,
        resource: ResourceAnnotation,
        service: DataService,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.resource = resource
        self.service = service
        self.timeout_ms = timeout_ms
        self.compiler = MutationCompiler(resource)
        self.omission = OmissionFilter(resource.omitted_fields)
        self.log = logger.bind(entity=resource.qualified_name)

    async def _in_transaction(
        self,
        principal: Principal,
        label: str,
        error_cls: type[ExecutionError],
        work: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        tx = self.service.tx(principal)
        try:
            result = await with_timeout(
                work(tx), self.timeout_ms, label=label, on_timeout=tx.rollback
            )
            await tx.commit()
            return result
        except OperationTimeoutError:
            raise
        except SchemaMcpError as e:
            await tx.rollback()
            if isinstance(e, ExecutionError) and not isinstance(e, error_cls):
                raise error_cls(e.message) from e
            raise
        except Exception as e:
            await tx.rollback()
            self.log.error(f"{label} failed", exc_info=True)
            raise error_cls(e) from e

    async def _read_back(
        self, tx: Transaction, table: Table, keys: dict[str, Any]
    ) -> dict[str, Any] | None:
        rows = await tx.fetch(
            select(table).where(self.compiler.key_predicate(table, keys)).limit(1)
        )
        return rows[0] if rows else None

    # --- Get ---

    async def get(self, args: dict[str, Any]) -> dict[str, Any] | None:
        """Read one row by its full key, or None."""
        keys = self.compiler.extract_keys(args)
        table = self.service.entity(self.resource.target)
        columns = [table.c[name] for name in self.resource.scalar_fields if name in table.c]
        stmt = select(*columns).where(self.compiler.key_predicate(table, keys)).limit(1)
        try:
            rows = await with_timeout(
                self.service.read(stmt), self.timeout_ms, label=f"Get {self.resource.target}"
            )
        except SchemaMcpError:
            raise
        except Exception as e:
            self.log.error("Get failed", exc_info=True)
            raise GetFailedError(e) from e
        return self.omission.apply(rows[0]) if rows else None

    # --- Create ---

    async def create(self, args: dict[str, Any], principal: Principal) -> Any:
        data, children = self.compiler.build_payload(args)

        if self.resource.draft_enabled:
            return await self._in_transaction(
                principal,
                f"Create draft {self.resource.target}",
                DraftCreateFailedError,
                lambda tx: self._create_root_draft(tx, data, children, principal),
            )
        if self.resource.draft_parent is not None:
            return await self._in_transaction(
                principal,
                f"Create draft {self.resource.target}",
                DraftCreateFailedError,
                lambda tx: self._create_draft_child(tx, data),
            )
        return await self._in_transaction(
            principal,
            f"Create {self.resource.target}",
            CreateFailedError,
            lambda tx: self._create_active(tx, data, children),
        )

    async def _create_active(
        self,
        tx: Transaction,
        data: dict[str, Any],
        children: dict[str, list[dict[str, Any]]],
    ) -> dict[str, Any]:
        table = self.service.entity(self.resource.target)

        # To-one children are inserted first so the parent can point at them
        for name, rows in children.items():
            info = self.resource.associations[name]
            if info.many or not rows:
                continue
            if len(rows) > 1:
                raise CreateFailedError(
                    f"'{name}' is a to-one association and takes one row, got {len(rows)}"
                )
            child = await self._insert_child(tx, info, rows[0])
            if info.foreign_key and info.target_key:
                data[info.foreign_key] = child.get(info.target_key)

        fill_generated_keys(table, data)
        result = await tx.run(self.compiler.compile_insert(table, data))
        keys = self._inserted_keys(table, data, result)

        created: dict[str, Any] = await self._read_back(tx, table, keys) or dict(data)
        for name, rows in children.items():
            info = self.resource.associations[name]
            if not info.many:
                continue
            parent_value = created.get(info.parent_key) if info.parent_key else None
            created[name] = [
                await self._insert_child(tx, info, row, parent_value=parent_value)
                for row in rows
            ]
        return self.omission.apply(created)

    def _inserted_keys(self, table: Table, data: dict[str, Any], result: Any) -> dict[str, Any]:
        pk_columns = [c.name for c in table.primary_key.columns]
        if all(data.get(name) is not None for name in pk_columns):
            return {name: data[name] for name in pk_columns}
        return dict(zip(pk_columns, result.inserted_primary_key or ()))

    async def _insert_child(
        self,
        tx: Transaction,
        info: AssociationInfo,
        row: dict[str, Any],
        *,
        parent_value: Any = None,
        draft_uuid: str | None = None,
    ) -> dict[str, Any]:
        if draft_uuid is not None:
            table = self.service.draft_entity(info.target)
            if table is None:
                raise ExecutionError(f"'{info.target}' has no draft table")
        else:
            table = self.service.entity(info.target)

        child = dict(row)
        if parent_value is not None and info.backlink_foreign_key:
            child[info.backlink_foreign_key] = parent_value
        fill_generated_keys(table, child)
        if draft_uuid is not None:
            child.update(_DRAFT_FLAGS, **{DRAFT_ADMIN_LINK: draft_uuid})
        await tx.run(insert(table).values(table_values(table, child)))
        return child

    async def _create_root_draft(
        self,
        tx: Transaction,
        data: dict[str, Any],
        children: dict[str, list[dict[str, Any]]],
        principal: Principal,
    ) -> dict[str, Any]:
        draft = await self.service.new_draft(tx, self.resource.target, data, principal)
        for name, rows in children.items():
            info = self.resource.associations[name]
            parent_value = draft.get(info.parent_key) if info.parent_key else None
            draft[name] = [
                await self._insert_child(
                    tx, info, row, parent_value=parent_value, draft_uuid=draft[DRAFT_ADMIN_LINK]
                )
                for row in rows
            ]
        return self.omission.apply(draft)

    async def _create_draft_child(self, tx: Transaction, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a composition child straight into its draft table.

        Default-value handlers do not run on this path, so missing UUID keys
        are generated here. The parent's draft administrative UUID is read from
        the parent draft row; the read and the insert are not atomic against
        a concurrent root-draft creation.
        """
        parent = self.resource.draft_parent
        draft_table = self.service.draft_entity(self.resource.target)
        if parent is None or draft_table is None:
            raise ExecutionError(f"'{self.resource.target}' has no draft table")

        row = fill_generated_keys(draft_table, dict(data))
        draft_uuid = await self._lookup_parent_draft(tx, parent, row.get(parent.reference))
        row.update(_DRAFT_FLAGS)
        if draft_uuid is not None:
            row[DRAFT_ADMIN_LINK] = draft_uuid

        await tx.run(insert(draft_table).values(table_values(draft_table, row)))
        return self.omission.apply(row)

    async def _lookup_parent_draft(
        self, tx: Transaction, parent: DraftParent, parent_value: Any
    ) -> str | None:
        parent_draft = self.service.draft_entity(parent.entity)

        draft_uuid = None
        if parent_value is not None and parent_draft is not None:
            try:
                rows = await tx.fetch(
                    select(parent_draft.c[DRAFT_ADMIN_LINK])
                    .where(
                        parent_draft.c[parent.key] == parent_value,
                        parent_draft.c.IsActiveEntity.is_(False),
                    )
                    .limit(1)
                )
            except SQLAlchemyError:
                self.log.warning(
                    "Parent draft lookup failed",
                    parent=parent.entity,
                    exc_info=True,
                )
                rows = []
            if rows:
                draft_uuid = rows[0][DRAFT_ADMIN_LINK]

        if draft_uuid is None:
            self.log.warning(
                "Parent draft not found, inserting draft child without DraftAdministrativeData_DraftUUID",
                parent=parent.entity,
                parent_key=parent_value,
            )
        return draft_uuid

    # --- Update ---

    async def update(self, args: dict[str, Any], principal: Principal) -> Any:
        keys = self.compiler.extract_keys(args)
        data, children = self.compiler.build_payload(args, include_keys=False)
        if not data and not children:
            raise NoFieldsError()

        async def work(tx: Transaction) -> Any:
            table = self.service.entity(self.resource.target)
            matched = None
            if data:
                result = await tx.run(self.compiler.compile_update(table, keys, data))
                matched = result.rowcount
            row = await self._read_back(tx, table, keys)
            if row is None or matched == 0:
                return {"updated": 0}
            for name, rows in children.items():
                row[name] = await self._replace_children(tx, name, rows, row)
            return self.omission.apply(row)

        return await self._in_transaction(
            principal, f"Update {self.resource.target}", UpdateFailedError, work
        )

    async def _replace_children(
        self,
        tx: Transaction,
        name: str,
        rows: list[dict[str, Any]],
        parent: dict[str, Any],
    ) -> list[dict[str, Any]]:
        info = self.resource.associations[name]
        if not info.many or not info.backlink_foreign_key or not info.parent_key:
            raise ExecutionError(f"Deep update of '{name}' is not supported")
        target = self.service.entity(info.target)
        parent_value = parent.get(info.parent_key)
        await tx.run(delete(target).where(target.c[info.backlink_foreign_key] == parent_value))
        return [
            await self._insert_child(tx, info, row, parent_value=parent_value) for row in rows
        ]

    # --- Delete ---

    async def delete(self, args: dict[str, Any], principal: Principal) -> Any:
        keys = self.compiler.extract_keys(args)

        async def work(tx: Transaction) -> Any:
            table = self.service.entity(self.resource.target)
            result = await tx.run(self.compiler.compile_delete(table, keys))
            return {"deleted": result.rowcount}

        return await self._in_transaction(
            principal, f"Delete {self.resource.target}", DeleteFailedError, work
        )
