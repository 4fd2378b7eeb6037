"""Remote-invocable method surface of a ``TableService``.

Each method has a name, a rights class, a pydantic argument model and a
handler. ``invoke`` validates arguments, checks rights when the caller's
granted rights are known, runs the handler and returns JSON-compatible data.
Transport and authentication live outside this module.
"""

from collections.abc import Awaitable, Callable, Collection, Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from tableview.errors import AccessDenied, InvalidArguments, MalformedCondition, TableViewError, UnknownMethod
from tableview.models.base import WireModel
from tableview.models.enums import Rights
from tableview.models.payloads import (
    CreateTableArgs,
    DeleteDataArgs,
    EmptyArgs,
    GuidArgs,
    LoadAggregateDataArgs,
    LoadTableDataArgs,
    LoadTableDataResult,
    LoadTableGuidArgs,
    LoadTableGuidResult,
    PushDataArgs,
    PushDataResult,
    TableNameArgs,
    UpdateDataArgs,
)
from tableview.services.table_service import TableService

Handler = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class RemoteMethod:
    name: str
    rights: Rights
    args_model: type[WireModel]
    handler: Handler


class MethodRegistry:
    """Dispatches remote method calls to a ``TableService``."""

    def __init__(
        self,
        service: TableService,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._service = service
        self._logger = logger or structlog.get_logger(__name__)
        self._methods: dict[str, RemoteMethod] = {}
        self._register_table_methods()

    @property
    def names(self) -> list[str]:
        return sorted(self._methods)

    def get(self, name: str) -> RemoteMethod:
        method = self._methods.get(name)
        if method is None:
            raise UnknownMethod(f"Unknown method {name!r}", method=name)
        return method

    def register(self, name: str, rights: Rights, args_model: type[WireModel], handler: Handler) -> None:
        self._methods[name] = RemoteMethod(name=name, rights=rights, args_model=args_model, handler=handler)

    async def invoke(
        self,
        name: str,
        args: Mapping[str, Any] | None = None,
        granted: Collection[Rights] | None = None,
    ) -> Any:
        """Call a method and return its JSON-compatible result.

        Args:
            name: Remote method name, e.g. ``loadTableGuid``.
            args: Raw camelCase arguments.
            granted: Rights held by the caller; ``None`` skips the check.

        Raises:
            UnknownMethod: If no method has that name.
            AccessDenied: If ``granted`` lacks the method's rights class.
            MalformedCondition: If the ``condition`` argument is invalid.
            InvalidArguments: If any other argument is invalid.
        """
        method = self.get(name)
        if granted is not None and method.rights not in granted:
            raise AccessDenied(
                f"Method {name!r} requires {method.rights.value!r} rights",
                method=name,
                rights=method.rights.value,
            )

        parsed = _parse_args(method, args or {})
        self._logger.debug("method_invoked", method=name, rights=method.rights.value)
        return to_wire(await method.handler(parsed))

    async def dispatch(
        self,
        name: str,
        args: Mapping[str, Any] | None = None,
        granted: Collection[Rights] | None = None,
    ) -> dict[str, Any]:
        """Like ``invoke`` but wraps the outcome in a response envelope.

        Returns:
            ``{"result": ...}`` on success, ``{"error": {...}}`` for any
            ``TableViewError``.
        """
        try:
            return {"result": await self.invoke(name, args, granted)}
        except TableViewError as e:
            self._logger.info("method_failed", method=name, error=e.kind, message=e.message)
            return {"error": e.to_dict()}

    def _register_table_methods(self) -> None:
        service = self._service

        async def load_table_list(args: EmptyArgs) -> Any:
            return await service.list_tables()

        async def load_table_guid(args: LoadTableGuidArgs) -> LoadTableGuidResult:
            info = await service.load_view(args.to_descriptor())
            return LoadTableGuidResult(guid=info.guid, desc=info.describe() if args.desc else None)

        async def load_table_rows_num(args: GuidArgs) -> int:
            return await service.get_view_row_count(args.guid)

        async def load_table_data(args: LoadTableDataArgs) -> LoadTableDataResult:
            rows = await service.get_page(args.guid, args.from_row, args.count)
            return LoadTableDataResult(rows=rows, from_row=args.from_row, rows_num=args.count)

        async def create_table(args: CreateTableArgs) -> Any:
            return await service.create_table(args.table_name, args.columns, reset=args.reset)

        async def delete_table(args: TableNameArgs) -> None:
            await service.delete_table(args.table_name)

        async def push_data(args: PushDataArgs) -> PushDataResult:
            pushed = await service.push_rows(args.table_name, args.rows)
            return PushDataResult(pushed_count=pushed)

        async def update_data(args: UpdateDataArgs) -> None:
            await service.update_rows(args.table_name, args.assignments, args.condition)

        async def delete_data(args: DeleteDataArgs) -> None:
            await service.delete_rows(args.table_name, args.condition)

        async def load_aggregate_data(args: LoadAggregateDataArgs) -> Any:
            return await service.get_aggregate(args.guid, args.specs)

        self.register("loadTableList", Rights.READ, EmptyArgs, load_table_list)
        self.register("loadTableGuid", Rights.READ, LoadTableGuidArgs, load_table_guid)
        self.register("loadTableRowsNum", Rights.READ, GuidArgs, load_table_rows_num)
        self.register("loadTableData", Rights.READ, LoadTableDataArgs, load_table_data)
        self.register("createTable", Rights.CREATE, CreateTableArgs, create_table)
        self.register("deleteTable", Rights.WRITE, TableNameArgs, delete_table)
        self.register("pushData", Rights.WRITE, PushDataArgs, push_data)
        self.register("updateData", Rights.WRITE, UpdateDataArgs, update_data)
        self.register("deleteData", Rights.WRITE, DeleteDataArgs, delete_data)
        self.register("loadAggregateData", Rights.READ, LoadAggregateDataArgs, load_aggregate_data)


def to_wire(value: Any) -> Any:
    """Convert handler results into JSON-compatible structures."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return value


def _parse_args(method: RemoteMethod, args: Mapping[str, Any]) -> WireModel:
    try:
        return method.args_model.model_validate(args)
    except ValidationError as e:
        if any(error["loc"] and error["loc"][0] == "condition" for error in e.errors()):
            raise MalformedCondition(f"Invalid condition for {method.name}: {e}", method=method.name) from e
        raise InvalidArguments(f"Invalid arguments for {method.name}: {e}", method=method.name) from e
