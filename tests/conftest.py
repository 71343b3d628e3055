"""Shared fixtures for the adapter tests."""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from pgadapter.storage.backends.relational.interfaces import StatementResult
from pgadapter.storage.schema import FieldDefinition, RecordType, ValueKind
from pgadapter.utils.exceptions import ErrorCode, StoreError

Response = Union[StatementResult, Exception, Callable[[str, Sequence[Any]], StatementResult]]


class FakeExecutor:
    """Records every statement and answers from a script.

    Responses are matched by the first word of the statement (``select``,
    ``insert`` ...) or by a substring registered with ``respond_to``. Unmatched
    statements return an empty result.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, List[Any]]] = []
        self._responses: List[Tuple[str, Response]] = []

    def respond_to(self, fragment: str, response: Response) -> None:
        self._responses.append((fragment, response))

    async def execute(self, statement: str, params: Sequence[Any] = (), operation: str = "statement"):
        self.calls.append((statement, list(params)))
        for fragment, response in self._responses:
            if fragment in statement:
                if isinstance(response, Exception):
                    raise response
                if callable(response):
                    return response(statement, params)
                return response
        return StatementResult()

    @property
    def statements(self) -> List[str]:
        return [statement for statement, _ in self.calls]


class FakeTransaction(FakeExecutor):
    def __init__(self) -> None:
        super().__init__()
        self.committed = False
        self.rolled_back = False

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True


class FakeConnector(FakeExecutor):
    def __init__(self) -> None:
        super().__init__()
        self.disposed = False
        self.transactions: List[FakeTransaction] = []

    async def transaction(self) -> FakeTransaction:
        txn = FakeTransaction()
        self.transactions.append(txn)
        return txn

    async def dispose(self) -> None:
        self.disposed = True


@pytest.fixture
def store_error() -> Callable[..., StoreError]:
    """Factory for store errors carrying a SQLSTATE."""

    def _store_error(sqlstate: Optional[str], code: ErrorCode = ErrorCode.DB_EXECUTION_ERROR) -> StoreError:
        message_args = {"error_message": f"sqlstate {sqlstate}", "operation": "test"}
        return StoreError(code, message_args=message_args, sqlstate=sqlstate)

    return _store_error


@pytest.fixture
def post_type() -> RecordType:
    return RecordType(
        "post",
        {
            "title": FieldDefinition(ValueKind.TEXT),
            "views": FieldDefinition(ValueKind.NUMBER),
            "published": FieldDefinition(ValueKind.BOOLEAN),
            "tags": FieldDefinition(ValueKind.TEXT, is_array=True),
            "scores": FieldDefinition(ValueKind.NUMBER, is_array=True),
            "cover": FieldDefinition(ValueKind.BINARY),
            "author": FieldDefinition(linked_type="user"),
            "meta": FieldDefinition(ValueKind.STRUCTURED),
        },
    )


@pytest.fixture
def user_type() -> RecordType:
    return RecordType(
        "user",
        {
            "name": FieldDefinition(ValueKind.TEXT),
            "posts": FieldDefinition(linked_type="post", is_array=True, is_denormalized_inverse=True),
        },
    )


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def rows() -> Callable[..., StatementResult]:
    def _rows(*records: Dict[str, Any], rowcount: Optional[int] = None) -> StatementResult:
        return StatementResult(rows=list(records), rowcount=len(records) if rowcount is None else rowcount)

    return _rows
