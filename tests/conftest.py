"""
Shared fixtures: in-memory stand-ins for pymongo's async database API.

The fakes record every call so tests can assert on the exact options sent
to the driver (limit, maxTimeMS, pipeline) and that nothing was sent at all
when a request is rejected.
"""

from typing import Any, Dict, List, Optional

import pytest

from config import Settings


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = list(docs)

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        return list(self._docs)


class FakeCollection:
    def __init__(self, name: str, docs=None, count: int = 0, error: Optional[Exception] = None):
        self.name = name
        self.docs = list(docs or [])
        self.count = count
        self.error = error
        self.calls: List[tuple] = []

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    def find(self, filter=None, projection=None, **kwargs):
        self.calls.append(("find", filter, projection, kwargs))
        self._maybe_fail()
        limit = kwargs.get("limit") or None
        return FakeCursor(self.docs[:limit])

    async def aggregate(self, pipeline, **kwargs):
        self.calls.append(("aggregate", pipeline, kwargs))
        self._maybe_fail()
        return FakeCursor(self.docs)

    async def count_documents(self, filter, **kwargs):
        self.calls.append(("count_documents", filter, kwargs))
        self._maybe_fail()
        return self.count


class FakeDatabase:
    def __init__(self, collections=None, names=None, plan=None):
        self.collections: Dict[str, FakeCollection] = dict(collections or {})
        self.names = names
        self.plan = plan if plan is not None else {"queryPlanner": {"winningPlan": {"stage": "COLLSCAN"}}}
        self.commands: List[Dict[str, Any]] = []

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def list_collection_names(self) -> List[str]:
        if self.names is not None:
            return list(self.names)
        return list(self.collections)

    async def command(self, command: Dict[str, Any]) -> Dict[str, Any]:
        self.commands.append(command)
        return self.plan

    @property
    def driver_calls(self) -> int:
        return len(self.commands) + sum(len(c.calls) for c in self.collections.values())


@pytest.fixture
def settings() -> Settings:
    return Settings(mongo_uri="mongodb://localhost:27017", database_name="shop", api_key="secret")


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()
