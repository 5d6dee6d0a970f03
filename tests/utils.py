from typing import Any

from cloudasset.shared.assets.record import AssetRecord


class InMemoryPublisher:
    """Collects published records for assertions."""

    def __init__(self) -> None:
        self.records: list[AssetRecord] = []

    def publish(self, record: AssetRecord) -> None:
        self.records.append(record)

    def by_type(self, asset_type: str) -> list[AssetRecord]:
        return [r for r in self.records if r.type == asset_type]

    def by_id(self, asset_id: str) -> AssetRecord:
        matches = [r for r in self.records if r.id == asset_id]
        assert len(matches) == 1, f"expected one record for {asset_id}, got {len(matches)}"
        return matches[0]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class AsyncContextManagerMock:
    def __init__(self, obj: Any) -> None:
        self.obj = obj

    async def __aenter__(self) -> Any:
        return self.obj

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        pass


class AsyncIteratorMock:
    def __init__(self, items: list[Any]) -> None:
        self.items = list(items)

    def __aiter__(self) -> "AsyncIteratorMock":
        return self

    async def __anext__(self) -> Any:
        if not self.items:
            raise StopAsyncIteration
        return self.items.pop(0)
