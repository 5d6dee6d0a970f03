"""
Node and pod watchers.

Each watcher lists its resource once, then follows the watch stream and
keeps a local store of the latest object per key. Plugins read the stores
on every pass instead of listing the API server again.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog
from kubernetes_asyncio import watch
from kubernetes_asyncio.client.exceptions import ApiException

logger = structlog.get_logger()

T = TypeVar("T")

# Resource version too old; the store must be rebuilt from a fresh list
HTTP_GONE = 410
RECONNECT_DELAY_SECONDS = 5.0


class WatchedKind(str, Enum):
    NODE = "node"
    POD = "pod"

    def list_function(self, core_v1: Any) -> Callable[..., Any]:
        if self is WatchedKind.NODE:
            return core_v1.list_node
        return core_v1.list_pod_for_all_namespaces

    def key_for(self, obj: Any) -> str:
        """Nodes are cluster scoped and keyed by name; pods by namespace/name."""
        if self is WatchedKind.NODE:
            return obj.metadata.name
        return f"{obj.metadata.namespace}/{obj.metadata.name}"


class ResourceEventHandler(ABC, Generic[T]):
    @abstractmethod
    def on_add(self, obj: T) -> None:
        pass

    @abstractmethod
    def on_update(self, obj: T) -> None:
        pass

    @abstractmethod
    def on_delete(self, obj: T) -> None:
        pass


class LoggingEventHandler(ResourceEventHandler[Any]):
    """Debug trace of watch events; the store itself is updated by the watcher."""

    def __init__(self, kind: WatchedKind):
        self.kind = kind

    def on_add(self, obj: Any) -> None:
        logger.debug("k8s_watch_add", kind=self.kind.value, name=obj.metadata.name)

    def on_update(self, obj: Any) -> None:
        logger.debug("k8s_watch_update", kind=self.kind.value, name=obj.metadata.name)

    def on_delete(self, obj: Any) -> None:
        logger.debug("k8s_watch_delete", kind=self.kind.value, name=obj.metadata.name)


class ResourceWatcher(Generic[T]):
    def __init__(
        self,
        kind: WatchedKind,
        core_v1: Any,
        handler: Optional[ResourceEventHandler[T]] = None,
        timeout_seconds: int = 60,
    ):
        self.kind = kind
        self.core_v1 = core_v1
        self.handler = handler or LoggingEventHandler(kind)
        self.timeout_seconds = timeout_seconds
        self._store: dict[str, T] = {}
        self._resource_version: Optional[str] = None
        self._task: Optional[asyncio.Task[None]] = None

    def get(self, key: str) -> Optional[T]:
        return self._store.get(key)

    def items(self) -> list[T]:
        return list(self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    async def sync(self) -> None:
        """Replace the store with a fresh listing."""
        response = await self.kind.list_function(self.core_v1)()
        store: dict[str, T] = {}
        for obj in response.items:
            store[self.kind.key_for(obj)] = obj
        self._store = store
        self._resource_version = response.metadata.resource_version
        for obj in store.values():
            self.handler.on_add(obj)
        logger.info("k8s_watcher_synced", kind=self.kind.value, count=len(store))

    def dispatch(self, event: dict[str, Any]) -> None:
        """Apply one watch event to the store and notify the handler."""
        event_type = event.get("type")
        obj = event.get("object")
        if event_type == "ERROR" or obj is None or not hasattr(obj, "metadata"):
            raise ApiException(status=HTTP_GONE, reason="watch error event")

        key = self.kind.key_for(obj)
        if obj.metadata.resource_version:
            self._resource_version = obj.metadata.resource_version
        if event_type == "ADDED":
            self._store[key] = obj
            self.handler.on_add(obj)
        elif event_type == "MODIFIED":
            self._store[key] = obj
            self.handler.on_update(obj)
        elif event_type == "DELETED":
            self._store.pop(key, None)
            self.handler.on_delete(obj)

    async def run(self) -> None:
        while True:
            try:
                if self._resource_version is None:
                    await self.sync()
                stream = watch.Watch().stream(
                    self.kind.list_function(self.core_v1),
                    resource_version=self._resource_version,
                    timeout_seconds=self.timeout_seconds,
                )
                async with stream as events:
                    async for event in events:
                        self.dispatch(event)
            except ApiException as e:
                if e.status == HTTP_GONE:
                    logger.info("k8s_watch_expired", kind=self.kind.value)
                    self._resource_version = None
                    continue
                logger.warning("k8s_watch_failed", kind=self.kind.value, status=e.status, error=str(e))
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)
            except Exception as e:
                logger.warning("k8s_watch_failed", kind=self.kind.value, error=str(e))
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name=f"k8s-watch-{self.kind.value}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
