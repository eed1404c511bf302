from __future__ import annotations

"""
缓存抽象（最小版本）。

当前提供：
- `Cache` Protocol：定义 get/set/clear 接口
- `InMemoryCache`：review policy 缓存 + PR 去重状态都用它

限制：
- 单进程、无过期、无淘汰；进程重启即丢失
- asyncio 单线程下 get/set 之间没有 await，天然是单条目原子的
"""

from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

V = TypeVar("V")


class Cache(Protocol[V]):
    """缓存接口协议（用于依赖倒置，方便替换 Redis/Memory）。"""

    def get(self, key: str) -> V | None: ...

    def set(self, key: str, value: V) -> None: ...

    def clear(self) -> None: ...


@dataclass
class InMemoryCache(Generic[V]):
    """内存缓存：不提供过期机制。"""

    store: MutableMapping[str, V] = field(default_factory=dict)

    def get(self, key: str) -> V | None:
        return self.store.get(key)

    def set(self, key: str, value: V) -> None:
        self.store[key] = value

    def clear(self) -> None:
        self.store.clear()

    def __len__(self) -> int:
        return len(self.store)
