"""
Immutable per-request context handed to every validator and operation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Any

from netalloc.config import AllocatorConfig, config as global_config
from netalloc.store.adapter import StoreAdapter
from netalloc.store.base import Store
from netalloc.utils.logger import get_logger


@dataclass(frozen=True)
class RequestContext:
    """
    Everything a validator or operation may consult.

    Attributes:
        store: Store adapter used for all reads and writes.
        config: Engine configuration.
        log: Logger bound to the request id.
        request_id: Identifier used to correlate log lines.
        create: True while validating a create (address in-use checks apply).
        existing: The record being updated, if any.
    """

    store: StoreAdapter
    config: AllocatorConfig
    log: Any
    request_id: str
    create: bool = False
    existing: Any = None

    @classmethod
    def create_for(
        cls,
        store: Store | StoreAdapter,
        cfg: AllocatorConfig | None = None,
        request_id: str | None = None,
    ) -> RequestContext:
        cfg = cfg or global_config
        if not isinstance(store, StoreAdapter):
            store = StoreAdapter(store, timeout=cfg.STORE_TIMEOUT_SECONDS)
        request_id = request_id or uuid.uuid4().hex[:12]
        log = get_logger("netalloc.request").bind(req_id=request_id)
        return cls(store=store, config=cfg, log=log, request_id=request_id)

    def derive(self, **changes) -> RequestContext:
        """Copy of this context with some attributes changed."""
        return replace(self, **changes)
