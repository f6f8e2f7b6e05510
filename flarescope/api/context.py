"""Process-scoped objects shared by every dashboard API route."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from pathlib import Path

from flarescope.bridge.actor_bridge import ActorStorageBridge, RuntimeFetchProxy
from flarescope.config import ScopeSettings
from flarescope.config import settings as default_settings
from flarescope.core.log_buffer import LogBuffer
from flarescope.core.registry import BindingRegistry
from flarescope.core.shadow_config import MANIFEST_VAR
from flarescope.core.state_scanner import StateScanner
from flarescope.models.manifest import Manifest
from flarescope.storage.key_value import KeyValueAccessor
from flarescope.storage.object_store import ObjectStoreAccessor
from flarescope.storage.relational import RelationalAccessor

logger = logging.getLogger(__name__)


def load_embedded_manifest(environ: Mapping[str, str] | None = None) -> Manifest | None:
    """Recover the manifest a shadow descriptor embedded as a variable."""
    environ = os.environ if environ is None else environ
    payload = environ.get(MANIFEST_VAR)
    if not payload:
        return None
    return Manifest.from_json(payload)


class AppContext:
    """Everything one API process owns: manifest, registry, accessors,
    bridges and the log buffer.

    Tests build an independent ``AppContext`` per app instead of relying on
    module state.
    """

    def __init__(
        self,
        manifest: Manifest,
        scanner: StateScanner,
        *,
        settings: ScopeSettings | None = None,
        bridge: ActorStorageBridge | None = None,
        runtime_proxy: RuntimeFetchProxy | None = None,
        log_buffer: LogBuffer | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or default_settings
        self.manifest = manifest
        self.scanner = scanner
        self.registry = BindingRegistry.from_manifest(manifest)
        self.log_buffer = log_buffer or LogBuffer()

        timeout = self.settings.busy_timeout_ms
        self.relational = RelationalAccessor(scanner, busy_timeout_ms=timeout)
        self.key_value = KeyValueAccessor(scanner, busy_timeout_ms=timeout, clock=clock)
        self.object_store = ObjectStoreAccessor(scanner, busy_timeout_ms=timeout, clock=clock)

        self.bridge = bridge or ActorStorageBridge(
            self.settings.actor_storage_url,
            timeout_seconds=self.settings.bridge_timeout_seconds,
            connect_timeout_seconds=self.settings.bridge_connect_timeout_seconds,
        )
        self.runtime_proxy = runtime_proxy or RuntimeFetchProxy(
            self.settings.runtime_url,
            timeout_seconds=self.settings.bridge_timeout_seconds,
            connect_timeout_seconds=self.settings.bridge_connect_timeout_seconds,
        )

    @classmethod
    def build(
        cls,
        manifest: Manifest,
        *,
        settings: ScopeSettings | None = None,
        search_dir: Path | None = None,
        **kwargs,
    ) -> AppContext:
        """Create a context whose scanner follows *settings*."""
        settings = settings or default_settings
        scanner = StateScanner(
            search_dir or Path.cwd(),
            manifest,
            state_dir=settings.state_dir,
            layout=settings.layout,
            max_hops=settings.max_parent_hops,
        )
        return cls(manifest, scanner, settings=settings, **kwargs)

    def close(self) -> None:
        self.bridge.close()
        self.runtime_proxy.close()
