"""Request-time state discovery: locate, enumerate, match.

The runtime creates and removes database files while it runs, so every
call to ``scan()`` starts from the filesystem again.  Nothing is cached
between scans.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flarescope.core.binding_matcher import match_inventory
from flarescope.core.state_locator import DEFAULT_MAX_HOPS, enumerate_state, find_state_root
from flarescope.models.manifest import Manifest
from flarescope.models.state import StateInventory, StateLayout

logger = logging.getLogger(__name__)


class StateScanner:
    """Produces a fresh, matched ``StateInventory`` on every call.

    Parameters
    ----------
    search_dir:
        Directory to start the upward search from (normally the root
        descriptor's directory).
    manifest:
        Merged manifest used for matching; ``None`` leaves files unmatched.
    state_dir:
        Explicit state root; skips the upward search when given.
    """

    def __init__(
        self,
        search_dir: Path,
        manifest: Manifest | None = None,
        *,
        state_dir: Path | None = None,
        layout: StateLayout | None = None,
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> None:
        self._search_dir = Path(search_dir)
        self._manifest = manifest
        self._state_dir = Path(state_dir) if state_dir is not None else None
        self._layout = layout or StateLayout()
        self._max_hops = max_hops

    @property
    def manifest(self) -> Manifest | None:
        return self._manifest

    @property
    def layout(self) -> StateLayout:
        return self._layout

    def locate(self) -> Path | None:
        if self._state_dir is not None:
            return self._state_dir if self._state_dir.is_dir() else None
        return find_state_root(self._search_dir, self._layout, max_hops=self._max_hops)

    def scan(self) -> StateInventory:
        root = self.locate()
        if root is None:
            logger.debug("No state root found from %s", self._search_dir)
            return StateInventory()
        return match_inventory(enumerate_state(root, self._layout), self._manifest)
