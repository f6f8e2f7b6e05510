"""Shadow descriptor generation for running the dashboard API in-process.

The shadow descriptor declares the dashboard's API service next to the
user's service(s) in the same runtime process.  Every storage binding of
the merged manifest is re-declared with identical target identifiers so
both services resolve to the same backing instance, and every actor
binding is pointed at the service that actually defines its class.

Paths are written with forward slashes: TOML basic strings treat a
backslash as an escape character.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path, PureWindowsPath
from typing import Any

import tomlkit
from pydantic import BaseModel, ConfigDict

from flarescope.core.manifest_merger import build_actor_owner_map, merge_manifest
from flarescope.models.bindings import BindingDeclaration, DiscoveredConfig
from flarescope.models.manifest import Manifest

logger = logging.getLogger(__name__)

SHADOW_SERVICE_NAME = "flarescope-api"
SHADOW_DIR_NAME = ".flarescope"
COMPATIBILITY_DATE = "2024-12-01"
MANIFEST_VAR = "FLARESCOPE_MANIFEST"
STORAGE_URL_VAR = "FLARESCOPE_ACTOR_STORAGE_URL"
USER_SERVICE_BINDING = "USER_SERVICE"


def to_posix_path(path: str | Path) -> str:
    """Render *path* with forward slashes regardless of platform."""
    return PureWindowsPath(str(path)).as_posix()


def _clean(targets: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in targets.items() if v is not None}


def _binding_table(key: str, binding: BindingDeclaration, **overrides: Any) -> Any:
    table = tomlkit.table()
    table[key] = binding.name
    for name, value in {**_clean(binding.targets), **overrides}.items():
        table[name] = value
    return table


def _array_of_tables(tables: list[Any]) -> Any:
    aot = tomlkit.aot()
    for table in tables:
        aot.append(table)
    return aot


def generate_shadow_config(
    configs: Sequence[DiscoveredConfig],
    api_entry_point: str | Path,
    *,
    primary: bool = False,
    storage_bridge_url: str | None = None,
) -> str:
    """Return the shadow descriptor text for *configs*.

    Parameters
    ----------
    configs:
        Discovered configs in discovery order; ``configs[0]`` is the root.
    api_entry_point:
        Path of the dashboard API's bundled entry point.
    primary:
        When ``True`` the dashboard fronts the user's service and gets a
        service binding to it for proxying non-API traffic.
    storage_bridge_url:
        Address of the host-side actor storage listener, if known.
    """
    manifest = merge_manifest(configs)
    owners = build_actor_owner_map(configs)
    root_name = configs[0].config.display_name

    doc = tomlkit.document()
    doc.add(tomlkit.comment("Auto-generated by flarescope"))
    doc.add(tomlkit.comment("DO NOT EDIT - this file is regenerated on every launch"))
    doc.add(tomlkit.nl())
    doc["name"] = SHADOW_SERVICE_NAME
    doc["main"] = to_posix_path(api_entry_point)
    doc["compatibility_date"] = COMPATIBILITY_DATE

    variables = tomlkit.table()
    variables[MANIFEST_VAR] = manifest.to_json()
    if storage_bridge_url:
        variables[STORAGE_URL_VAR] = storage_bridge_url
    doc["vars"] = variables

    if primary:
        service = tomlkit.table()
        service["binding"] = USER_SERVICE_BINDING
        service["service"] = root_name
        doc["services"] = _array_of_tables([service])

    if manifest.relational:
        doc["d1_databases"] = _array_of_tables(
            [_binding_table("binding", b) for b in manifest.relational]
        )
    if manifest.key_value:
        doc["kv_namespaces"] = _array_of_tables(
            [_binding_table("binding", b) for b in manifest.key_value]
        )
    if manifest.object_store:
        doc["r2_buckets"] = _array_of_tables(
            [_binding_table("binding", b) for b in manifest.object_store]
        )
    if manifest.queues.producers:
        queues = tomlkit.table(is_super_table=True)
        queues["producers"] = _array_of_tables(
            [_binding_table("binding", b) for b in manifest.queues.producers]
        )
        doc["queues"] = queues
    if manifest.actors:
        actors = tomlkit.table(is_super_table=True)
        actors["bindings"] = _array_of_tables(
            [
                _binding_table(
                    "name",
                    b,
                    script_name=owners.get(b.class_name, root_name),
                )
                for b in manifest.actors
            ]
        )
        doc["durable_objects"] = actors

    return tomlkit.dumps(doc)


class ShadowSetup(BaseModel):
    """Where the shadow descriptor was written, and what it embeds."""

    model_config = ConfigDict(frozen=True)

    shadow_config_path: Path
    entry_point_path: Path
    manifest: Manifest


def setup_shadow_dir(
    configs: Sequence[DiscoveredConfig],
    api_entry_point: Path,
    *,
    primary: bool = True,
    storage_bridge_url: str | None = None,
) -> ShadowSetup:
    """Write ``.flarescope/`` next to the root descriptor.

    Copies the API entry point into the directory, writes the shadow
    descriptor, and adds ``.flarescope/`` to an existing ``.gitignore``.
    """
    config_dir = configs[0].path.parent
    shadow_dir = config_dir / SHADOW_DIR_NAME
    shadow_dir.mkdir(parents=True, exist_ok=True)

    entry_copy = shadow_dir / Path(api_entry_point).name
    shutil.copyfile(api_entry_point, entry_copy)

    shadow_path = shadow_dir / "wrangler.toml"
    shadow_path.write_text(
        generate_shadow_config(
            configs,
            entry_copy,
            primary=primary,
            storage_bridge_url=storage_bridge_url,
        ),
        encoding="utf-8",
    )

    gitignore = config_dir / ".gitignore"
    if gitignore.is_file():
        content = gitignore.read_text(encoding="utf-8")
        if SHADOW_DIR_NAME not in content:
            gitignore.write_text(
                content + f"\n# flarescope generated files\n{SHADOW_DIR_NAME}/\n",
                encoding="utf-8",
            )

    logger.info("Shadow config written to %s", shadow_path)
    return ShadowSetup(
        shadow_config_path=shadow_path,
        entry_point_path=entry_copy,
        manifest=merge_manifest(configs),
    )
