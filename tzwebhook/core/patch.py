"""
JSON-Patch generation for the timezone mount.

Container and volume lists are always replaced wholesale; no operation addresses a list
element by index (`/spec/volumes/3`). Operations are emitted in apply order:
volumes, containers, annotations.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from tzwebhook.core.errors import PatchSerializationError
from tzwebhook.core.models import (
    Container,
    HostPathVolumeSource,
    MountDescriptor,
    PatchOperation,
    Volume,
    VolumeMount,
)

logger = logging.getLogger(__name__)

VOLUMES_PATH = "/spec/volumes"
CONTAINERS_PATH = "/spec/containers"
ANNOTATIONS_PATH = "/metadata/annotations"


def escape_pointer_token(token: str) -> str:
    """Escape one JSON Pointer reference token (RFC 6901)."""
    return token.replace("~", "~0").replace("/", "~1")


def volume_injected(volumes: Sequence[Volume], mount: MountDescriptor) -> bool:
    for v in volumes:
        if v.name == mount.name:
            return True
        if v.host_path is not None and v.host_path.path == mount.host_path:
            return True
    return False


def file_mounted(volume_mounts: Sequence[VolumeMount], mount: MountDescriptor) -> bool:
    return any(m.name == mount.name or m.mount_path == mount.mount_path for m in volume_mounts)


def update_volumes(
    volumes: Optional[Sequence[Volume]], mount: MountDescriptor, base_path: str = VOLUMES_PATH
) -> List[PatchOperation]:
    patched = list(volumes or [])
    if not volume_injected(patched, mount):
        patched.append(Volume(name=mount.name, host_path=HostPathVolumeSource(path=mount.host_path)))
    return [PatchOperation(op="replace", path=base_path, value=[v.to_wire() for v in patched])]


def update_containers(
    containers: Sequence[Container], mount: MountDescriptor, base_path: str = CONTAINERS_PATH
) -> List[PatchOperation]:
    patched: List[Dict[str, Any]] = []
    for c in containers:
        volume_mounts = list(c.volume_mounts or [])
        if not file_mounted(volume_mounts, mount):
            volume_mounts.append(VolumeMount(name=mount.name, mount_path=mount.mount_path, read_only=True))
        doc = c.to_wire()
        doc["volumeMounts"] = [m.to_wire() for m in volume_mounts]
        patched.append(doc)
    return [PatchOperation(op="replace", path=base_path, value=patched)]


def update_annotations(
    target: Optional[Mapping[str, str]], added: Mapping[str, str], base_path: str = ANNOTATIONS_PATH
) -> List[PatchOperation]:
    """
    Set each added annotation on the target.

    - no annotations map yet: create it with the added pair
    - map exists but key is missing/empty: add just that key (siblings stay untouched)
    - key already set: replace its value
    """
    patch: List[PatchOperation] = []
    current = dict(target) if target is not None else None
    for key, value in added.items():
        key_path = f"{base_path}/{escape_pointer_token(key)}"
        if current is None:
            patch.append(PatchOperation(op="add", path=base_path, value={key: value}))
            current = {key: value}
        elif not current.get(key):
            patch.append(PatchOperation(op="add", path=key_path, value=value))
            current[key] = value
        else:
            patch.append(PatchOperation(op="replace", path=key_path, value=value))
            current[key] = value
    return patch


def build_patch(
    containers: Sequence[Container],
    volumes: Optional[Sequence[Volume]],
    annotations: Optional[Mapping[str, str]],
    mount: MountDescriptor,
    status_annotations: Mapping[str, str],
) -> List[PatchOperation]:
    patch: List[PatchOperation] = []
    patch.extend(update_volumes(volumes, mount))
    patch.extend(update_containers(containers, mount))
    patch.extend(update_annotations(annotations, status_annotations))
    return patch


def serialize_patch(patch: Sequence[PatchOperation]) -> bytes:
    try:
        return json.dumps([op.model_dump(mode="json") for op in patch], separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise PatchSerializationError(str(e)) from e
