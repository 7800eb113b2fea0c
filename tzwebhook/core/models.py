"""Canonical models for the admission decision.

- `MountDescriptor` is the immutable (name, host path, mount path) triple injected into pods.
- Pod models only type the fields the webhook reads or writes.

Design note:
- Pod models are permissive (`extra="allow"`): patches replace whole container/volume lists,
  so every field we don't model (image, env, resources, configMap sources, ...) must survive
  the round trip untouched.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BaseModelK8s(BaseModel):
    # Kubernetes wire names are camelCase; python attributes stay snake_case.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MountDescriptor(BaseModelStrict):
    """Volume/mount triple injected into every container. Fixed for the process lifetime."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    host_path: str
    mount_path: str

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name must be non-empty")
        return v

    @field_validator("host_path", "mount_path")
    @classmethod
    def _absolute_path(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("path must be non-empty")
        if not v.startswith("/"):
            raise ValueError(f"path must be absolute: {v!r}")
        return v


class VolumeMount(BaseModelK8s):
    name: str
    mount_path: str = Field(alias="mountPath")
    read_only: Optional[bool] = Field(default=None, alias="readOnly")


class HostPathVolumeSource(BaseModelK8s):
    path: str


class Volume(BaseModelK8s):
    name: str
    host_path: Optional[HostPathVolumeSource] = Field(default=None, alias="hostPath")


class Container(BaseModelK8s):
    name: str
    volume_mounts: Optional[List[VolumeMount]] = Field(default=None, alias="volumeMounts")


class ObjectMeta(BaseModelK8s):
    name: Optional[str] = None
    generate_name: Optional[str] = Field(default=None, alias="generateName")
    namespace: Optional[str] = None
    annotations: Optional[Dict[str, str]] = None


class PodSpec(BaseModelK8s):
    containers: List[Container] = Field(default_factory=list)
    volumes: Optional[List[Volume]] = None


class Pod(BaseModelK8s):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)

    @property
    def display_name(self) -> str:
        # Controller-created pods are admitted before the apiserver assigns a name.
        return self.metadata.name or self.metadata.generate_name or ""


class PatchOperation(BaseModelStrict):
    op: Literal["add", "replace"]
    path: str
    value: Any = None
