"""
Admission decision engine.

Sequencing: parse pod -> policy -> build patch -> serialize. The engine never denies:
parse/serialize failures are reported as `AllowedWithError` and the pod is admitted
unmodified (fail-open).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Any, Mapping, Union

from pydantic import ValidationError

from tzwebhook.config import WebhookConfig
from tzwebhook.core.annotations import status_annotations
from tzwebhook.core.errors import DescriptorParseError, PatchSerializationError
from tzwebhook.core.models import MountDescriptor, Pod
from tzwebhook.core.patch import build_patch, serialize_patch
from tzwebhook.core.policy import is_mutation_required

logger = logging.getLogger(__name__)

RawDescriptor = Union[bytes, str, Mapping[str, Any]]


@dataclass(frozen=True)
class AllowedUnchanged:
    pass


@dataclass(frozen=True)
class AllowedWithPatch:
    patch: bytes


@dataclass(frozen=True)
class AllowedWithError:
    message: str


AdmissionOutcome = Union[AllowedUnchanged, AllowedWithPatch, AllowedWithError]


def parse_pod(raw: RawDescriptor) -> Pod:
    try:
        if isinstance(raw, (bytes, bytearray, str)):
            return Pod.model_validate_json(raw)
        return Pod.model_validate(raw)
    except ValidationError as e:
        raise DescriptorParseError(str(e)) from e


class DecisionEngine:
    def __init__(self, config: WebhookConfig) -> None:
        self.config = config

    def decide(self, request_namespace: str, request_name: str, raw_descriptor: RawDescriptor) -> AdmissionOutcome:
        try:
            pod = parse_pod(raw_descriptor)
        except DescriptorParseError as e:
            logger.error("Could not unmarshal raw object: %s", e.reason)
            return AllowedWithError(message=str(e))

        # Pods created by controllers may not carry a namespace yet.
        namespace = pod.metadata.namespace or request_namespace or ""
        name = pod.display_name or request_name or ""

        if not is_mutation_required(self.config.ignored_namespaces, namespace, name, pod.metadata.annotations):
            logger.info("Skipping mutation for %s/%s due to policy check", namespace, name)
            return AllowedUnchanged()

        ops = build_patch(
            pod.spec.containers,
            pod.spec.volumes,
            pod.metadata.annotations,
            self.config.mount,
            status_annotations(),
        )
        try:
            patch = serialize_patch(ops)
        except PatchSerializationError as e:
            logger.error("Could not encode patch for %s/%s: %s", namespace, name, e.reason)
            return AllowedWithError(message=str(e))

        logger.debug("AdmissionResponse for %s/%s: patch=%s", namespace, name, patch.decode("utf-8"))
        return AllowedWithPatch(patch=patch)


def decide(
    request_namespace: str,
    request_name: str,
    raw_descriptor: RawDescriptor,
    ignored_namespaces: AbstractSet[str],
    mount: MountDescriptor,
) -> AdmissionOutcome:
    """Single-call form of `DecisionEngine.decide` for callers without a long-lived engine."""
    config = WebhookConfig(mount=mount, ignored_namespaces=frozenset(ignored_namespaces))
    return DecisionEngine(config).decide(request_namespace, request_name, raw_descriptor)
