from __future__ import annotations

import logging
from typing import AbstractSet, Mapping, Optional

from tzwebhook.core.annotations import STATUS_KEY, is_injected, is_opted_out

logger = logging.getLogger(__name__)


def is_mutation_required(
    ignored_namespaces: AbstractSet[str],
    namespace: str,
    name: str,
    annotations: Optional[Mapping[str, str]],
) -> bool:
    """
    Decide whether a pod still needs the timezone mount.

    Order matters:
    - ignored namespaces are skipped regardless of annotations
    - status=injected means a previous admission already patched it
    - inject=n|no|false|off opts out; anything else (or nothing) opts in
    """
    if namespace in ignored_namespaces:
        logger.info("Skip mutation for %s: it is in ignored namespace %s", name, namespace)
        return False

    if is_injected(annotations):
        required = False
    else:
        required = not is_opted_out(annotations)

    logger.debug(
        "Mutation policy for %s/%s: status=%r required=%s",
        namespace,
        name,
        (annotations or {}).get(STATUS_KEY),
        required,
    )
    return required
