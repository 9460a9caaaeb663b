"""
Comparable Identifier Helpers

Identifiers allocated by the document store are stable and can be reused
for later writes. Identifiers allocated while disconnected are tagged with
``local-`` and must be replaced before the comparable is persisted.

Older snapshots carry untagged placeholder ids (decimal strings such as
"0.4821..." or very short tokens). Those are recognized by shape.
"""

import uuid
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from tasador.core.constants import (
    LEGACY_EPHEMERAL_PREFIX,
    LOCAL_ID_PREFIX,
    MIN_STABLE_ID_LENGTH,
)
from tasador.core.models import Comparable


def new_local_id() -> str:
    """Identifier for a comparable created without a remote store."""
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def is_ephemeral_id(comparable_id: Optional[str]) -> bool:
    """True when an id cannot be trusted as a stable document key."""
    if not comparable_id:
        return True
    comparable_id = str(comparable_id)
    return (
        comparable_id.startswith(LOCAL_ID_PREFIX)
        or comparable_id.startswith(LEGACY_EPHEMERAL_PREFIX)
        or len(comparable_id) < MIN_STABLE_ID_LENGTH
    )


def reconcile_identifiers(
    comparables: Iterable[Comparable],
    allocate: Callable[[], str],
) -> Tuple[List[Comparable], Dict[str, str]]:
    """Give every comparable a stable, unique identifier.

    Ephemeral ids and repeats of an id already used earlier in the list are
    replaced by ``allocate()``.

    Returns:
        (comparables with reconciled ids, {old id: new id} for replaced ones).
        A missing old id is reported under the empty string key.
    """
    reconciled = []
    replaced: Dict[str, str] = {}
    seen = set()

    for comparable in comparables:
        comparable_id = comparable.id
        if is_ephemeral_id(comparable_id) or comparable_id in seen:
            new_id = allocate()
            while new_id in seen:
                new_id = allocate()
            replaced[comparable_id or ""] = new_id
            comparable = replace(comparable, id=new_id)
        seen.add(comparable.id)
        reconciled.append(comparable)

    return reconciled, replaced
