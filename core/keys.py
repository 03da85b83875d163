from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

from core.dataset import TabularDataset, is_numeric
from core.errors import EmptyDataset, InvalidKeyBinding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedKeys:
    x_key: str
    y_key: str
    z_key: Optional[str] = None


def infer_keys(headers: Sequence[str], first_row: Mapping[str, str]) -> Tuple[str, str]:
    """Pick the default category (x) and value (y) columns.

    x is the first header; y is the first header whose first-row value is
    numeric, falling back to the second header (or the first when alone).
    """
    if not headers:
        raise EmptyDataset("Cannot infer chart keys without headers")
    x_key = headers[0]
    for header in headers:
        if is_numeric(first_row.get(header)):
            return x_key, header
    return x_key, headers[1] if len(headers) > 1 else headers[0]


def check_key(key: Optional[str], headers: Sequence[str]) -> str:
    if not key or key not in headers:
        raise InvalidKeyBinding(key or "", headers)
    return key


def resolve_keys(
    dataset: TabularDataset,
    x_key: Optional[str] = None,
    y_key: Optional[str] = None,
    z_key: Optional[str] = None,
) -> ResolvedKeys:
    """Keep valid bindings and replace unset or stale ones with inferred defaults."""
    default_x, default_y = infer_keys(dataset.headers, dataset.first_row)
    resolved = {}
    for name, key, default in (("x", x_key, default_x), ("y", y_key, default_y)):
        try:
            resolved[name] = check_key(key, dataset.headers)
        except InvalidKeyBinding:
            if key:
                logger.debug("dropping stale %s binding %r, using %r", name, key, default)
            resolved[name] = default
    z = z_key if z_key and z_key in dataset.headers else None
    return ResolvedKeys(x_key=resolved["x"], y_key=resolved["y"], z_key=z)
