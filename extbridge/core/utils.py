from __future__ import annotations

import random
import re
import string
import time
from typing import Any, List, Optional

_LOCAL_URL = re.compile(r"^(file:|data:|http://localhost[:/])")
_BASE36 = string.digits + string.ascii_lowercase


def normalize_keys(key: Any) -> List[Any]:
    """Turn a dotted path (``"a.b.c"``) or a key sequence into a list of keys."""
    if key is None:
        return []
    if isinstance(key, (list, tuple)):
        return list(key)
    return [part for part in str(key).split(".") if part]


def is_remote(url: Optional[str]) -> bool:
    """
    Tell whether ``url`` points outside the local machine.

    ``file:`` and ``data:`` URLs and ``http://localhost`` are local; so is an
    empty URL.
    """
    return bool(url) and not _LOCAL_URL.match(url)


def zfill(value: Any, length: int) -> str:
    """Left-pad ``str(value)`` with zeros up to ``length`` characters."""
    return str(value).rjust(length, "0")


def _to_base36(number: int) -> str:
    digits = []
    while True:
        number, rest = divmod(number, 36)
        digits.append(_BASE36[rest])
        if not number:
            break
    return "".join(reversed(digits))


def get_uniq_id(prefix: str = "") -> str:
    """Millisecond timestamp plus four random characters, both base 36."""
    suffix = "".join(random.choices(_BASE36, k=4))
    return f"{prefix or ''}{_to_base36(int(time.time() * 1000))}{suffix}"
