"""Typed, absence-tolerant views over DataForSEO response envelopes.

Every DataForSEO endpoint wraps its data the same way::

    {"tasks": [{"status_code": 20000, "result": [{"items": [...], ...}]}]}

Any level of that structure may be missing, ``null`` or the wrong type
when a task fails upstream.  :class:`TaskEnvelope` performs the shape
checks once so that extractors never index into an untyped blob.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Optional

logger = logging.getLogger(__name__)

_MISSING = object()


def dig(obj: Any, *path: str | int, default: Any = None) -> Any:
    """Walk *path* through nested dicts/lists, returning *default* on any miss.

    String segments index dicts, integer segments index lists.  A ``None``
    value at the end of the path is also replaced by *default*.

    Examples:
        >>> dig({"a": [{"b": 1}]}, "a", 0, "b")
        1
        >>> dig({"a": []}, "a", 0, "b", default=0)
        0
    """
    current = obj
    for segment in path:
        if isinstance(segment, int):
            if not isinstance(current, list) or not -len(current) <= segment < len(current):
                return default
            current = current[segment]
        else:
            if not isinstance(current, dict):
                return default
            current = current.get(segment, _MISSING)
            if current is _MISSING:
                return default
    return default if current is None else current


class TaskEnvelope:
    """Read-only accessor for a single DataForSEO ``tasks[0]`` response.

    Usage::

        env = TaskEnvelope(payload)
        rating = dig(env.first_result(), "rating", "value", default=0)
        for item in env.items():
            ...
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: Any):
        self._raw = raw

    @property
    def raw(self) -> Any:
        return self._raw

    @property
    def is_empty(self) -> bool:
        return not self.first_task()

    def first_task(self) -> dict[str, Any]:
        task = dig(self._raw, "tasks", 0, default={})
        return task if isinstance(task, dict) else {}

    @property
    def status_code(self) -> Optional[int]:
        code = self.first_task().get("status_code")
        return code if isinstance(code, int) else None

    def results(self) -> list[dict[str, Any]]:
        """All result objects of the first task (``result`` may be a list or a dict)."""
        result = self.first_task().get("result")
        if isinstance(result, dict):
            return [result]
        if isinstance(result, list):
            return [r for r in result if isinstance(r, dict)]
        return []

    def first_result(self) -> dict[str, Any]:
        results = self.results()
        return results[0] if results else {}

    def items(self) -> list[dict[str, Any]]:
        """Dict items of the first result; non-dict entries are dropped."""
        items = self.first_result().get("items")
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]

    def first_item(self) -> dict[str, Any]:
        items = self.items()
        return items[0] if items else {}

    def __repr__(self) -> str:
        return f"<TaskEnvelope status={self.status_code} items={len(self.items())}>"


# ---------------------------------------------------------------------------
# Raw bundle
# ---------------------------------------------------------------------------

SOURCE_NAMES = (
    "business_listings",
    "business_info",
    "reviews",
    "ranked_keywords",
    "traffic",
    "on_page",
    "backlinks",
    "ads_search",
    "ads_advertisers",
)


@dataclass(frozen=True)
class RawMetricBundle:
    """One optional payload per upstream source.

    ``None`` means "no data" for that source; ``failed_sources`` lists the
    sources whose fetch raised so that callers can tell "empty" apart from
    "failed" without the failure ever reaching the scoring code.
    """

    business_listings: Optional[dict] = None
    business_info: Optional[dict] = None
    reviews: Optional[dict] = None
    ranked_keywords: Optional[dict] = None
    traffic: Optional[dict] = None
    on_page: Optional[dict] = None
    backlinks: Optional[dict] = None
    ads_search: Optional[dict] = None
    ads_advertisers: Optional[dict] = None
    failed_sources: frozenset[str] = field(default_factory=frozenset)

    def envelope(self, source: str) -> TaskEnvelope:
        if source not in SOURCE_NAMES:
            raise KeyError(f"Unknown source: {source}")
        return TaskEnvelope(getattr(self, source))

    @property
    def available_sources(self) -> list[str]:
        return [name for name in SOURCE_NAMES if getattr(self, name) is not None]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RawMetricBundle":
        """Build a bundle from a JSON document keyed by source name.

        Unknown keys are ignored with a warning; non-dict payloads are
        treated as missing.
        """
        if not isinstance(data, dict):
            raise TypeError("bundle document must be a JSON object")
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown bundle source: %s", key)
                continue
            if key == "failed_sources":
                kwargs[key] = frozenset(str(v) for v in (value or []))
            else:
                kwargs[key] = value if isinstance(value, dict) else None
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {name: getattr(self, name) for name in SOURCE_NAMES}
        data["failed_sources"] = sorted(self.failed_sources)
        return data
