"""Runtime configuration for the index writer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import timedelta
import os
import re
from typing import Mapping

DEFAULT_SOLR_URL = "http://127.0.0.1:8983/solr/docspew"

_DURATION_RE = re.compile(r"^(\d+)\s*(ms|s|m|h|d)?$", re.IGNORECASE)
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(*, name: str, raw_value: object) -> bool:
    if isinstance(raw_value, bool):
        return raw_value
    text = str(raw_value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw_value!r}")


def parse_non_negative_int(*, name: str, raw_value: object) -> int:
    if isinstance(raw_value, bool):
        raise ValueError(f"{name} must be an integer, got {raw_value!r}")
    if isinstance(raw_value, int):
        value = raw_value
    else:
        try:
            value = int(str(raw_value).strip())
        except ValueError as exc:
            raise ValueError(f"{name} must be an integer, got {raw_value!r}") from exc
    if value < 0:
        raise ValueError(f"{name} must be >= 0")
    return value


def parse_duration(*, name: str, raw_value: object) -> timedelta:
    """Parse ``timedelta``, integer milliseconds, or strings such as ``30s`` or ``5m``."""

    if isinstance(raw_value, timedelta):
        duration = raw_value
    elif isinstance(raw_value, int) and not isinstance(raw_value, bool):
        duration = timedelta(milliseconds=raw_value)
    else:
        match = _DURATION_RE.match(str(raw_value).strip())
        if match is None:
            raise ValueError(f"{name} must be a duration like 500ms, 30s, 5m, 2h or 1d, got {raw_value!r}")
        unit = (match.group(2) or "ms").lower()
        duration = int(match.group(1)) * _DURATION_UNITS[unit]

    if duration < timedelta(0):
        raise ValueError(f"{name} cannot be negative")
    return duration


@dataclass(frozen=True, slots=True)
class SpewerSettings:
    """Validated index writer settings."""

    solr_url: str = DEFAULT_SOLR_URL
    commit_interval: int = 0
    commit_within: timedelta | None = None
    atomic_writes: bool = False
    fix_dates: bool = True
    output_metadata: bool = True
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def commit_within_ms(self) -> int | None:
        if self.commit_within is None:
            return None
        return int(self.commit_within / timedelta(milliseconds=1))

    def with_options(self, options: Mapping[str, object]) -> "SpewerSettings":
        """Return a copy with the recognised options applied; others are ignored."""

        changes: dict[str, object] = {}
        if options.get("commitInterval") is not None:
            changes["commit_interval"] = parse_non_negative_int(
                name="commitInterval", raw_value=options["commitInterval"]
            )
        if options.get("commitWithin") is not None:
            changes["commit_within"] = parse_duration(name="commitWithin", raw_value=options["commitWithin"])
        if options.get("atomicWrites") is not None:
            changes["atomic_writes"] = parse_bool(name="atomicWrites", raw_value=options["atomicWrites"])
        if options.get("fixDates") is not None:
            changes["fix_dates"] = parse_bool(name="fixDates", raw_value=options["fixDates"])
        if options.get("outputMetadata") is not None:
            changes["output_metadata"] = parse_bool(name="outputMetadata", raw_value=options["outputMetadata"])

        tags = options.get("tags")
        if tags is not None:
            if not isinstance(tags, Mapping):
                raise ValueError("tags must be a mapping of tag name to value")
            changes["tags"] = {str(key): str(value) for key, value in tags.items()}

        return replace(self, **changes)

    @classmethod
    def from_options(cls, options: Mapping[str, object]) -> "SpewerSettings":
        return cls().with_options(options)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SpewerSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        solr_url = source.get("DOCSPEW_SOLR_URL", DEFAULT_SOLR_URL).strip()
        if not solr_url:
            raise ValueError("DOCSPEW_SOLR_URL cannot be empty")
        if not (solr_url.startswith("http://") or solr_url.startswith("https://")):
            raise ValueError("DOCSPEW_SOLR_URL must start with http:// or https://")

        options: dict[str, object] = {}
        env_options = {
            "commitInterval": "DOCSPEW_COMMIT_INTERVAL",
            "commitWithin": "DOCSPEW_COMMIT_WITHIN",
            "atomicWrites": "DOCSPEW_ATOMIC_WRITES",
            "fixDates": "DOCSPEW_FIX_DATES",
            "outputMetadata": "DOCSPEW_OUTPUT_METADATA",
        }
        for option, env_name in env_options.items():
            raw = source.get(env_name, "").strip()
            if raw:
                options[option] = raw

        try:
            return cls(solr_url=solr_url.rstrip("/")).with_options(options)
        except ValueError as exc:
            raise ValueError(f"Invalid environment configuration: {exc}") from exc
