from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Optional

from .config import DEFAULT_DAYS_PER_COPY, SETTINGS_PATH
from .errors import SettingsError
from .models import RuleSetSnapshot, to_int
from .rules import parse_rules

logger = logging.getLogger(__name__)


def normalize_default_days(value: object) -> int:
    days = to_int(value) if value is not None else 0
    return days if days > 0 else DEFAULT_DAYS_PER_COPY


class SettingsStore:
    """Holds the raw condition text and global default days, with reload support.

    The file is a JSON object:

        {"conditions": "<rule text>", "default_days_per_copy": 30}

    A missing file means "no rules yet" rather than an error.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = Path(path or SETTINGS_PATH)
        self._lock = RLock()
        self._conditions = ""
        self._default_days = DEFAULT_DAYS_PER_COPY
        self._snapshot = RuleSetSnapshot(default_days_per_copy=self._default_days)
        self.reload()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def conditions(self) -> str:
        with self._lock:
            return self._conditions

    @property
    def default_days_per_copy(self) -> int:
        with self._lock:
            return self._default_days

    def reload(self) -> None:
        raw = self._read_file()
        conditions, default_days = self._parse(raw)
        self._apply(conditions, default_days)

    def snapshot(self) -> RuleSetSnapshot:
        """Current parsed rules; callers hold on to it for the whole operation."""
        with self._lock:
            return self._snapshot

    def update(self, *, conditions: Optional[str], default_days_per_copy: object = None) -> RuleSetSnapshot:
        """Replace the settings and persist them."""
        conditions = conditions or ""
        default_days = normalize_default_days(default_days_per_copy)
        self._write_file({"conditions": conditions, "default_days_per_copy": default_days})
        self._apply(conditions, default_days)
        logger.info(
            "subscription_settings_updated",
            extra={"rule_count": len(self._snapshot.rules), "default_days_per_copy": default_days},
        )
        return self.snapshot()

    def _apply(self, conditions: str, default_days: int) -> None:
        snapshot = RuleSetSnapshot(
            rules=parse_rules(conditions),
            default_days_per_copy=default_days,
        )
        with self._lock:
            self._conditions = conditions
            self._default_days = default_days
            self._snapshot = snapshot

    def _read_file(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError) as exc:
            raise SettingsError(f"cannot read {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise SettingsError(f"{self._path} must contain a top-level object")
        return raw

    def _write_file(self, payload: dict) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            tmp_path.replace(self._path)
        except OSError as exc:
            logger.error("subscription_settings_write_failed", extra={"path": str(self._path), "error": str(exc)})
            raise SettingsError(f"cannot write {self._path}: {exc}") from exc

    @staticmethod
    def _parse(raw: dict) -> tuple[str, int]:
        conditions = raw.get("conditions", "")
        if not isinstance(conditions, str):
            raise SettingsError("conditions must be a string", field="conditions")
        return conditions, normalize_default_days(raw.get("default_days_per_copy"))
