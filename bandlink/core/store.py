"""
Per-band configuration storage.

A flat JSON document keyed by MAC address.  The band client never touches the
store; the CLI reads a record before calling into the band and writes it back
afterwards.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from bandlink.ble_ops.records import ActivityGoal, BandLock
from bandlink.core import config
from bandlink.core.log import print_and_log, LOG__DEBUG

__all__ = ["BandConf", "Store"]


@dataclass
class BandConf:
    auth_key: Optional[str] = None
    activity_goal: Optional[ActivityGoal] = None
    band_lock: Optional[BandLock] = None
    alias: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auth_key": self.auth_key,
            "activity_goal": asdict(self.activity_goal) if self.activity_goal else None,
            "band_lock": asdict(self.band_lock) if self.band_lock else None,
            "alias": self.alias,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BandConf":
        goal = data.get("activity_goal")
        lock = data.get("band_lock")
        return cls(
            auth_key=data.get("auth_key"),
            activity_goal=ActivityGoal(**goal) if goal else None,
            band_lock=BandLock(**lock) if lock else None,
            alias=data.get("alias"),
        )


class Store:
    """JSON-backed mapping of band MAC address -> :class:`BandConf`."""

    def __init__(self, path: Union[str, Path] = config.STORE_FILE):
        self._path = Path(path)
        self._bands: Dict[str, BandConf] = {}

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    def init(cls, path: Union[str, Path] = config.STORE_FILE) -> "Store":
        store = cls(path)
        store.load()
        return store

    def load(self) -> None:
        """Load every band record; a missing file means an empty store."""
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except FileNotFoundError:
            print_and_log(f"[*] No band store at {self._path}, starting empty", LOG__DEBUG)
            self._bands = {}
            return
        self._bands = {mac: BandConf.from_dict(conf or {}) for mac, conf in raw.items()}

    def get_band(self, band_mac: str) -> BandConf:
        """Return the record for *band_mac*, creating an empty one if needed."""
        return self._bands.setdefault(band_mac.upper(), BandConf())

    def get_band_alias(self, band_mac: str) -> str:
        """Return the band alias, or the MAC address if there is no alias."""
        conf = self._bands.get(band_mac.upper())
        if conf is not None and conf.alias:
            return conf.alias
        return band_mac

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {mac: conf.to_dict() for mac, conf in self._bands.items()}
        with open(self._path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
        print_and_log(f"[*] Saved {len(data)} band record(s) to {self._path}", LOG__DEBUG)
