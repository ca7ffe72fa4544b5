# worldline/config.py
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

# Project defaults; sampling-side parameters of the histogram bank only.
DEFAULTS: Dict[str, Any] = {
    "num_bins": 100,
    "max_dist": 1.0,  # upper bound of the histogram domain
    "num_flavors": 1,
    "cutoff_ratio": 0.1,
    "magnification": 1.2,
    "update_interval": 1000,  # sweeps between collective cutoff updates
    "reset_after_update": True,
    # auto|local|torch|mpi
    "reducer": "auto",
}


def _coerce_env(v: str) -> Any:
    s = v.strip()
    if s.lower() in ("true", "false"):
        return s.lower() == "true"
    if s.isdigit() or (s.startswith("-") and s[1:].isdigit()):
        return int(s)
    try:
        return float(s)
    except ValueError:
        return s


def load_cfg(path: str | Path | None = None) -> Dict[str, Any]:
    cfg = dict(DEFAULTS)
    raw = path if path else os.getenv("WORLDLINE_CFG", "")
    if raw:
        p = Path(raw)
        try:
            cfg.update(json.loads(p.read_text()))
        except (OSError, json.JSONDecodeError) as exc:
            raise ValueError(f"cannot read config file {p}: {exc}") from exc
    for k in list(cfg.keys()):
        env = os.getenv(f"WORLDLINE_{k.upper()}", None)
        if env is not None:
            cfg[k] = _coerce_env(env)
    return cfg


class HistogramSettings(BaseModel):
    """Validated view of the configuration dict."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    num_bins: int = Field(default=DEFAULTS["num_bins"], ge=1)
    max_dist: float = Field(default=DEFAULTS["max_dist"], gt=0)
    num_flavors: int = Field(default=DEFAULTS["num_flavors"], ge=1)
    cutoff_ratio: float = Field(default=DEFAULTS["cutoff_ratio"], ge=0, le=1)
    magnification: float = Field(default=DEFAULTS["magnification"], ge=1)
    update_interval: int = Field(default=DEFAULTS["update_interval"], ge=1)
    reset_after_update: bool = DEFAULTS["reset_after_update"]
    reducer: Literal["auto", "local", "torch", "mpi"] = DEFAULTS["reducer"]

    @classmethod
    def from_cfg(cls, cfg: Dict[str, Any] | None = None) -> "HistogramSettings":
        return cls.model_validate(cfg if cfg is not None else load_cfg())
