import os

DEFAULT_CONFIG = {
    "data_dir": "",
    "temp_dir": "",
    # seconds a single export or import may take
    "transfer_timeout": 300,
    "busy_timeout_ms": 5000,
}

_ENV_PREFIX = "SCHEMATRANSFER_"


def normalize_config(config):
    cfg = {**DEFAULT_CONFIG, **(config or {})}
    cfg["data_dir"] = str(cfg.get("data_dir") or "").strip()
    cfg["temp_dir"] = str(cfg.get("temp_dir") or "").strip()
    try:
        cfg["transfer_timeout"] = max(1, int(cfg.get("transfer_timeout", 300)))
    except (TypeError, ValueError):
        cfg["transfer_timeout"] = DEFAULT_CONFIG["transfer_timeout"]
    try:
        cfg["busy_timeout_ms"] = max(0, int(cfg.get("busy_timeout_ms", 5000)))
    except (TypeError, ValueError):
        cfg["busy_timeout_ms"] = DEFAULT_CONFIG["busy_timeout_ms"]
    return cfg


def load_config():
    overrides = {}
    for key in DEFAULT_CONFIG:
        value = os.environ.get(_ENV_PREFIX + key.upper())
        if value is not None:
            overrides[key] = value
    return normalize_config(overrides)
