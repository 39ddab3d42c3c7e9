import json
import re
import uuid
from datetime import datetime, timezone


def now_iso():
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def new_id():
    return str(uuid.uuid4())


_ws_re = re.compile(r"\s+")


def normalize_text(s):
    if s is None:
        return ""
    s = str(s).strip()
    s = _ws_re.sub(" ", s)
    return s


def normalize_id(value):
    # Empty and nil UUIDs both mean "no id yet".
    value = normalize_text(value)
    if not value or value == str(uuid.UUID(int=0)):
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError as exc:
        raise ValueError(f"invalid id: {value}") from exc


def json_dumps(obj):
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


def loads_json_list(raw, default=None):
    if isinstance(raw, list):
        return raw
    if not raw:
        return [] if default is None else default
    try:
        data = json.loads(raw)
    except Exception:
        return [] if default is None else default
    return data if isinstance(data, list) else ([] if default is None else default)


def to_int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
