from .constants import DEFAULT_SETTINGS

_BOOL_KEYS = {key for key, value in DEFAULT_SETTINGS.items() if isinstance(value, bool)}
_INT_KEYS = {key for key, value in DEFAULT_SETTINGS.items() if isinstance(value, int) and key not in _BOOL_KEYS}
_COLUMNS = tuple(DEFAULT_SETTINGS)


def _owner(login_id, login_template_id, action):
    if (login_id is None) == (login_template_id is None):
        raise ValueError(f"settings can only be {action} for either login or login template")
    if login_template_id is not None:
        return "login_template_id", login_template_id
    return "login_id", login_id


def get_tx(conn, login_id=None, login_template_id=None):
    column, owner_id = _owner(login_id, login_template_id, "retrieved")
    row = conn.execute(
        f"SELECT {','.join(_COLUMNS)} FROM login_setting WHERE {column} = ?",
        (owner_id,),
    ).fetchone()
    if not row:
        raise KeyError("settings not found")
    settings = {}
    for key in _COLUMNS:
        value = row[key]
        settings[key] = bool(value) if key in _BOOL_KEYS else value
    return settings


def set_tx(conn, login_id, login_template_id, settings):
    column, owner_id = _owner(login_id, login_template_id, "applied")
    missing = [key for key in _COLUMNS if key not in settings]
    if missing:
        raise ValueError(f"missing settings: {', '.join(missing)}")

    values = []
    for key in _COLUMNS:
        value = settings[key]
        if key in _BOOL_KEYS:
            value = 1 if value else 0
        elif key in _INT_KEYS:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"setting {key} must be an integer")
        elif value is not None:
            value = str(value)
        values.append(value)

    known = conn.execute(f"SELECT 1 FROM login_setting WHERE {column} = ?", (owner_id,)).fetchone()
    if known:
        conn.execute(
            f"UPDATE login_setting SET {','.join(f'{key}=?' for key in _COLUMNS)} WHERE {column} = ?",
            (*values, owner_id),
        )
    else:
        conn.execute(
            f"INSERT INTO login_setting({column},{','.join(_COLUMNS)}) VALUES({','.join('?' * (len(_COLUMNS) + 1))})",
            (owner_id, *values),
        )
