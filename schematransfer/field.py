from . import caption
from .constants import FIELD_CONTENTS
from .entity import EntityKind, check_create_id
from .utils import json_dumps, loads_json_list


def del_tx(conn, field_id):
    conn.execute("DELETE FROM field WHERE id = ?", (field_id,))


def get_tx(conn, form_id):
    rows = conn.execute(
        "SELECT id, position, content, flags_json, days FROM field WHERE form_id = ? ORDER BY position ASC",
        (form_id,),
    ).fetchall()
    fields = [
        {
            "id": row["id"],
            "content": row["content"],
            "flags": loads_json_list(row["flags_json"]),
            "days": row["days"],
        }
        for row in rows
    ]
    for f in fields:
        f["captions"] = caption.get_tx(conn, EntityKind.FIELD, f["id"], ["fieldHelp", "fieldTitle"])
    return fields


def set_tx(conn, form_id, position, f):
    content = f.get("content")
    if content not in FIELD_CONTENTS:
        raise ValueError(f"invalid field content: {content!r}")
    flags = f.get("flags")
    if not isinstance(flags, list) or not all(isinstance(flag, str) for flag in flags):
        raise ValueError("field flags must be a list of strings")
    days = None
    if content == "calendar":
        days = f.get("days")
        if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
            raise ValueError("calendar field needs a positive number of days")

    field_id, known = check_create_id(conn, EntityKind.FIELD, f.get("id"))
    if known:
        conn.execute(
            "UPDATE field SET position=?, content=?, flags_json=?, days=? WHERE id=?",
            (position, content, json_dumps(flags), days, field_id),
        )
    else:
        conn.execute(
            "INSERT INTO field(id,form_id,position,content,flags_json,days) VALUES(?,?,?,?,?,?)",
            (field_id, form_id, position, content, json_dumps(flags), days),
        )
    caption.set_tx(conn, field_id, f.get("captions"))
    return field_id


def set_all_tx(conn, form_id, fields):
    """Write the ordered fields of a form and drop fields no longer part of it."""
    field_ids = [set_tx(conn, form_id, position, f) for position, f in enumerate(fields or [])]
    if field_ids:
        conn.execute(
            f"DELETE FROM field WHERE form_id = ? AND id NOT IN ({','.join('?' * len(field_ids))})",
            (form_id, *field_ids),
        )
    else:
        conn.execute("DELETE FROM field WHERE form_id = ?", (form_id,))
    return field_ids
