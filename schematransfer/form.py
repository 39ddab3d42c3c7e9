from . import article, caption, field
from .entity import EntityKind, check_create_id
from .utils import normalize_text


def del_tx(conn, form_id):
    conn.execute("DELETE FROM form WHERE id = ?", (form_id,))


def get_tx(conn, module_id, ids=None):
    sql = "SELECT id, module_id, name, no_data_actions FROM form WHERE module_id = ?"
    args = [module_id]
    if ids:
        sql += f" AND id IN ({','.join('?' * len(ids))})"
        args.extend(ids)
    rows = conn.execute(sql + " ORDER BY name ASC, id ASC", args).fetchall()

    forms = []
    for row in rows:
        forms.append(
            {
                "id": row["id"],
                "module_id": row["module_id"],
                "name": row["name"],
                "no_data_actions": bool(row["no_data_actions"]),
                "article_ids_help": article.get_assigned_tx(conn, EntityKind.FORM, row["id"]),
                "captions": caption.get_tx(conn, EntityKind.FORM, row["id"], ["formTitle"]),
                "fields": field.get_tx(conn, row["id"]),
            }
        )
    return forms


def set_tx(conn, frm):
    # dots are reserved for form function references
    name = normalize_text(frm.get("name", "")).replace(".", "")
    if not name:
        raise ValueError("missing form name")
    module_id = frm.get("module_id")
    if not module_id:
        raise ValueError("form module id is required")
    no_data_actions = 1 if frm.get("no_data_actions") else 0

    form_id, known = check_create_id(conn, EntityKind.FORM, frm.get("id"))
    if known:
        conn.execute(
            "UPDATE form SET name=?, no_data_actions=? WHERE id=?",
            (name, no_data_actions, form_id),
        )
    else:
        conn.execute(
            "INSERT INTO form(id,module_id,name,no_data_actions) VALUES(?,?,?,?)",
            (form_id, module_id, name, no_data_actions),
        )

    field.set_all_tx(conn, form_id, frm.get("fields"))
    article.assign_tx(conn, EntityKind.FORM, form_id, frm.get("article_ids_help"))
    caption.set_tx(conn, form_id, frm.get("captions"))
    return form_id
