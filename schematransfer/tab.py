from . import caption
from .entity import TAB_OWNERS, EntityKind, check_create_id, check_owner
from .utils import to_int


def del_tx(conn, tab_id):
    conn.execute("DELETE FROM tab WHERE id = ?", (tab_id,))


def get_tx(conn, entity, entity_id):
    check_owner(entity, TAB_OWNERS, "tab")
    rows = conn.execute(
        f"""
        SELECT id, position, content_counter, state
        FROM tab
        WHERE {entity.column} = ?
        ORDER BY position ASC
        """,
        (entity_id,),
    ).fetchall()
    tabs = [
        {
            "id": row["id"],
            "position": int(row["position"]),
            "content_counter": int(row["content_counter"]),
            "state": row["state"],
        }
        for row in rows
    ]
    for tab in tabs:
        tab["captions"] = caption.get_tx(conn, EntityKind.TAB, tab["id"], ["tabTitle"])
    return tabs


def set_tx(conn, entity, entity_id, position, tab):
    check_owner(entity, TAB_OWNERS, "tab")
    if not entity_id:
        raise ValueError("tab owner id is required")
    if isinstance(position, bool) or not isinstance(position, int) or position < 0:
        raise ValueError(f"invalid tab position: {position!r}")

    content_counter = to_int(tab.get("content_counter"), default=0)
    state = tab.get("state")
    if state is None:
        state = "default"

    tab_id, known = check_create_id(conn, EntityKind.TAB, tab.get("id"))
    if known:
        conn.execute(
            "UPDATE tab SET position=?, content_counter=?, state=? WHERE id=?",
            (position, content_counter, state, tab_id),
        )
    else:
        conn.execute(
            f"INSERT INTO tab(id,{entity.column},position,content_counter,state) VALUES(?,?,?,?,?)",
            (tab_id, entity_id, position, content_counter, state),
        )
    caption.set_tx(conn, tab_id, tab.get("captions"))
    return tab_id
