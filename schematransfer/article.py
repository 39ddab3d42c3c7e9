from . import caption
from .entity import ARTICLE_ASSIGN_TARGETS, EntityKind, check_create_id, check_owner

# assignment table per target kind
_ASSIGN_TABLES = {
    EntityKind.FORM: "article_form",
    EntityKind.MODULE: "article_help",
}


def assign_tx(conn, target, target_id, article_ids):
    """Replace the ordered help articles of a form or module."""
    check_owner(target, ARTICLE_ASSIGN_TARGETS, "article assign")
    table = _ASSIGN_TABLES[target]
    conn.execute(f"DELETE FROM {table} WHERE {target.column} = ?", (target_id,))
    for position, article_id in enumerate(article_ids or []):
        conn.execute(
            f"INSERT INTO {table}(article_id,{target.column},position) VALUES(?,?,?)",
            (article_id, target_id, position),
        )


def get_assigned_tx(conn, target, target_id):
    check_owner(target, ARTICLE_ASSIGN_TARGETS, "article assign")
    rows = conn.execute(
        f"SELECT article_id FROM {_ASSIGN_TABLES[target]} WHERE {target.column} = ? ORDER BY position ASC",
        (target_id,),
    ).fetchall()
    return [row["article_id"] for row in rows]


def del_tx(conn, article_id):
    conn.execute("DELETE FROM article WHERE id = ?", (article_id,))


def get_tx(conn, module_id):
    rows = conn.execute(
        "SELECT id, name FROM article WHERE module_id = ? ORDER BY name ASC, id ASC",
        (module_id,),
    ).fetchall()
    articles = [{"id": row["id"], "module_id": module_id, "name": row["name"]} for row in rows]
    for article in articles:
        article["captions"] = caption.get_tx(
            conn, EntityKind.ARTICLE, article["id"], ["articleBody", "articleTitle"]
        )
    return articles


def set_tx(conn, module_id, article_id, name, captions):
    if not isinstance(name, str) or not name.strip():
        raise ValueError("missing name")
    if not module_id:
        raise ValueError("article module id is required")

    article_id, known = check_create_id(conn, EntityKind.ARTICLE, article_id)
    if known:
        conn.execute("UPDATE article SET name=? WHERE id=?", (name, article_id))
    else:
        conn.execute(
            "INSERT INTO article(id,module_id,name) VALUES(?,?,?)",
            (article_id, module_id, name),
        )
    caption.set_tx(conn, article_id, captions)
    return article_id
