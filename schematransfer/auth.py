"""Token lookup for the transfer handlers; login management itself lives elsewhere."""

from .utils import normalize_text


def authenticate(store, token):
    token = normalize_text(token)
    if not token:
        raise PermissionError("missing token")
    conn = store._connect()
    try:
        row = conn.execute("SELECT id, name, admin FROM login WHERE token = ?", (token,)).fetchone()
    finally:
        conn.close()
    if not row:
        raise PermissionError("invalid token")
    return {"id": row["id"], "name": row["name"], "admin": bool(row["admin"])}


def require_admin(login):
    if not login.get("admin"):
        raise PermissionError("unauthorized")


def create_login_tx(conn, name, admin=False, token=None):
    cur = conn.execute(
        "INSERT INTO login(name,admin,token) VALUES(?,?,?)",
        (normalize_text(name), 1 if admin else 0, token),
    )
    return cur.lastrowid


def create_login_template_tx(conn, name):
    cur = conn.execute("INSERT INTO login_template(name) VALUES(?)", (normalize_text(name),))
    return cur.lastrowid
