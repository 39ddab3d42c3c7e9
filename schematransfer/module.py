import re

from . import article, caption
from .entity import EntityKind, check_create_id
from .utils import normalize_text, to_int

_identifier_re = re.compile(r"^[a-z][a-z0-9_]{0,59}$")


def _check_language_code(code):
    if not isinstance(code, str) or len(code) != 5:
        raise ValueError("language code must have 5 characters")


def del_tx(conn, module_id):
    conn.execute("DELETE FROM module WHERE id = ?", (module_id,))


def get_tx(conn, ids):
    if not ids:
        return []
    rows = conn.execute(
        f"""
        SELECT id, name, language_main, position, color1, release_build, release_date
        FROM module
        WHERE id IN ({','.join('?' * len(ids))})
        ORDER BY name ASC
        """,
        list(ids),
    ).fetchall()

    modules = []
    for row in rows:
        module_id = row["id"]
        depends_on = conn.execute(
            "SELECT module_id_on FROM module_depends WHERE module_id = ? ORDER BY module_id_on ASC",
            (module_id,),
        ).fetchall()
        languages = conn.execute(
            "SELECT language_code FROM module_language WHERE module_id = ? ORDER BY language_code ASC",
            (module_id,),
        ).fetchall()
        modules.append(
            {
                "id": module_id,
                "name": row["name"],
                "language_main": row["language_main"],
                "position": int(row["position"]),
                "color1": row["color1"],
                "release_build": int(row["release_build"]),
                "release_date": int(row["release_date"]),
                "depends_on": [r["module_id_on"] for r in depends_on],
                "languages": [r["language_code"] for r in languages],
                "article_ids_help": article.get_assigned_tx(conn, EntityKind.MODULE, module_id),
                "captions": caption.get_tx(conn, EntityKind.MODULE, module_id, ["moduleTitle"]),
            }
        )
    return modules


def set_tx(conn, mod):
    name = normalize_text(mod.get("name", ""))
    if not _identifier_re.match(name):
        raise ValueError(f"invalid module name: {name!r}")
    if name.startswith("instance"):
        raise ValueError("application name must not start with 'instance'")
    language_main = mod.get("language_main")
    _check_language_code(language_main)
    languages = list(dict.fromkeys(mod.get("languages") or []))
    for code in languages:
        _check_language_code(code)
    depends_on = list(dict.fromkeys(mod.get("depends_on") or []))

    values = (
        name,
        language_main,
        to_int(mod.get("position"), default=0),
        mod.get("color1") or None,
        to_int(mod.get("release_build"), default=0),
        to_int(mod.get("release_date"), default=0),
    )

    module_id, known = check_create_id(conn, EntityKind.MODULE, mod.get("id"))
    if module_id in depends_on:
        raise ValueError("module dependency to itself is not allowed")

    if known:
        conn.execute(
            """
            UPDATE module SET name=?, language_main=?, position=?, color1=?,
              release_build=?, release_date=?
            WHERE id=?
            """,
            (*values, module_id),
        )
    else:
        conn.execute(
            """
            INSERT INTO module(name,language_main,position,color1,release_build,release_date,id)
            VALUES(?,?,?,?,?,?,?)
            """,
            (*values, module_id),
        )

    conn.execute("DELETE FROM module_depends WHERE module_id = ?", (module_id,))
    for module_id_on in depends_on:
        conn.execute(
            "INSERT INTO module_depends(module_id,module_id_on) VALUES(?,?)",
            (module_id, module_id_on),
        )

    conn.execute("DELETE FROM module_language WHERE module_id = ?", (module_id,))
    for code in languages:
        conn.execute(
            "INSERT INTO module_language(module_id,language_code) VALUES(?,?)",
            (module_id, code),
        )

    article.assign_tx(conn, EntityKind.MODULE, module_id, mod.get("article_ids_help"))
    caption.set_tx(conn, module_id, mod.get("captions"))
    return module_id
