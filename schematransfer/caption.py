from .entity import CAPTION_CONTENTS, EntityKind

_CONTENT_KINDS = {content: kind for kind, contents in CAPTION_CONTENTS.items() for content in contents}


def get_tx(conn, kind, entity_id, contents):
    allowed = CAPTION_CONTENTS.get(kind, ())
    for content in contents:
        if content not in allowed:
            raise ValueError(f"caption content {content!r} is not valid for {kind.table}")

    captions = {}
    if not contents:
        return captions
    rows = conn.execute(
        f"""
        SELECT content, language_code, value
        FROM caption
        WHERE {kind.column} = ?
        AND content IN ({",".join("?" * len(contents))})
        ORDER BY content ASC, language_code ASC
        """,
        (entity_id, *contents),
    ).fetchall()
    for row in rows:
        captions.setdefault(row["content"], {})[row["language_code"]] = row["value"]
    return captions


def set_tx(conn, entity_id, captions):
    """Replace every caption of an entity with the given caption map."""
    captions = {content: langs for content, langs in (captions or {}).items() if langs}
    kinds = set()
    for content, langs in captions.items():
        if content not in _CONTENT_KINDS:
            raise ValueError(f"unknown caption content: {content!r}")
        if not isinstance(langs, dict):
            raise ValueError(f"caption {content!r} must map language codes to text")
        kinds.add(_CONTENT_KINDS[content])
    if len(kinds) > 1:
        raise ValueError("captions of one entity must all belong to the same entity kind")

    if kinds:
        columns = [kinds.pop().column]
    else:
        # Entity kind unknown without contents; ids are unique across kinds.
        columns = [kind.column for kind in EntityKind]
    conn.execute(
        f"DELETE FROM caption WHERE {' OR '.join(f'{col} = ?' for col in columns)}",
        (entity_id,) * len(columns),
    )

    for content, langs in captions.items():
        column = _CONTENT_KINDS[content].column
        for language_code, value in langs.items():
            if value is None or value == "":
                continue
            conn.execute(
                f"INSERT INTO caption({column},content,language_code,value) VALUES(?,?,?,?)",
                (entity_id, content, str(language_code), str(value)),
            )
