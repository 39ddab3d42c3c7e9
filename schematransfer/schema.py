SCHEMA_SQL = r"""
PRAGMA foreign_keys = ON;
PRAGMA journal_mode = WAL;

CREATE TABLE IF NOT EXISTS meta (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);

-- Logins are managed elsewhere; only what transfer and settings need is kept here.
CREATE TABLE IF NOT EXISTS login (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  admin INTEGER NOT NULL DEFAULT 0,
  token TEXT UNIQUE
);

CREATE TABLE IF NOT EXISTS login_template (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS login_setting (
  login_id INTEGER UNIQUE,
  login_template_id INTEGER UNIQUE,
  language_code TEXT NOT NULL,
  date_format TEXT NOT NULL,
  sunday_first_dow INTEGER NOT NULL,
  font_size INTEGER NOT NULL,
  borders_squared INTEGER NOT NULL,
  header_captions INTEGER NOT NULL,
  spacing INTEGER NOT NULL,
  dark INTEGER NOT NULL,
  pattern TEXT,
  font_family TEXT NOT NULL,
  tab_remember INTEGER NOT NULL,
  list_colored INTEGER NOT NULL,
  number_sep_decimal TEXT NOT NULL,
  number_sep_thousand TEXT NOT NULL,
  bool_as_icon INTEGER NOT NULL,
  shadows_inputs INTEGER NOT NULL,
  CHECK ((login_id IS NULL) <> (login_template_id IS NULL)),
  FOREIGN KEY (login_id) REFERENCES login(id) ON DELETE CASCADE,
  FOREIGN KEY (login_template_id) REFERENCES login_template(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS module (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL UNIQUE,
  language_main TEXT NOT NULL,
  position INTEGER NOT NULL DEFAULT 0,
  color1 TEXT,
  release_build INTEGER NOT NULL DEFAULT 0,
  release_date INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS module_depends (
  module_id TEXT NOT NULL,
  module_id_on TEXT NOT NULL,
  PRIMARY KEY (module_id, module_id_on),
  FOREIGN KEY (module_id) REFERENCES module(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (module_id_on) REFERENCES module(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS module_language (
  module_id TEXT NOT NULL,
  language_code TEXT NOT NULL,
  PRIMARY KEY (module_id, language_code),
  FOREIGN KEY (module_id) REFERENCES module(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS form (
  id TEXT PRIMARY KEY,
  module_id TEXT NOT NULL,
  name TEXT NOT NULL,
  no_data_actions INTEGER NOT NULL DEFAULT 0,
  FOREIGN KEY (module_id) REFERENCES module(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS field (
  id TEXT PRIMARY KEY,
  form_id TEXT NOT NULL,
  position INTEGER NOT NULL,
  content TEXT NOT NULL,
  flags_json TEXT NOT NULL DEFAULT '[]',
  days INTEGER,
  FOREIGN KEY (form_id) REFERENCES form(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS tab (
  id TEXT PRIMARY KEY,
  form_id TEXT,
  module_id TEXT,
  position INTEGER NOT NULL,
  content_counter INTEGER NOT NULL DEFAULT 0,
  state TEXT NOT NULL DEFAULT 'default',
  CHECK ((form_id IS NULL) <> (module_id IS NULL)),
  FOREIGN KEY (form_id) REFERENCES form(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (module_id) REFERENCES module(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS article (
  id TEXT PRIMARY KEY,
  module_id TEXT NOT NULL,
  name TEXT NOT NULL,
  FOREIGN KEY (module_id) REFERENCES module(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS article_form (
  article_id TEXT NOT NULL,
  form_id TEXT NOT NULL,
  position INTEGER NOT NULL,
  FOREIGN KEY (article_id) REFERENCES article(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (form_id) REFERENCES form(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS article_help (
  article_id TEXT NOT NULL,
  module_id TEXT NOT NULL,
  position INTEGER NOT NULL,
  FOREIGN KEY (article_id) REFERENCES article(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (module_id) REFERENCES module(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

-- At most one binding per (owner, context); kept by delete-then-insert, not by a constraint.
CREATE TABLE IF NOT EXISTS open_form (
  field_id TEXT,
  form_id TEXT,
  context TEXT,
  form_id_open TEXT NOT NULL,
  relation_index_open INTEGER NOT NULL,
  attribute_id_apply TEXT,
  relation_index_apply INTEGER NOT NULL,
  pop_up_type TEXT,
  max_height INTEGER NOT NULL DEFAULT 0,
  max_width INTEGER NOT NULL DEFAULT 0,
  CHECK ((field_id IS NULL) <> (form_id IS NULL)),
  FOREIGN KEY (field_id) REFERENCES field(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (form_id) REFERENCES form(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (form_id_open) REFERENCES form(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS caption (
  module_id TEXT,
  form_id TEXT,
  field_id TEXT,
  tab_id TEXT,
  article_id TEXT,
  content TEXT NOT NULL,
  language_code TEXT NOT NULL,
  value TEXT NOT NULL,
  FOREIGN KEY (module_id) REFERENCES module(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (form_id) REFERENCES form(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (field_id) REFERENCES field(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (tab_id) REFERENCES tab(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
  FOREIGN KEY (article_id) REFERENCES article(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED
);

CREATE INDEX IF NOT EXISTS idx_form_module ON form(module_id);
CREATE INDEX IF NOT EXISTS idx_field_form ON field(form_id, position);
CREATE INDEX IF NOT EXISTS idx_tab_form ON tab(form_id, position);
CREATE INDEX IF NOT EXISTS idx_tab_module ON tab(module_id, position);
CREATE INDEX IF NOT EXISTS idx_article_module ON article(module_id, name);
CREATE INDEX IF NOT EXISTS idx_open_form_field ON open_form(field_id, context);
CREATE INDEX IF NOT EXISTS idx_open_form_form ON open_form(form_id, context);
"""
