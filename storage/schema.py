# storage/schema.py
CREATE_TABLE_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS token_snapshots (
    token_address TEXT PRIMARY KEY,
    token_name    TEXT,
    date_added    TEXT NOT NULL,
    last_updated  TEXT NOT NULL,
    report        TEXT NOT NULL
);
"""

# one point per token per day; a second refresh on the same day overwrites
CREATE_TABLE_HOLDERS_GRAPH = """
CREATE TABLE IF NOT EXISTS holders_graph (
    token_address TEXT NOT NULL,
    day_ts        BIGINT NOT NULL,
    holder_count  INTEGER NOT NULL,
    PRIMARY KEY (token_address, day_ts)
);
"""

ALL_TABLES = (CREATE_TABLE_SNAPSHOTS, CREATE_TABLE_HOLDERS_GRAPH)
