"""SQL schema for the local scouting database."""

SCHEMA = """
-- Mirrored masters: remote is authoritative, rows are retained when stale
CREATE TABLE IF NOT EXISTS team (
    team_number INTEGER PRIMARY KEY NOT NULL,
    team_name TEXT NOT NULL,
    location TEXT
);

CREATE TABLE IF NOT EXISTS event (
    event_key TEXT PRIMARY KEY NOT NULL,
    event_name TEXT NOT NULL,
    short_name TEXT,
    year INTEGER NOT NULL,
    week INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS organization (
    id INTEGER PRIMARY KEY NOT NULL,
    name TEXT NOT NULL,
    team_number INTEGER
);

-- Mirrored dependents: pruned to match the remote collection
CREATE TABLE IF NOT EXISTS match_schedule (
    event_key TEXT NOT NULL REFERENCES event(event_key),
    match_level TEXT NOT NULL,
    match_number INTEGER NOT NULL,
    red1_id INTEGER NOT NULL REFERENCES team(team_number),
    red2_id INTEGER NOT NULL REFERENCES team(team_number),
    red3_id INTEGER NOT NULL REFERENCES team(team_number),
    blue1_id INTEGER NOT NULL REFERENCES team(team_number),
    blue2_id INTEGER NOT NULL REFERENCES team(team_number),
    blue3_id INTEGER NOT NULL REFERENCES team(team_number),
    PRIMARY KEY (event_key, match_level, match_number)
);

CREATE TABLE IF NOT EXISTS team_event (
    event_key TEXT NOT NULL REFERENCES event(event_key),
    team_number INTEGER NOT NULL REFERENCES team(team_number),
    PRIMARY KEY (event_key, team_number)
);

CREATE TABLE IF NOT EXISTS user_organization (
    organization_id INTEGER PRIMARY KEY NOT NULL REFERENCES organization(id),
    user_organization_id INTEGER,
    role TEXT
);

CREATE TABLE IF NOT EXISTS already_scouted (
    event_code TEXT NOT NULL,
    organization_id INTEGER NOT NULL REFERENCES organization(id),
    team_number INTEGER NOT NULL REFERENCES team(team_number),
    match_level TEXT NOT NULL,
    match_number INTEGER NOT NULL,
    PRIMARY KEY (event_code, organization_id, team_number, match_level, match_number)
);

CREATE TABLE IF NOT EXISTS already_pit_scouted (
    event_code TEXT NOT NULL,
    organization_id INTEGER NOT NULL REFERENCES organization(id),
    team_number INTEGER NOT NULL REFERENCES team(team_number),
    PRIMARY KEY (event_code, organization_id, team_number)
);

CREATE TABLE IF NOT EXISTS already_prescouted (
    event_key TEXT NOT NULL,
    team_number INTEGER NOT NULL REFERENCES team(team_number),
    match_level TEXT NOT NULL,
    match_number INTEGER NOT NULL,
    PRIMARY KEY (event_key, team_number, match_level, match_number)
);

CREATE TABLE IF NOT EXISTS already_super_scouted (
    event_code TEXT NOT NULL,
    match_level TEXT NOT NULL,
    match_number INTEGER NOT NULL,
    alliance TEXT NOT NULL,
    PRIMARY KEY (event_code, match_level, match_number, alliance)
);

CREATE TABLE IF NOT EXISTS already_robot_photo (
    event_key TEXT NOT NULL,
    team_number INTEGER NOT NULL REFERENCES team(team_number),
    image_id TEXT NOT NULL,
    image_url TEXT,
    description TEXT,
    PRIMARY KEY (event_key, team_number, image_id)
);

CREATE TABLE IF NOT EXISTS super_scout_field (
    key TEXT PRIMARY KEY NOT NULL,
    label TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS pick_list (
    id TEXT PRIMARY KEY NOT NULL,
    organization_id INTEGER NOT NULL REFERENCES organization(id),
    title TEXT NOT NULL,
    season INTEGER,
    event_key TEXT,
    notes TEXT NOT NULL DEFAULT '',
    created_at INTEGER,
    updated_at INTEGER,
    favorited INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS pick_list_rank (
    pick_list_id TEXT NOT NULL REFERENCES pick_list(id) ON DELETE CASCADE,
    rank INTEGER NOT NULL,
    team_number INTEGER NOT NULL REFERENCES team(team_number),
    notes TEXT NOT NULL DEFAULT '',
    dnp INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (pick_list_id, rank)
);

CREATE INDEX IF NOT EXISTS idx_pick_list_organization ON pick_list(organization_id);

-- Outbox: locally authoritative until pending is cleared
CREATE TABLE IF NOT EXISTS match_record (
    event_key TEXT NOT NULL,
    team_number INTEGER NOT NULL,
    match_level TEXT NOT NULL,
    match_number INTEGER NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',
    notes TEXT,
    pending INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (event_key, team_number, match_level, match_number)
);

CREATE TABLE IF NOT EXISTS pit_record (
    event_key TEXT NOT NULL,
    team_number INTEGER NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',
    notes TEXT,
    pending INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (event_key, team_number)
);

CREATE TABLE IF NOT EXISTS prescout_record (
    event_key TEXT NOT NULL,
    team_number INTEGER NOT NULL,
    match_level TEXT NOT NULL,
    match_number INTEGER NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',
    notes TEXT,
    pending INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (event_key, team_number, match_level, match_number)
);

CREATE TABLE IF NOT EXISTS super_scout_record (
    event_key TEXT NOT NULL,
    team_number INTEGER NOT NULL,
    match_level TEXT NOT NULL,
    match_number INTEGER NOT NULL,
    alliance TEXT,
    start_position TEXT,
    driver_rating INTEGER,
    robot_overall INTEGER,
    defense_rating INTEGER,
    notes TEXT,
    pending INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (event_key, team_number, match_level, match_number)
);

CREATE TABLE IF NOT EXISTS super_scout_selection (
    event_key TEXT NOT NULL,
    team_number INTEGER NOT NULL,
    match_level TEXT NOT NULL,
    match_number INTEGER NOT NULL,
    field_key TEXT NOT NULL,
    PRIMARY KEY (event_key, team_number, match_level, match_number, field_key),
    FOREIGN KEY (event_key, team_number, match_level, match_number)
        REFERENCES super_scout_record(event_key, team_number, match_level, match_number)
        ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_selection_field ON super_scout_selection(field_key);

CREATE TABLE IF NOT EXISTS robot_photo (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_key TEXT NOT NULL,
    team_number INTEGER NOT NULL,
    local_uri TEXT NOT NULL,
    description TEXT,
    remote_url TEXT,
    pending INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL,
    UNIQUE (event_key, team_number, local_uri)
);

CREATE INDEX IF NOT EXISTS idx_match_record_pending ON match_record(event_key, pending);
CREATE INDEX IF NOT EXISTS idx_pit_record_pending ON pit_record(event_key, pending);
CREATE INDEX IF NOT EXISTS idx_prescout_record_pending ON prescout_record(event_key, pending);
CREATE INDEX IF NOT EXISTS idx_super_scout_record_pending ON super_scout_record(event_key, pending);
CREATE INDEX IF NOT EXISTS idx_robot_photo_pending ON robot_photo(event_key, pending);

-- Active context: exactly one row
CREATE TABLE IF NOT EXISTS active_context (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    organization_id INTEGER,
    event_code TEXT
);
"""

# Outbox tables, keyed by channel name
OUTBOX_TABLES = {
    "match": "match_record",
    "pit": "pit_record",
    "prescout": "prescout_record",
    "super_scout": "super_scout_record",
    "robot_photo": "robot_photo",
}

# Outbox tables with a JSON ``data`` column
JSON_DATA_TABLES = frozenset({"match_record", "pit_record", "prescout_record"})
