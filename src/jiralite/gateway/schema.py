"""Database schema for the SQLite record gateway.

Contains the canonical SQL schema and the current schema version constant.
Discriminator columns carry CHECK constraints that mirror ``jiralite.types.enums``.
"""

from __future__ import annotations

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    email         TEXT NOT NULL UNIQUE,
    name          TEXT NOT NULL,
    profile_image TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    deleted_at    TEXT
);

CREATE TABLE IF NOT EXISTS teams (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    owner_id    TEXT NOT NULL REFERENCES users(id),
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    deleted_at  TEXT
);

CREATE TABLE IF NOT EXISTS team_members (
    id          TEXT PRIMARY KEY,
    team_id     TEXT NOT NULL REFERENCES teams(id),
    user_id     TEXT NOT NULL REFERENCES users(id),
    role        TEXT NOT NULL DEFAULT 'MEMBER',
    created_at  TEXT NOT NULL,
    UNIQUE(team_id, user_id),
    CHECK (role IN ('OWNER', 'ADMIN', 'MEMBER'))
);

CREATE TABLE IF NOT EXISTS projects (
    id          TEXT PRIMARY KEY,
    team_id     TEXT NOT NULL REFERENCES teams(id),
    name        TEXT NOT NULL,
    description TEXT,
    owner_id    TEXT NOT NULL REFERENCES users(id),
    is_archived BOOLEAN NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    deleted_at  TEXT
);

CREATE INDEX IF NOT EXISTS idx_projects_team ON projects(team_id);

CREATE TABLE IF NOT EXISTS project_statuses (
    id          TEXT PRIMARY KEY,
    project_id  TEXT NOT NULL REFERENCES projects(id),
    name        TEXT NOT NULL,
    color       TEXT NOT NULL DEFAULT '#6B7280',
    position    INTEGER NOT NULL DEFAULT 0,
    is_default  BOOLEAN NOT NULL DEFAULT 0,
    wip_limit   INTEGER,
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_statuses_project ON project_statuses(project_id, position);

CREATE TABLE IF NOT EXISTS project_labels (
    id          TEXT PRIMARY KEY,
    project_id  TEXT NOT NULL REFERENCES projects(id),
    name        TEXT NOT NULL,
    color       TEXT NOT NULL DEFAULT '#6B7280',
    created_at  TEXT NOT NULL,
    UNIQUE(project_id, name)
);

CREATE TABLE IF NOT EXISTS issues (
    id          TEXT PRIMARY KEY,
    project_id  TEXT NOT NULL REFERENCES projects(id),
    title       TEXT NOT NULL,
    description TEXT,
    status_id   TEXT NOT NULL REFERENCES project_statuses(id),
    priority    TEXT NOT NULL DEFAULT 'MEDIUM',
    assignee_id TEXT REFERENCES users(id),
    owner_id    TEXT NOT NULL REFERENCES users(id),
    due_date    TEXT,
    position    INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    deleted_at  TEXT,
    CHECK (priority IN ('HIGH', 'MEDIUM', 'LOW'))
);

CREATE INDEX IF NOT EXISTS idx_issues_project ON issues(project_id, created_at);
CREATE INDEX IF NOT EXISTS idx_issues_status_position ON issues(status_id, position);

CREATE TABLE IF NOT EXISTS issue_labels (
    id          TEXT PRIMARY KEY,
    issue_id    TEXT NOT NULL REFERENCES issues(id),
    label_id    TEXT NOT NULL REFERENCES project_labels(id),
    created_at  TEXT NOT NULL,
    UNIQUE(issue_id, label_id)
);

CREATE TABLE IF NOT EXISTS subtasks (
    id           TEXT PRIMARY KEY,
    issue_id     TEXT NOT NULL REFERENCES issues(id),
    title        TEXT NOT NULL,
    is_completed BOOLEAN NOT NULL DEFAULT 0,
    position     INTEGER NOT NULL DEFAULT 0,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_subtasks_issue ON subtasks(issue_id, position);

CREATE TABLE IF NOT EXISTS issue_history (
    id          TEXT PRIMARY KEY,
    issue_id    TEXT NOT NULL REFERENCES issues(id),
    field       TEXT NOT NULL,
    old_value   TEXT,
    new_value   TEXT,
    changed_by  TEXT NOT NULL DEFAULT '',
    changed_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_history_issue ON issue_history(issue_id, changed_at DESC);

CREATE TABLE IF NOT EXISTS comments (
    id          TEXT PRIMARY KEY,
    issue_id    TEXT NOT NULL REFERENCES issues(id),
    user_id     TEXT NOT NULL REFERENCES users(id),
    content     TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    deleted_at  TEXT
);

CREATE INDEX IF NOT EXISTS idx_comments_issue ON comments(issue_id, created_at);

CREATE TABLE IF NOT EXISTS ai_cache (
    id             TEXT PRIMARY KEY,
    issue_id       TEXT NOT NULL REFERENCES issues(id),
    type           TEXT NOT NULL,
    content        TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    invalidated_at TEXT,
    CHECK (type IN ('summary', 'suggestion', 'comment_summary'))
);

CREATE INDEX IF NOT EXISTS idx_ai_cache_issue_type ON ai_cache(issue_id, type, invalidated_at);

CREATE TABLE IF NOT EXISTS ai_rate_limits (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL UNIQUE,
    count        INTEGER NOT NULL DEFAULT 0,
    window_start TEXT NOT NULL,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS notifications (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL REFERENCES users(id),
    type        TEXT NOT NULL,
    title       TEXT NOT NULL,
    content     TEXT NOT NULL DEFAULT '',
    link        TEXT,
    is_read     BOOLEAN NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    CHECK (type IN ('issue_assigned', 'comment_added', 'due_date_approaching',
                    'due_date_today', 'team_invitation', 'role_changed'))
);

CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, is_read);

CREATE TABLE IF NOT EXISTS activity_logs (
    id          TEXT PRIMARY KEY,
    team_id     TEXT NOT NULL REFERENCES teams(id),
    actor_id    TEXT NOT NULL,
    action      TEXT NOT NULL,
    target_type TEXT NOT NULL DEFAULT '',
    target_id   TEXT NOT NULL DEFAULT '',
    details     TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL,
    CHECK (action IN ('team_created', 'member_joined', 'member_left', 'member_kicked',
                      'role_changed', 'project_created', 'project_deleted',
                      'project_archived', 'team_updated'))
);

CREATE INDEX IF NOT EXISTS idx_activity_team ON activity_logs(team_id, created_at DESC);
"""

CURRENT_SCHEMA_VERSION = 1

# Columns stored as 0/1 integers and surfaced as bool.
BOOL_COLUMNS: frozenset[str] = frozenset({"is_archived", "is_default", "is_completed", "is_read"})

# Columns stored as JSON text and surfaced as dict.
JSON_COLUMNS: frozenset[str] = frozenset({"details"})
