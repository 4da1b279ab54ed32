"""SQLite schema definitions."""

from typing import Final

CREATE_THREADS_TABLE: Final[str] = """
CREATE TABLE IF NOT EXISTS threads (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL DEFAULT '',
    model TEXT NOT NULL DEFAULT '',
    messages TEXT NOT NULL DEFAULT '[]',
    system_msg TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

# thread_id is a weak reference: no foreign key, rows survive thread deletion
CREATE_LOGS_TABLE: Final[str] = """
CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id INTEGER DEFAULT NULL,
    model TEXT NOT NULL DEFAULT '',
    engine TEXT NOT NULL DEFAULT '',
    input_tokens INTEGER NOT NULL DEFAULT 0,
    output_tokens INTEGER NOT NULL DEFAULT 0,
    total_tokens INTEGER NOT NULL DEFAULT 0,
    response_time REAL NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'success',
    error_message TEXT NOT NULL DEFAULT '',
    input_preview TEXT NOT NULL DEFAULT '',
    output_preview TEXT NOT NULL DEFAULT '',
    cost REAL DEFAULT 0,
    created_at TEXT NOT NULL
)
"""

CREATE_OPTIONS_TABLE: Final[str] = """
CREATE TABLE IF NOT EXISTS options (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

CREATE_INDEXES: Final[tuple[str, ...]] = (
    "CREATE INDEX IF NOT EXISTS idx_threads_updated ON threads(updated_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_logs_thread_id ON logs(thread_id)",
    "CREATE INDEX IF NOT EXISTS idx_logs_model ON logs(model)",
    "CREATE INDEX IF NOT EXISTS idx_logs_status ON logs(status)",
    "CREATE INDEX IF NOT EXISTS idx_logs_created_at ON logs(created_at DESC)",
)

# Migration for log tables created before cost tracking
ADD_COST_COLUMN: Final[str] = "ALTER TABLE logs ADD COLUMN cost REAL DEFAULT NULL"

LOG_COLUMNS: Final[str] = (
    "id, thread_id, model, engine, input_tokens, output_tokens, total_tokens, "
    "response_time, status, error_message, input_preview, output_preview, cost, created_at"
)

LOG_STATS: Final[str] = """
SELECT
    COUNT(*) AS total_calls,
    COALESCE(SUM(input_tokens), 0) AS total_input_tokens,
    COALESCE(SUM(output_tokens), 0) AS total_output_tokens,
    COALESCE(SUM(total_tokens), 0) AS total_tokens,
    COALESCE(AVG(response_time), 0) AS avg_response_time,
    COALESCE(SUM(CASE WHEN status = 'error' THEN 1 ELSE 0 END), 0) AS total_errors,
    COALESCE(SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END), 0) AS total_success,
    COALESCE(SUM(cost), 0) AS total_cost
FROM logs
"""

LOG_STATS_BY_MODEL: Final[str] = """
SELECT
    model,
    engine,
    COUNT(*) AS calls,
    COALESCE(SUM(total_tokens), 0) AS tokens,
    COALESCE(AVG(response_time), 0) AS avg_time,
    COALESCE(SUM(cost), 0) AS total_cost
FROM logs
GROUP BY model, engine
ORDER BY calls DESC
"""
