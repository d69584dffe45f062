"""
Chair Tracker Database Schema
A single key-value table holding the JSON-serialized clinic collections.
"""

SCHEMA = """
-- =============================================================================
-- KV_STORE - One row per collection (patients, chairs, visit_history, counter)
-- =============================================================================
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,

    -- JSON array, or a decimal integer string for the visit counter
    value TEXT NOT NULL,

    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""
