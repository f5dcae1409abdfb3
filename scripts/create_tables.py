#!/usr/bin/env python3
"""Create the events, stores and ga4_settings tables for the Salla GA4 bridge."""

import os
import psycopg2
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

SQL = """
-- 1. stores (one row per Salla merchant)
CREATE TABLE IF NOT EXISTS stores (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    store_id VARCHAR(64) NOT NULL UNIQUE,
    status VARCHAR(20) NOT NULL DEFAULT 'installed',
    access_token TEXT,
    refresh_token TEXT,
    token_expires_at TIMESTAMPTZ,
    scope TEXT,
    installed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- 2. events (dedup key enforced here, not only by the pre-insert lookup)
CREATE TABLE IF NOT EXISTS events (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    event_id UUID NOT NULL,
    store_id VARCHAR(64) NOT NULL,
    external_id VARCHAR(255) NOT NULL,
    source VARCHAR(32) NOT NULL DEFAULT 'salla',
    type VARCHAR(100) NOT NULL,
    payload TEXT,
    status VARCHAR(20) NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'sent', 'failed', 'skipped')),
    retries INTEGER NOT NULL DEFAULT 0 CHECK (retries >= 0),
    last_attempt_at TIMESTAMPTZ,
    last_platform VARCHAR(32),
    last_http_status INTEGER,
    last_error VARCHAR(2000),
    last_response VARCHAR(5000),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE(store_id, external_id, type)
);
CREATE INDEX IF NOT EXISTS idx_events_store_created ON events(store_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_events_status ON events(status);

-- 3. ga4_settings
CREATE TABLE IF NOT EXISTS ga4_settings (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    store_id VARCHAR(64) NOT NULL UNIQUE,
    measurement_id VARCHAR(64) NOT NULL,
    api_secret TEXT NOT NULL,
    enabled BOOLEAN NOT NULL DEFAULT TRUE,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

def main():
    if not DATABASE_URL:
        print("Error: DATABASE_URL must be set in .env")
        raise SystemExit(1)

    print("Connecting to database...")
    conn = psycopg2.connect(DATABASE_URL)
    conn.autocommit = True
    cur = conn.cursor()

    print("Creating tables...")
    cur.execute(SQL)

    # Verify
    cur.execute("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public' ORDER BY table_name;")
    tables = cur.fetchall()
    print(f"\nTables present: {[t[0] for t in tables]}")

    cur.close()
    conn.close()
    print("\nDone!")

if __name__ == "__main__":
    main()
