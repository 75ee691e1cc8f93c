"""SQLite database schema and models."""

SCHEMA = """
-- Every large transaction seen on the feed, one row per hash
CREATE TABLE IF NOT EXISTS whale_transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    transaction_hash TEXT NOT NULL UNIQUE,
    feed_id TEXT,
    blockchain TEXT NOT NULL,
    symbol TEXT NOT NULL,
    amount TEXT NOT NULL,
    amount_usd TEXT NOT NULL,
    from_address TEXT NOT NULL,
    from_owner TEXT,
    from_owner_type TEXT,
    to_address TEXT NOT NULL,
    to_owner TEXT,
    to_owner_type TEXT,
    transaction_type TEXT NOT NULL,
    transaction_timestamp TIMESTAMP NOT NULL,
    metadata TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Single-row checkpoint for the polling loop
CREATE TABLE IF NOT EXISTS polling_state (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_processed_timestamp TIMESTAMP NOT NULL,
    last_transaction_hash TEXT,
    transactions_processed INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    cycle_token TEXT,
    cycle_started_at TIMESTAMP,
    updated_at TIMESTAMP NOT NULL
);

-- Users and their access tier (maintained by the account layer)
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT,
    tier TEXT NOT NULL DEFAULT 'free'
);

-- Whale alert subscriptions, preferences stored as JSON
CREATE TABLE IF NOT EXISTS whale_alert_subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL UNIQUE,
    is_active INTEGER NOT NULL DEFAULT 1,
    notification_preferences TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- In-app notifications; read/archive flags are updated by the UI layer
CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    transaction_ref TEXT NOT NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    data TEXT,
    is_read INTEGER NOT NULL DEFAULT 0,
    is_archived INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_whale_tx_timestamp ON whale_transactions(transaction_timestamp);
CREATE INDEX IF NOT EXISTS idx_whale_tx_blockchain ON whale_transactions(blockchain);
CREATE INDEX IF NOT EXISTS idx_subscriptions_active ON whale_alert_subscriptions(is_active);
CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at);
"""
