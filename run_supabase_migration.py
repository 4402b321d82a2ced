#!/usr/bin/env python3
"""Check the relay's Supabase schema and print the SQL for anything missing."""
import sys
sys.path.insert(0, '.')

from app.db.supabase_client import get_supabase

REQUIRED_TABLES = [
    "chats",
    "chat_messages",
    "ai_chat_state",
    "knowledge_namespaces",
    "knowledge_records",
    "knowledge_qna",
    "knowledge_products",
    "knowledgebase",
    "chatui",
]

SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS vector;

CREATE TABLE IF NOT EXISTS chats (
    user_id TEXT PRIMARY KEY,
    owner_id TEXT,
    username TEXT,
    useremail TEXT,
    userphone TEXT,
    created_at TIMESTAMPTZ DEFAULT now(),
    last_seen TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS chat_messages (
    id BIGSERIAL PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES chats(user_id),
    seq INTEGER NOT NULL,
    origin TEXT NOT NULL CHECK (origin IN ('user', 'owner', 'ai')),
    text TEXT NOT NULL,
    ts BIGINT NOT NULL,
    owner_id TEXT,
    context_used BOOLEAN,
    sources JSONB,
    error BOOLEAN,
    UNIQUE (user_id, seq)
);

CREATE TABLE IF NOT EXISTS ai_chat_state (
    user_id TEXT PRIMARY KEY,
    ai_active BOOLEAN NOT NULL DEFAULT true,
    last_updated TIMESTAMPTZ DEFAULT now()
);

CREATE TABLE IF NOT EXISTS knowledge_namespaces (
    name TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    dimension INTEGER NOT NULL,
    metric TEXT NOT NULL DEFAULT 'cosine'
);

CREATE TABLE IF NOT EXISTS knowledge_records (
    id TEXT PRIMARY KEY,
    namespace TEXT NOT NULL REFERENCES knowledge_namespaces(name) ON DELETE CASCADE,
    owner_id TEXT NOT NULL,
    embedding vector(1536) NOT NULL,
    text TEXT NOT NULL,
    source_type TEXT,
    file_name TEXT,
    chunk_index INTEGER,
    total_chunks INTEGER,
    metadata JSONB DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ DEFAULT now()
);

CREATE OR REPLACE FUNCTION match_knowledge_records(
    query_embedding vector(1536),
    match_count INTEGER,
    filter_namespace TEXT
)
RETURNS TABLE (
    id TEXT,
    text TEXT,
    similarity FLOAT,
    source_type TEXT,
    file_name TEXT,
    chunk_index INTEGER,
    metadata JSONB
)
LANGUAGE sql STABLE AS $$
    SELECT r.id, r.text, 1 - (r.embedding <=> query_embedding) AS similarity,
           r.source_type, r.file_name, r.chunk_index, r.metadata
    FROM knowledge_records r
    WHERE r.namespace = filter_namespace
    ORDER BY r.embedding <=> query_embedding, r.created_at, r.id
    LIMIT match_count;
$$;

CREATE TABLE IF NOT EXISTS knowledge_qna (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    owner_id TEXT NOT NULL,
    question TEXT NOT NULL,
    answer TEXT NOT NULL,
    created_at TIMESTAMPTZ DEFAULT now(),
    updated_at TIMESTAMPTZ DEFAULT now()
);

CREATE TABLE IF NOT EXISTS knowledge_products (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT NOT NULL,
    created_at TIMESTAMPTZ DEFAULT now(),
    updated_at TIMESTAMPTZ DEFAULT now()
);

CREATE TABLE IF NOT EXISTS knowledgebase (
    owner_id TEXT PRIMARY KEY,
    company_website TEXT,
    updated_at TIMESTAMPTZ DEFAULT now()
);

CREATE TABLE IF NOT EXISTS chatui (
    owner_id TEXT PRIMARY KEY,
    settings JSONB DEFAULT '{}'::jsonb
);
"""


def check_schema():
    supabase = get_supabase()
    missing = []

    print("🔍 Checking chat relay tables...")
    for table in REQUIRED_TABLES:
        try:
            supabase.table(table).select("*").limit(1).execute()
            print(f"✅ {table}")
        except Exception as e:
            print(f"❌ {table}: {e}")
            missing.append(table)

    if missing:
        print("💡 Run this SQL in your Supabase SQL editor:")
        print(SCHEMA_SQL)
        sys.exit(1)

    print("✅ Schema looks complete!")

if __name__ == "__main__":
    check_schema()
