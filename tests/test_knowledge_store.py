"""Tests for the pgvector knowledge store adapter with mocked Supabase."""

from unittest.mock import MagicMock, patch

import pytest

from app.db import knowledge_store


def _supabase_with_namespace(exists: bool) -> MagicMock:
    supabase = MagicMock()
    namespace_query = supabase.table.return_value.select.return_value.eq.return_value
    namespace_query.execute.return_value = MagicMock(
        data=[{"name": "owner_acme_knowledge"}] if exists else []
    )
    return supabase


def test_namespace_name_is_per_owner():
    assert knowledge_store.namespace_name("acme") == "owner_acme_knowledge"
    assert knowledge_store.namespace_name("a") != knowledge_store.namespace_name("b")


def test_namespace_name_requires_owner():
    with pytest.raises(ValueError):
        knowledge_store.namespace_name("")


def test_ensure_namespace_records_dimension_and_metric():
    supabase = MagicMock()

    with patch("app.db.knowledge_store.get_supabase", return_value=supabase):
        name = knowledge_store.ensure_namespace("acme")

    assert name == "owner_acme_knowledge"
    row = supabase.table.return_value.upsert.call_args[0][0]
    assert row["dimension"] == 1536
    assert row["metric"] == "cosine"


def test_upsert_records_rejects_wrong_dimension():
    supabase = MagicMock()

    with patch("app.db.knowledge_store.get_supabase", return_value=supabase):
        with pytest.raises(ValueError, match="dimension"):
            knowledge_store.upsert_records(
                "acme", [{"id": "r1", "embedding": [0.1] * 3, "text": "too short"}]
            )

    supabase.table.return_value.upsert.assert_not_called()


def test_upsert_records_tags_namespace():
    supabase = MagicMock()

    with patch("app.db.knowledge_store.get_supabase", return_value=supabase):
        count = knowledge_store.upsert_records(
            "acme",
            [{"id": "r1", "embedding": [0.1] * 1536, "text": "Hours 9-5", "chunk_index": 0}],
        )

    assert count == 1
    rows = supabase.table.return_value.upsert.call_args[0][0]
    assert rows[0]["namespace"] == "owner_acme_knowledge"
    assert rows[0]["owner_id"] == "acme"


def test_search_missing_namespace_returns_empty():
    supabase = _supabase_with_namespace(exists=False)

    with patch("app.db.knowledge_store.get_supabase", return_value=supabase):
        results = knowledge_store.search_records("acme", [0.1] * 1536, k=3)

    assert results == []
    supabase.rpc.assert_not_called()


def test_search_filters_by_namespace():
    supabase = _supabase_with_namespace(exists=True)
    supabase.rpc.return_value.execute.return_value = MagicMock(
        data=[{"id": "r1", "text": "Hours 9-5", "similarity": 0.9}]
    )

    with patch("app.db.knowledge_store.get_supabase", return_value=supabase):
        results = knowledge_store.search_records("acme", [0.1] * 1536, k=3)

    assert results[0]["id"] == "r1"
    name, params = supabase.rpc.call_args[0]
    assert name == "match_knowledge_records"
    assert params["filter_namespace"] == "owner_acme_knowledge"
    assert params["match_count"] == 3


def test_count_records_missing_namespace():
    supabase = _supabase_with_namespace(exists=False)

    with patch("app.db.knowledge_store.get_supabase", return_value=supabase):
        assert knowledge_store.count_records("acme") is None


def test_delete_records_skips_empty_list():
    supabase = MagicMock()

    with patch("app.db.knowledge_store.get_supabase", return_value=supabase):
        knowledge_store.delete_records("acme", [])

    supabase.table.assert_not_called()
