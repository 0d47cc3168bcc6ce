"""Tests for database layer."""

import os
from unittest.mock import MagicMock, patch

import pytest

from stayledger.infra.db import get_conn, txn


class TestGetConnPasswordFallback:
    """DB_PASSWORD fallback in get_conn(), no real DB needed."""

    @pytest.mark.parametrize(
        "dsn",
        ["dbname=db user=u host=h port=5432", "postgres://u@h/db"],
    )
    def test_fallback_when_dsn_has_no_password(self, dsn):
        env = {"DATABASE_URL": dsn, "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("stayledger.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(dsn, password="from-env")

    @pytest.mark.parametrize(
        "dsn",
        ["dbname=db user=u password=from-dsn host=h", "postgres://u:p@h/db"],
    )
    def test_not_used_when_dsn_has_password(self, dsn):
        env = {"DATABASE_URL": dsn, "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("stayledger.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(dsn)

    def test_no_db_password_env(self):
        with patch.dict(os.environ, {"DATABASE_URL": "dbname=db user=u host=h"}, clear=True), \
             patch("stayledger.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("dbname=db user=u host=h")

    def test_raises_without_database_url(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DATABASE_URL"):
                get_conn()


class TestTxnMocked:
    def test_commits_and_closes_owned_connection(self):
        conn = MagicMock()
        with patch("stayledger.infra.db.get_conn", return_value=conn):
            with txn() as cur:
                cur.execute("SELECT 1")

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_called_once()

    def test_rolls_back_on_error(self):
        conn = MagicMock()
        with patch("stayledger.infra.db.get_conn", return_value=conn):
            with pytest.raises(ValueError):
                with txn():
                    raise ValueError("boom")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        conn.close.assert_called_once()

    def test_borrowed_connection_left_open(self):
        conn = MagicMock()
        with txn(conn):
            pass

        conn.commit.assert_called_once()
        conn.close.assert_not_called()


# Skip integration tests if DATABASE_URL is not set
_skip_no_db = pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"),
    reason="DATABASE_URL not set - skipping DB integration tests",
)


@_skip_no_db
class TestTxn:
    """Tests for txn() against a real database."""

    def test_commits_on_success(self):
        conn = get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("CREATE TEMP TABLE test_txn (id serial, val text)")
            conn.commit()

            with txn(conn) as cur:
                cur.execute("INSERT INTO test_txn (val) VALUES (%s)", ("test",))

            with conn.cursor() as cur:
                cur.execute("SELECT val FROM test_txn")
                assert cur.fetchone()[0] == "test"
        finally:
            conn.close()

    def test_rollback_on_exception(self):
        conn = get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("CREATE TEMP TABLE test_rollback (id serial, val text)")
            conn.commit()

            with pytest.raises(ValueError):
                with txn(conn) as cur:
                    cur.execute("INSERT INTO test_rollback (val) VALUES (%s)", ("bad",))
                    raise ValueError("rollback test")

            with conn.cursor() as cur:
                cur.execute("SELECT count(*) FROM test_rollback")
                assert cur.fetchone()[0] == 0
        finally:
            conn.close()
