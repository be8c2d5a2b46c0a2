import json
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from tubequeue.cli import cli

DOWNSTREAM_ENV = {
    "TUBE_API_URL": "http://tube.local/api/download/",
    "API_TOKEN": "secret",
    "POLL_INTERVAL_MS": "1000",
    "HEALTH_PATH": "/api/ping/",
}


@pytest.fixture
def env(tmp_path):
    return {
        "TUBEQUEUE_STORE": str(tmp_path / "queue.jsonl"),
        "TUBE_API_URL": None,
        "API_TOKEN": None,
        "POLL_INTERVAL_MS": None,
        "HEALTH_PATH": None,
        "TELEGRAM_TOKEN": None,
    }


def run(env, *args):
    return CliRunner().invoke(cli, list(args), env=env)


def test_enqueue_then_duplicate(env):
    res = run(env, "enqueue", "https://youtu.be/dQw4w9WgXcQ", "--origin", "cli")
    assert res.exit_code == 0, res.output
    assert "Queued dQw4w9WgXcQ" in res.output

    res = run(env, "enqueue", "dQw4w9WgXcQ")
    assert res.exit_code == 0
    assert "already queued" in res.output

    res = run(env, "status")
    assert json.loads(res.output) == {"pending": 1, "done": 0, "failed": 0}

    res = run(env, "list", "--status", "pending")
    assert "dQw4w9WgXcQ" in res.output and "origin=cli" in res.output


def test_enqueue_rejects_text_without_id(env):
    res = run(env, "enqueue", "hello")
    assert res.exit_code == 1
    assert "valid YouTube" in res.output


def test_empty_listing(env):
    assert "No jobs." in run(env, "list").output
    assert "No failed jobs." in run(env, "failed", "list").output


def test_drain_requires_downstream_config(env):
    res = run(env, "drain")
    assert res.exit_code == 1
    assert "Missing env vars" in res.output


def test_drain_delivers_and_notifies(env):
    env.update(DOWNSTREAM_ENV)
    run(env, "enqueue", "dQw4w9WgXcQ", "--origin", "42")

    session = Mock()
    session.get.return_value = Mock(status_code=200)
    session.post.return_value = Mock(status_code=201, text="")
    with patch("tubequeue.client.requests.Session", return_value=session):
        res = run(env, "drain")

    assert res.exit_code == 0, res.output
    assert "Download started for YouTube ID: dQw4w9WgXcQ" in res.output
    assert "Attempted 1 job(s)." in res.output
    assert json.loads(run(env, "status").output)["done"] == 1


def test_failed_retry_of_unknown_job(env):
    res = run(env, "failed", "retry", "dQw4w9WgXcQ")
    assert res.exit_code == 1
    assert "not found" in res.output


def test_config_get_masks_token(env):
    env.update(DOWNSTREAM_ENV)
    res = run(env, "config", "get")
    shown = json.loads(res.output)
    assert shown["api_token"] == "***"
    assert shown["poll_interval_ms"] == 1000
