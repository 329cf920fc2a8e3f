from __future__ import annotations

import pytest

from main import build_parser, main, run


def invoke(store, *argv):
    return run(build_parser().parse_args(list(argv)), store)


def test_set_check_delete_exit_codes(store):
    assert invoke(store, "check", "scrub", "hdd", "paused") == 1
    assert invoke(store, "set", "scrub", "hdd", "paused", "--ttl", "60") == 0
    assert invoke(store, "check", "scrub", "hdd", "paused") == 0
    assert invoke(store, "delete", "scrub", "hdd", "paused") == 0
    assert invoke(store, "check", "scrub", "hdd", "paused") == 1


def test_ping(store, fake_redis, capsys):
    assert invoke(store, "ping") == 0
    assert "PONG" in capsys.readouterr().out

    fake_redis.up = False
    assert invoke(store, "ping") == 1


def test_list_output(store, capsys):
    store.set_state("test", "hdd", "paused", 60)
    assert invoke(store, "list", "test") == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Current notification states in Redis:"
    assert lines[1].startswith("  ceph:notifications:test:hdd:paused = ")
    assert lines[1].endswith("s)")


def test_list_unreachable(store, fake_redis, capsys):
    fake_redis.up = False
    assert invoke(store, "list") == 1
    assert capsys.readouterr().out == ""


def test_cleanup_reports_count(store, fake_redis, capsys):
    fake_redis.set("ceph:notifications:old:hdd:paused", "1")
    assert invoke(store, "cleanup") == 0
    assert "Added TTL to 1 Redis keys that were missing expiration" in capsys.readouterr().out

    assert invoke(store, "cleanup") == 0
    assert capsys.readouterr().out == ""


def test_self_test_command(store, capsys):
    assert invoke(store, "test") == 0
    assert "✅ Redis connection successful" in capsys.readouterr().out


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_list_fails_when_scan_breaks(store, fake_redis, capsys):
    store.set_state("test", "hdd", "paused", 60)
    fake_redis.fail_reads = True
    assert invoke(store, "list") == 1
    assert capsys.readouterr().out == "Current notification states in Redis:\n"


def test_invalid_log_level_is_reported(monkeypatch, capsys):
    monkeypatch.setenv("LOG_LEVEL", "loud")
    with pytest.raises(SystemExit) as excinfo:
        main(["ping"])
    assert excinfo.value.code == 2
    assert "LOG_LEVEL" in capsys.readouterr().err
