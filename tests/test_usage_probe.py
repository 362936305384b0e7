"""Tests for claude_usage_monitor.services.usage_probe."""

import asyncio
import logging
import sys
from datetime import datetime

import pytest

from claude_usage_monitor.errors import CommandTimeoutError, ExecutionFailedError, NotInstalledError
from claude_usage_monitor.services import usage_probe as probe_module
from claude_usage_monitor.services.usage_probe import UsageProbe, default_candidate_paths, parse_usage_output


def make_executable(path, body=""):
    path.write_text(f"#!{sys.executable}\n{body}")
    path.chmod(0o755)
    return path


@pytest.fixture
def install(tmp_path):
    """A fake claude binary, wrapper script and expect interpreter."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    claude = make_executable(bin_dir / "claude")
    script = tmp_path / "claude-usage.exp"
    script.write_text("# wrapper\n")
    return tmp_path, str(claude), script


def make_probe(install, expect_body, timeout=10.0, config=None):
    root, claude, script = install
    expect = make_executable(root / "expect", expect_body)
    return UsageProbe(
        config=config,
        timeout=timeout,
        script_path=script,
        candidate_paths=[claude],
        expect_paths=[str(expect)],
    )


# ---------------------------------------------------------------------------
# 1. Output grammar
# ---------------------------------------------------------------------------

def test_parse_usage_output(probe_output_path):
    fetched = datetime(2025, 12, 10, 9, 0).astimezone()
    result = parse_usage_output(probe_output_path.read_text(), fetched_at=fetched)

    assert result.session_used_percent == 8
    assert result.session_reset_time == "4:59pm (KST)"
    assert result.weekly_used_percent == 52
    assert result.weekly_reset_time == "Dec 16, 10:59am (KST)"
    assert result.session_remaining_percent == 92
    assert result.weekly_remaining_percent == 48
    assert result.fetched_at == fetched
    assert result.error_message is None


def test_parse_usage_output_tolerates_noise():
    text = "\r\n  SESSION_USED : 15 \r\nGARBAGE\nUNKNOWN_KEY:1\nWEEKLY_USED:abc\n"
    result = parse_usage_output(text)

    assert result.session_used_percent == 15
    assert result.weekly_used_percent == 0
    assert result.session_reset_time is None


def test_parse_usage_output_clamps_remaining():
    result = parse_usage_output("SESSION_USED:130\nWEEKLY_USED:100\n")
    assert result.session_remaining_percent == 0
    assert result.weekly_remaining_percent == 0


def test_both_zero_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="claude_usage_monitor.services.usage_probe"):
        result = parse_usage_output("SESSION_USED:0\nWEEKLY_USED:0\n")

    assert result.session_used_percent == result.weekly_used_percent == 0
    assert any("No usage percentages" in r.message for r in caplog.records)


def test_error_line_recorded():
    result = parse_usage_output("ERROR:usage figures not found\n")
    assert result.error_message == "usage figures not found"


def test_reset_times_resolve(probe_output_path):
    result = parse_usage_output(probe_output_path.read_text())
    now = datetime(2025, 12, 10, 12, 0).astimezone()

    assert result.session_reset_at(now) == datetime(2025, 12, 10, 16, 59).astimezone()
    assert result.weekly_reset_at(now) == datetime(2025, 12, 16, 10, 59).astimezone()


# ---------------------------------------------------------------------------
# 2. Executable resolution
# ---------------------------------------------------------------------------

def test_default_candidates_start_with_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("CLAUDE_USAGE_CLI_PATH", "/opt/custom/claude")
    monkeypatch.setenv("HOME", str(tmp_path))

    paths = default_candidate_paths()

    assert paths[0] == "/opt/custom/claude"
    assert paths[1] == str(tmp_path / ".claude" / "local" / "claude")
    assert paths[-1] == "/usr/bin/claude"
    assert "which" not in " ".join(paths)


def test_candidates_checked_in_order(tmp_path):
    first = make_executable(tmp_path / "first")
    second = make_executable(tmp_path / "second")
    probe = UsageProbe(candidate_paths=[str(tmp_path / "missing"), str(first), str(second)])

    assert probe.resolve_executable() == str(first)


def test_unresolved_returns_none(tmp_path):
    probe = UsageProbe(candidate_paths=[str(tmp_path / "missing")])
    assert probe.resolve_executable() is None


def test_persisted_path_preferred(config, tmp_path):
    persisted = make_executable(tmp_path / "persisted")
    candidate = make_executable(tmp_path / "candidate")
    config.set_cached_executable_path(str(persisted))

    probe = UsageProbe(config=config, candidate_paths=[str(candidate)])

    assert probe.resolve_executable() == str(persisted)


def test_stale_persisted_path_discarded(config, tmp_path):
    candidate = make_executable(tmp_path / "candidate")
    config.set_cached_executable_path(str(tmp_path / "uninstalled"))

    probe = UsageProbe(config=config, candidate_paths=[str(candidate)])

    assert probe.resolve_executable() == str(candidate)
    assert config.cached_executable_path() == str(candidate)


def test_memory_cache_and_reset(config, tmp_path):
    first = make_executable(tmp_path / "first")
    second = make_executable(tmp_path / "second")
    candidates = [str(first)]
    probe = UsageProbe(config=config, candidate_paths=candidates)

    assert probe.resolve_executable() == str(first)
    candidates.insert(0, str(second))
    # Cached value wins while it still exists
    assert probe.resolve_executable() == str(first)

    probe.reset_executable_path()
    assert config.cached_executable_path() is None


def test_memory_cache_dropped_when_binary_removed(tmp_path):
    first = make_executable(tmp_path / "first")
    probe = UsageProbe(candidate_paths=[str(first)])
    assert probe.resolve_executable() == str(first)

    first.unlink()
    assert probe.resolve_executable() is None


def test_is_available(install, tmp_path):
    root, claude, script = install
    expect = make_executable(root / "expect")

    assert UsageProbe(script_path=script, candidate_paths=[claude], expect_paths=[str(expect)]).is_available()
    assert not UsageProbe(script_path=script, candidate_paths=[], expect_paths=[str(expect)]).is_available()
    assert not UsageProbe(script_path=root / "nope.exp", candidate_paths=[claude], expect_paths=[str(expect)]).is_available()
    assert not UsageProbe(script_path=script, candidate_paths=[claude], expect_paths=[str(root / "no-expect")]).is_available()


def test_bundled_script_exists():
    assert probe_module.USAGE_SCRIPT.is_file()


# ---------------------------------------------------------------------------
# 3. fetch_usage
# ---------------------------------------------------------------------------

def test_fetch_usage(install, tmp_path):
    env_file = tmp_path / "env.txt"
    body = (
        "import os, sys\n"
        f"open({str(env_file)!r}, 'w').write(os.environ['CLAUDE_USAGE_CLI_PATH'] + '|' + sys.argv[2])\n"
        "print('SESSION_USED:8')\n"
        "print('SESSION_RESET:4:59pm (KST)')\n"
        "print('WEEKLY_USED:52', file=sys.stderr)\n"
        "print('WEEKLY_RESET:Dec 16, 10:59am (KST)', file=sys.stderr)\n"
    )
    probe = make_probe(install, body)
    _, claude, _ = install

    result = asyncio.run(probe.fetch_usage())

    assert result.session_used_percent == 8
    assert result.weekly_used_percent == 52
    assert result.weekly_reset_time == "Dec 16, 10:59am (KST)"
    assert env_file.read_text() == f"{claude}|{claude}"


def test_fetch_usage_not_installed(install):
    root, _, script = install
    probe = UsageProbe(script_path=script, candidate_paths=[str(root / "missing")])

    with pytest.raises(NotInstalledError):
        asyncio.run(probe.fetch_usage())


def test_fetch_usage_error_line(install):
    probe = make_probe(install, "print('ERROR:claude prompt did not appear')\nraise SystemExit(3)\n")

    with pytest.raises(ExecutionFailedError) as excinfo:
        asyncio.run(probe.fetch_usage())
    assert excinfo.value.reason == "claude prompt did not appear"


def test_fetch_usage_nonzero_exit_without_output(install):
    probe = make_probe(install, "raise SystemExit(2)\n")

    with pytest.raises(ExecutionFailedError) as excinfo:
        asyncio.run(probe.fetch_usage())
    assert "exited with 2" in excinfo.value.reason


def test_fetch_usage_keeps_figures_despite_exit_code(install):
    probe = make_probe(install, "print('SESSION_USED:20')\nprint('WEEKLY_USED:30')\nraise SystemExit(1)\n")

    result = asyncio.run(probe.fetch_usage())

    assert (result.session_used_percent, result.weekly_used_percent) == (20, 30)


def test_fetch_usage_timeout(install):
    probe = make_probe(install, "import time\ntime.sleep(30)\n", timeout=0.5)

    with pytest.raises(CommandTimeoutError):
        asyncio.run(probe.fetch_usage())
