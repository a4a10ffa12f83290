import pytest

from flowday import preflight


@pytest.fixture
def no_skip(monkeypatch) -> None:
    monkeypatch.delenv(preflight.ENV_SKIP, raising=False)


def test_skip_env_bypasses_checks(monkeypatch) -> None:
    monkeypatch.setenv(preflight.ENV_SKIP, "1")
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
    result = preflight.run_preflight()
    assert result.ok
    assert preflight.ENV_SKIP in result.message


def test_missing_display_fails(monkeypatch, no_skip) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
    result = preflight.run_preflight(check_deps=False)
    assert not result.ok
    assert "WAYLAND_DISPLAY" in result.message


def test_display_not_required_at_install_time(monkeypatch, no_skip) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
    assert preflight.run_preflight(require_display=False, check_deps=False).ok


def test_wayland_session_counts_as_display(monkeypatch, no_skip) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.setenv("WAYLAND_DISPLAY", "wayland-0")
    assert preflight.run_preflight(check_deps=False).ok


def test_or_die_exits(monkeypatch, no_skip, capsys) -> None:
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
    with pytest.raises(SystemExit) as exc:
        preflight.run_preflight_or_die(check_deps=False)
    assert exc.value.code == 1
    assert "preflight check failed" in capsys.readouterr().err
