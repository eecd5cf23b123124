"""
Tests for CLI commands — operations, inspection, failure log, prompts.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from devboot.core.persistence.failure_log import FailureLogEntry, FailureRecorder
from devboot.core.services.prerequisites import PrerequisiteError
from devboot.main import cli
from devboot.ui.cli.prompts import NON_INTERACTIVE_ENV, confirm_reload, is_interactive, reload_shell

REGISTRY = """\
    settings:
      reload_command: [pwsh, -NoLogo]
    components:
      - name: fzf
        native: {package_id: junegunn.fzf}
      - name: PSFzf
        depends_on: [fzf]
        gallery: {module_name: PSFzf}
      - name: yazi
        optional: true
        native: {package_id: sxyazi.yazi}
      - name: nerd-font
        optional: true
        default_variant: Meslo
        custom:
          install: run_command
          validate: command_succeeds
          args: {command: [oh-my-posh, font, install, meslo]}
        variants:
          Meslo: {command: [oh-my-posh, font, install, meslo]}
          FiraCode: {command: [oh-my-posh, font, install, FiraCode]}
"""


@pytest.fixture
def state_dir(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "state"
    monkeypatch.setenv("DEVBOOT_STATE_DIR", str(path))
    monkeypatch.delenv("DEVBOOT_COMPONENTS", raising=False)
    monkeypatch.delenv("DEVBOOT_LOG_FILE", raising=False)
    return path


@pytest.fixture
def registry_file(write_components) -> Path:
    return write_components(REGISTRY)


@pytest.fixture
def host(monkeypatch, mock_dispatch, state_dir):
    """Mock providers in place of the real ones, prerequisites satisfied."""
    monkeypatch.setattr(
        "devboot.core.use_cases.run.default_dispatch", lambda settings=None: mock_dispatch,
    )
    monkeypatch.setattr(
        "devboot.core.use_cases.run.check_prerequisites", lambda kinds, settings: None,
    )
    return mock_dispatch


def _invoke(*args: str):
    return CliRunner().invoke(cli, list(args))


class TestCLIGlobal:
    def test_help(self):
        result = _invoke("--help")
        assert result.exit_code == 0
        assert "install, validate and update" in result.output
        for command in ("install", "validate", "update", "failures", "components", "history"):
            assert command in result.output

    def test_version(self):
        result = _invoke("--version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_no_command_prints_help(self, state_dir):
        result = _invoke()
        assert result.exit_code == 0
        assert "Usage" in result.output


# ── Operations ───────────────────────────────────────────────────────


class TestInstall:
    def test_all_ok(self, host, registry_file):
        result = _invoke("-c", str(registry_file), "install", "--non-interactive")
        assert result.exit_code == 0
        assert "Result: install ok" in result.output
        assert "[1/4] ✓ fzf" in result.output

    def test_second_run_already_satisfied(self, host, registry_file):
        _invoke("-c", str(registry_file), "install", "--non-interactive")
        result = _invoke("-c", str(registry_file), "install", "--non-interactive")
        assert result.exit_code == 0
        assert result.output.count("already satisfied") == 4

    def test_required_failure_exits_1(self, host, mock_native, registry_file, state_dir):
        mock_native.set_failure("fzf", "No package found matching input criteria.")
        result = _invoke("-c", str(registry_file), "install", "--non-interactive")
        assert result.exit_code == 1
        assert "Failed (1)" in result.output
        assert "devboot failures show" in result.output
        assert FailureRecorder(state_dir=state_dir).entry_count() == 1

    def test_optional_failure_exits_0(self, host, mock_native, registry_file):
        mock_native.set_failure("yazi")
        result = _invoke("-c", str(registry_file), "install", "--non-interactive")
        assert result.exit_code == 0
        assert "yazi (failed, optional)" in result.output

    def test_skip_optional(self, host, registry_file):
        result = _invoke("-c", str(registry_file), "install", "--skip-optional", "--non-interactive")
        assert result.exit_code == 0
        assert "yazi (optional, skipped)" in result.output
        assert "nerd-font (optional, skipped)" in result.output

    def test_variant(self, host, registry_file):
        result = _invoke(
            "-c", str(registry_file), "install", "--variant", "nerd-font=FiraCode",
            "--non-interactive",
        )
        assert result.exit_code == 0
        assert "nerd-font [FiraCode]" in result.output

    def test_bad_variant_format(self, host, registry_file):
        result = _invoke("-c", str(registry_file), "install", "--variant", "nerd-font")
        assert result.exit_code == 2
        assert "NAME=FLAVOR" in result.output

    def test_unknown_variant_is_config_error(self, host, registry_file):
        result = _invoke("-c", str(registry_file), "install", "--variant", "nerd-font=Comic")
        assert result.exit_code == 2
        assert "Unknown variant 'Comic'" in result.output

    def test_missing_registry(self, host, tmp_path: Path):
        result = _invoke("-c", str(tmp_path / "nope.yml"), "install")
        assert result.exit_code == 2
        assert "Components file not found" in result.output

    def test_scalar_provider_block_is_config_error(self, host, write_components):
        path = write_components("""\
            components:
              - name: oh-my-posh
                native: JanDeDobbeleer.OhMyPosh
        """, name="scalar.yml")
        result = _invoke("-c", str(path), "install")
        assert result.exit_code == 2
        assert "'native' must be a mapping" in result.output

    def test_prerequisite_error(self, host, registry_file, monkeypatch):
        def fail(kinds, settings):
            raise PrerequisiteError("'winget' not found on PATH", remediation="Install App Installer")

        monkeypatch.setattr("devboot.core.use_cases.run.check_prerequisites", fail)
        result = _invoke("-c", str(registry_file), "install")
        assert result.exit_code == 2
        assert "❌ 'winget' not found on PATH" in result.output
        assert "→ Install App Installer" in result.output

    def test_json_output(self, host, registry_file):
        result = _invoke("-c", str(registry_file), "install", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["exit_code"] == 0
        assert data["summary"]["successes"] == ["fzf", "PSFzf", "yazi", "nerd-font"]


class TestReloadPrompt:
    def test_non_interactive_does_not_reload(self, host, registry_file):
        with patch("devboot.ui.cli.prompts.reload_shell") as reload:
            result = _invoke("-c", str(registry_file), "install", "--non-interactive")
        assert result.exit_code == 0
        reload.assert_not_called()

    def test_yes_reloads(self, host, registry_file):
        with patch("devboot.ui.cli.prompts.reload_shell", return_value=0) as reload:
            result = _invoke("-c", str(registry_file), "install", "--yes")
        assert result.exit_code == 0
        reload.assert_called_once_with(["pwsh", "-NoLogo"])

    def test_no_reload_after_failure(self, host, mock_native, registry_file):
        mock_native.set_failure("fzf")
        with patch("devboot.ui.cli.prompts.reload_shell") as reload:
            _invoke("-c", str(registry_file), "install", "--yes")
        reload.assert_not_called()

    def test_no_reload_for_validate(self, host, registry_file):
        with patch("devboot.ui.cli.prompts.reload_shell") as reload:
            _invoke("-c", str(registry_file), "validate", "--yes")
        reload.assert_not_called()


class TestValidateAndUpdate:
    def test_validate_reports_missing(self, host, registry_file):
        result = _invoke("-c", str(registry_file), "validate")
        assert result.exit_code == 1
        assert "fzf is not installed" in result.output

    def test_validate_after_install(self, host, registry_file):
        _invoke("-c", str(registry_file), "install", "--non-interactive")
        result = _invoke("-c", str(registry_file), "validate")
        assert result.exit_code == 0

    def test_update(self, host, registry_file):
        result = _invoke("-c", str(registry_file), "update")
        assert result.exit_code == 0
        assert "Result: update ok" in result.output


# ── Inspection ───────────────────────────────────────────────────────


class TestComponents:
    def test_lists_in_order(self, state_dir, registry_file):
        result = _invoke("-c", str(registry_file), "components")
        assert result.exit_code == 0
        assert "Components (4)" in result.output
        assert "1. fzf [native]" in result.output
        assert "depends on: fzf" in result.output
        assert "nerd-font [Meslo] [custom] (optional)" in result.output

    def test_json(self, state_dir, registry_file):
        result = _invoke("-c", str(registry_file), "components", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [c["name"] for c in data] == ["fzf", "PSFzf", "yazi", "nerd-font"]
        assert data[1]["kind"] == "gallery"

    def test_invalid_registry(self, state_dir, write_components):
        path = write_components("components: {not: a list}\n", name="bad.yml")
        result = _invoke("-c", str(path), "components")
        assert result.exit_code == 2
        assert "must be a list" in result.output

    def test_cycle(self, state_dir, write_components):
        path = write_components("""\
            components:
              - name: a
                depends_on: [b]
                native: {package_id: A}
              - name: b
                depends_on: [a]
                native: {package_id: B}
        """, name="cycle.yml")
        result = _invoke("-c", str(path), "components")
        assert result.exit_code == 2


class TestHistory:
    def test_empty(self, state_dir, registry_file):
        result = _invoke("-c", str(registry_file), "history")
        assert result.exit_code == 0
        assert "No runs recorded yet." in result.output

    def test_after_runs(self, host, mock_native, registry_file):
        _invoke("-c", str(registry_file), "install", "--non-interactive")
        mock_native.set_failure("fzf")
        _invoke("-c", str(registry_file), "update")

        result = _invoke("-c", str(registry_file), "history")
        assert result.exit_code == 0
        assert "install" in result.output
        assert "failed: fzf" in result.output

    def test_json(self, host, registry_file):
        _invoke("-c", str(registry_file), "install", "--non-interactive")
        result = _invoke("-c", str(registry_file), "history", "--json")
        [record] = json.loads(result.stdout)
        assert record["operation"] == "install"
        assert record["status"] == "ok"


# ── Failure log ──────────────────────────────────────────────────────


def _seed_failure(state_dir: Path) -> FailureRecorder:
    recorder = FailureRecorder(state_dir=state_dir)
    recorder.record(FailureLogEntry(
        component_name="PSFzf",
        provider_kind="gallery",
        operation="install",
        operation_description="Install-Module -Name PSFzf",
        error_message="Unable to find module PSFzf",
        exit_code=1,
        suggestion="Register the gallery.",
    ))
    return recorder


class TestFailuresCommands:
    def test_show_empty(self, state_dir, registry_file):
        result = _invoke("-c", str(registry_file), "failures", "show")
        assert result.exit_code == 0
        assert "No failures recorded in the last 7 days" in result.output

    def test_show(self, state_dir, registry_file):
        _seed_failure(state_dir)
        result = _invoke("-c", str(registry_file), "failures", "show")
        assert result.exit_code == 0
        assert "✗ PSFzf" in result.output
        assert "1 failure," in result.output
        assert "Install-Module -Name PSFzf" in result.output
        assert "Unable to find module PSFzf (exit 1)" in result.output
        assert "💡 Register the gallery." in result.output

    def test_show_json(self, state_dir, registry_file):
        _seed_failure(state_dir)
        result = _invoke("-c", str(registry_file), "failures", "show", "--json")
        [group] = json.loads(result.stdout)
        assert group["component"] == "PSFzf"
        assert group["count"] == 1
        assert group["latest"]["suggestion"] == "Register the gallery."

    def test_clear(self, state_dir, registry_file):
        recorder = _seed_failure(state_dir)
        result = _invoke("-c", str(registry_file), "failures", "clear")
        assert result.exit_code == 0
        assert "Cleared 1 failure log entries" in result.output
        assert recorder.entry_count() == 0

    def test_global_show_failures_flag(self, state_dir, registry_file):
        _seed_failure(state_dir)
        result = _invoke("-c", str(registry_file), "--show-failures")
        assert result.exit_code == 0
        assert "✗ PSFzf" in result.output

    def test_global_clear_failures_flag(self, state_dir, registry_file):
        recorder = _seed_failure(state_dir)
        result = _invoke("-c", str(registry_file), "--clear-failures")
        assert result.exit_code == 0
        assert recorder.entry_count() == 0

    def test_works_with_broken_registry(self, state_dir, write_components):
        _seed_failure(state_dir)
        path = write_components("components: 42\n", name="broken.yml")
        result = _invoke("-c", str(path), "failures", "show")
        assert result.exit_code == 0
        assert "PSFzf" in result.output


# ── Prompts ──────────────────────────────────────────────────────────


class TestPrompts:
    def test_flag_disables_prompts(self):
        assert is_interactive(non_interactive=True) is False

    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_env_disables_prompts(self, monkeypatch, value):
        monkeypatch.setenv(NON_INTERACTIVE_ENV, value)
        assert is_interactive() is False

    def test_non_tty_is_not_interactive(self, monkeypatch):
        monkeypatch.delenv(NON_INTERACTIVE_ENV, raising=False)
        with patch("devboot.ui.cli.prompts.sys.stdin") as stdin:
            stdin.isatty.return_value = False
            assert is_interactive() is False

    def test_yes_wins(self):
        assert confirm_reload(assume_yes=True, non_interactive=True) is True

    def test_non_interactive_answers_no(self):
        with patch("devboot.ui.cli.prompts.click.confirm") as confirm:
            assert confirm_reload(non_interactive=True) is False
        confirm.assert_not_called()

    def test_interactive_asks(self, monkeypatch):
        monkeypatch.setattr("devboot.ui.cli.prompts.is_interactive", lambda non_interactive: True)
        with patch("devboot.ui.cli.prompts.click.confirm", return_value=True) as confirm:
            assert confirm_reload() is True
        confirm.assert_called_once_with("Reload shell now?", default=False)

    def test_reload_shell_missing_executable(self):
        with patch("devboot.ui.cli.prompts.subprocess.run", side_effect=FileNotFoundError("pwsh")):
            assert reload_shell(["pwsh"]) == 127
