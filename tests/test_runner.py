"""
Tests for the operation runner — fail-soft passes, optional handling,
idempotence, failure recording, and the end-to-end scenarios.
"""

import subprocess
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

from devboot.adapters.mock import MockProvider
from devboot.adapters.packages.native import NativePackageProvider
from devboot.adapters.registry import ProviderDispatch, default_dispatch
from devboot.core.config.settings import RunConfig, Settings
from devboot.core.engine.runner import OperationRunner, describe_operation
from devboot.core.models.component import Operation, ProviderKind
from devboot.core.models.result import ActionOutcome
from devboot.core.persistence.failure_log import FailureLogEntry
from devboot.core.services.registry import ComponentRegistry
from tests.factories import completed, custom, gallery, native

RUN = "devboot.core.engine.worker.subprocess.run"


def _runner(dispatch, recorder=None, **kwargs) -> OperationRunner:
    return OperationRunner(dispatch, recorder, privileged=False, **kwargs)


class TestRunnerBasics:
    def test_all_succeed(self, mock_dispatch):
        registry = ComponentRegistry([native("a"), native("b"), gallery("c")])
        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)

        assert summary.successes == ["a", "b", "c"]
        assert summary.failures == []
        assert summary.skipped == []
        assert summary.status == "ok"
        assert [r.component for r in summary.results] == ["a", "b", "c"]

    def test_runs_in_dependency_order(self, mock_dispatch, mock_native):
        registry = ComponentRegistry([native("b", depends_on=["a"]), native("a")])
        _runner(mock_dispatch).run(Operation.INSTALL, registry)
        checked = [name for name, action in mock_native.call_log if action == "check"]
        assert checked == ["a", "b"]

    def test_default_config(self, mock_dispatch):
        registry = ComponentRegistry([native("a")])
        summary = _runner(mock_dispatch).run(Operation.VALIDATE, registry)
        assert summary.operation == "validate"
        assert summary.failures == ["a"]   # mock reports it as not installed

    def test_prepare_called_for_kinds_in_use(self, mock_dispatch, mock_native):
        registry = ComponentRegistry([native("a")])
        _runner(mock_dispatch).run(Operation.UPDATE, registry)
        assert mock_native.prepared == [Operation.UPDATE]
        assert mock_dispatch.get(ProviderKind.GALLERY).prepared == []


class TestFailSoft:
    def test_single_failure_does_not_truncate(self, mock_dispatch, mock_native):
        mock_native.set_failure("b", "exit 1")
        registry = ComponentRegistry([native("a"), native("b"), native("c")])

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.successes == ["a", "c"]
        assert summary.failures == ["b"]
        assert summary.status == "partial"
        assert len(summary.results) == 3

    def test_raising_provider_does_not_truncate(self, mock_dispatch, mock_native):
        mock_native.set_raises("a", RuntimeError("kaboom"))
        registry = ComponentRegistry([native("a"), native("b")])

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.failures == ["a"]
        assert summary.successes == ["b"]
        assert summary.result_for("a").error == "kaboom"

    def test_dependency_failure_diagnostic(self, mock_dispatch, mock_native):
        mock_native.set_failure("fzf")
        mock_native.set_failure("PSFzf")
        registry = ComponentRegistry([native("fzf"), native("PSFzf", depends_on=["fzf"])])

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.result_for("PSFzf").diagnostics == ["dependency did not succeed: fzf"]

    def test_dependent_still_attempted(self, mock_dispatch, mock_native):
        mock_native.set_failure("fzf")
        registry = ComponentRegistry([native("fzf"), native("PSFzf", depends_on=["fzf"])])

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.successes == ["PSFzf"]
        assert summary.result_for("PSFzf").diagnostics == []


class TestOptional:
    def test_optional_failure_downgraded(self, mock_dispatch, mock_native):
        mock_native.set_failure("yazi")
        registry = ComponentRegistry([native("yazi", optional=True), native("fzf")])

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.failures == []
        assert summary.skipped == ["yazi (failed, optional)"]
        assert summary.all_ok

    def test_required_failure_not_downgraded(self, mock_dispatch, mock_native):
        mock_native.set_failure("yazi")
        registry = ComponentRegistry([native("yazi")])

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.failures == ["yazi"]
        assert summary.skipped == []

    def test_skip_optional(self, mock_dispatch, mock_native):
        registry = ComponentRegistry([native("yazi", optional=True), native("fzf")])
        config = RunConfig(skip_optional=True)

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry, config)
        assert summary.skipped == ["yazi (optional, skipped)"]
        assert summary.successes == ["fzf"]
        assert all(name != "yazi" for name, _ in mock_native.call_log)

    def test_unavailable_optional_backend_skipped_with_reason(self, mock_dispatch):
        mock_dispatch.register(MockProvider(
            kind=ProviderKind.NATIVE, available=False, optional_backend=True,
        ))
        registry = ComponentRegistry([native("lazygit")])

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.skipped == ["lazygit (mock native backend unavailable)"]
        assert summary.failures == []


class TestIdempotence:
    def test_second_install_is_all_satisfied(self, mock_dispatch, mock_native, recorder):
        registry = ComponentRegistry([native("a"), native("b"), native("c")])
        runner = _runner(mock_dispatch, recorder)

        first = runner.run(Operation.INSTALL, registry)
        work_after_first = mock_native.work_count
        second = runner.run(Operation.INSTALL, registry)

        assert first.already_satisfied == 0
        assert second.already_satisfied == 3
        assert second.successes == ["a", "b", "c"]
        assert mock_native.work_count == work_after_first
        assert recorder.entry_count() == 0


class TestFailureRecording:
    def test_required_failure_recorded(self, mock_dispatch, mock_native, recorder):
        mock_native.set_failure("fzf", "Access is denied.")
        registry = ComponentRegistry([native("fzf")])

        _runner(mock_dispatch, recorder).run(Operation.INSTALL, registry)
        [entry] = recorder.read_all()
        assert entry.component_name == "fzf"
        assert entry.provider_kind == "native"
        assert entry.operation == "install"
        assert entry.operation_description == "mock install fzf"
        assert entry.error_message == "Access is denied."
        assert entry.exit_code == 1
        assert entry.is_privileged is False
        assert "elevated" in entry.suggestion

    def test_description_synthesized_without_command(self, mock_dispatch, mock_native, recorder):
        mock_native.set_raises("fzf", RuntimeError("boom"))
        registry = ComponentRegistry([native("fzf")])

        _runner(mock_dispatch, recorder).run(Operation.UPDATE, registry)
        [entry] = recorder.read_all()
        assert entry.operation_description == "update fzf via native"

    def test_registry_hint_used_as_suggestion(self, mock_dispatch, mock_native, recorder):
        mock_native.set_failure("corp-tool", "weird")
        registry = ComponentRegistry([native("corp-tool", hint="Ask IT for a license key.")])

        _runner(mock_dispatch, recorder).run(Operation.INSTALL, registry)
        assert recorder.read_all()[0].suggestion == "Ask IT for a license key."

    def test_skipped_components_not_recorded(self, mock_dispatch, recorder):
        registry = ComponentRegistry([native("yazi", optional=True)])
        _runner(mock_dispatch, recorder).run(
            Operation.INSTALL, registry, RunConfig(skip_optional=True),
        )
        assert recorder.entry_count() == 0

    def test_no_recorder(self, mock_dispatch, mock_native):
        mock_native.set_failure("a")
        summary = _runner(mock_dispatch).run(Operation.INSTALL, ComponentRegistry([native("a")]))
        assert summary.failures == ["a"]

    def test_describe_operation(self):
        assert describe_operation(native("fzf"), Operation.INSTALL) == "install fzf via native"


class TestInterruptAndProgress:
    def test_keyboard_interrupt_stops_cleanly(self, mock_dispatch, mock_native):
        mock_native.set_raises("b", KeyboardInterrupt())
        registry = ComponentRegistry([native("a"), native("b"), native("c")])

        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.interrupted
        assert summary.status == "interrupted"
        assert summary.successes == ["a"]
        assert summary.result_for("c") is None

    def test_progress_callback(self, mock_dispatch):
        events = []

        def progress(index, total, component, result):
            events.append((index, total, component.name, result is None))

        registry = ComponentRegistry([native("a"), native("b")])
        _runner(mock_dispatch, progress=progress).run(Operation.INSTALL, registry)
        assert events == [
            (1, 2, "a", True), (1, 2, "a", False),
            (2, 2, "b", True), (2, 2, "b", False),
        ]

    def test_broken_progress_callback_ignored(self, mock_dispatch):
        def progress(*_):
            raise RuntimeError("terminal closed")

        registry = ComponentRegistry([native("a")])
        summary = _runner(mock_dispatch, progress=progress).run(Operation.INSTALL, registry)
        assert summary.successes == ["a"]


# ── Scenarios ────────────────────────────────────────────────────────


class TestScenarios:
    def test_three_present_native_packages(self, recorder):
        """Only the three presence checks run; nothing is installed."""
        components = [native(n, package_id=f"Vendor.{n}") for n in ("A", "B", "C")]
        registry = ComponentRegistry(components)
        dispatch = ProviderDispatch()
        dispatch.register(NativePackageProvider())

        def fake_run(cmd, **kwargs):
            return completed(cmd, stdout=f"Tool {cmd[3]} 1.0.0 winget\n")

        with patch("devboot.adapters.packages.native.shutil.which", return_value="winget"), \
                patch(RUN, side_effect=fake_run) as run:
            summary = _runner(dispatch, recorder).run(Operation.INSTALL, registry)

        assert summary.successes == ["A", "B", "C"]
        assert summary.failures == []
        assert summary.skipped == []
        assert run.call_count == 3
        assert all(c.args[0][1] == "list" for c in run.call_args_list)

    def test_optional_failure_still_logged(self, recorder):
        def install(ctx, **_):
            return ActionOutcome.failure("font download failed")

        registry = ComponentRegistry([custom("X", install, optional=True)])
        summary = _runner(default_dispatch(), recorder).run(
            Operation.INSTALL, registry, RunConfig(skip_optional=False),
        )

        assert summary.failures == []
        assert summary.skipped == ["X (failed, optional)"]
        [entry] = recorder.read_all()
        assert entry.component_name == "X"
        assert entry.error_message == "font download failed"

    def test_custom_exception_then_next_component(self, recorder):
        def explode(ctx, **_):
            raise RuntimeError("profile path is locked")

        def fine(ctx, **_):
            return True

        registry = ComponentRegistry([custom("boom", explode), custom("next", fine)])
        summary = _runner(default_dispatch(), recorder).run(Operation.INSTALL, registry)

        assert summary.result_for("boom").failed
        assert summary.result_for("boom").error == "profile path is locked"
        assert summary.successes == ["next"]

    def test_same_tool_under_two_kinds(self, mock_dispatch):
        registry = ComponentRegistry([
            native("fzf-native", package_id="junegunn.fzf"),
            gallery("fzf"),
        ])
        summary = _runner(mock_dispatch).run(Operation.INSTALL, registry)
        assert summary.successes == ["fzf-native", "fzf"]

    def test_native_install_timeout(self, recorder):
        registry = ComponentRegistry([native("slow", package_id="Vendor.Slow")])
        dispatch = ProviderDispatch()
        dispatch.register(NativePackageProvider(Settings(timeouts={"install": 60})))

        with patch("devboot.adapters.packages.native.shutil.which", return_value="winget"), \
                patch(RUN, side_effect=[
                    completed(returncode=1),
                    subprocess.TimeoutExpired(cmd="winget", timeout=60),
                ]):
            summary = _runner(dispatch, recorder).run(Operation.INSTALL, registry)

        assert summary.failures == ["slow"]
        result = summary.result_for("slow")
        assert result.timed_out
        assert "Timed out" in result.error
        [entry] = recorder.read_all()
        assert entry.exit_code == 124
        assert entry.suggestion is not None   # network/timeout category


class TestFailureLogEntryTimestamps:
    def test_recorded_entries_are_recent(self, mock_dispatch, mock_native, recorder):
        mock_native.set_failure("a")
        _runner(mock_dispatch, recorder).run(Operation.INSTALL, ComponentRegistry([native("a")]))
        [entry] = recorder.list_recent(7)
        assert isinstance(entry, FailureLogEntry)
        assert datetime.now(UTC) - entry.recorded_at < timedelta(minutes=5)
