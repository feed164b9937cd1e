"""
Tests for the step executor.

Covers:
1. Precondition and conflict outcomes with zero side effects
2. Step failure truncation (completed steps 1..k-1, failed step k)
3. Failure mapping per step kind
4. Option validation before any work
5. Progress callbacks and package manager rendering
"""

import pytest

from conftest import FakeRunner, SpyWriter, read_manifest, write_manifest
from stackforge.artifacts import Artifact, static
from stackforge.catalog import default_registry
from stackforge.errors import (
    ArtifactWriteError,
    CommandExecutionError,
    ConflictError,
    InvalidOptionsError,
    ManifestPatchError,
    PreconditionError,
    UnknownFeatureError,
)
from stackforge.executor import ExecutionResult, FeatureStatus, Outcome, StepExecutor
from stackforge.features import FeatureDescriptor, FeatureRegistry, run_commands, write
from stackforge.project_state import HAS_BASE_PROJECT, HAS_DATABASE, scan_project


def _executor(runner=None, writer=None, package_manager="pnpm", registry=None):
    return StepExecutor(
        registry or default_registry(),
        runner=runner or FakeRunner(),
        writer=writer or SpyWriter(),
        package_manager=package_manager,
    )


def _step_indices(result: ExecutionResult):
    return [step.step_index for step in result.completed_steps]


class TestValidationOutcomes:
    """Rejected features never run a step."""

    def test_missing_base_project(self, project):
        runner, writer = FakeRunner(), SpyWriter()
        result = _executor(runner, writer).run("database", project)

        assert result.outcome == Outcome.PRECONDITION_FAILED
        assert isinstance(result.error, PreconditionError)
        assert result.error.missing == HAS_BASE_PROJECT
        assert result.completed_steps == ()
        assert result.failed_step is None
        assert runner.calls == []
        assert writer.paths == []

    def test_already_installed_database(self, project):
        write_manifest(project, {"dependencies": {"next": "15", "drizzle-orm": "0.36"}})
        (project / "drizzle.config.ts").write_text("export default {}\n")
        runner, writer = FakeRunner(), SpyWriter()

        result = _executor(runner, writer).run("database", project)

        assert result.outcome == Outcome.CONFLICT
        assert isinstance(result.error, ConflictError)
        assert result.error.conflict_flag == HAS_DATABASE
        assert result.completed_steps == ()
        assert runner.calls == []
        assert writer.paths == []

    def test_rejection_reports_total_steps(self, project):
        result = _executor().run("database", project)
        assert result.total_steps == 6
        assert result.status == FeatureStatus.REJECTED

    def test_unknown_feature_raises(self, project):
        with pytest.raises(UnknownFeatureError):
            _executor().run("blog", project)

    def test_invalid_options_raise_before_scanning(self, base_project):
        runner = FakeRunner()
        with pytest.raises(InvalidOptionsError):
            _executor(runner).run("database", base_project, {"provider": "oracle"})
        assert runner.calls == []
        assert not (base_project / "drizzle.config.ts").exists()


class TestStepFailure:
    """The first failing step ends the feature and nothing is rolled back."""

    def test_failure_at_step_four(self, base_project):
        writer = SpyWriter(fail_on="lib/db/index.ts")
        result = _executor(writer=writer).run("database", base_project)

        assert result.outcome == Outcome.STEP_FAILED
        assert _step_indices(result) == [1, 2, 3]
        assert result.failed_step.step_index == 4
        assert result.failed_step.succeeded is False
        assert result.failed_step.error_type == "ArtifactWriteError"
        assert isinstance(result.error, ArtifactWriteError)
        # Work from completed steps stays in place
        assert (base_project / "drizzle.config.ts").exists()

    def test_command_failure_at_step_four(self, project):
        commands = [f"echo step-{i}" for i in range(1, 6)]
        feature = FeatureDescriptor(
            name="sample",
            title="Sample",
            requires=(),
            conflict_flag="has_sample",
            steps=tuple(run_commands(f"step {i}", cmd) for i, cmd in enumerate(commands, start=1)),
        )
        runner = FakeRunner(fail_on="step-4")
        result = _executor(runner, registry=FeatureRegistry([feature])).run("sample", project)

        assert _step_indices(result) == [1, 2, 3]
        assert result.failed_step.step_index == 4
        assert isinstance(result.error, CommandExecutionError)
        assert result.error.exit_code == 1
        assert runner.commands == commands[:4]

    def test_renderer_error_at_step_three(self, project):
        def broken(context):
            raise KeyError("missing_option")

        steps = [
            write("config", Artifact("config.json", static("{}\n"))),
            run_commands("setup", "echo setup"),
            write("broken", Artifact("src/broken.ts", broken)),
            run_commands("after", "echo after"),
            write("readme", Artifact("README.md", static("# app\n"))),
        ]
        feature = FeatureDescriptor(
            name="sample", title="Sample", requires=(), conflict_flag="has_sample", steps=tuple(steps),
        )
        runner = FakeRunner()
        result = _executor(runner, registry=FeatureRegistry([feature])).run("sample", project)

        assert result.outcome == Outcome.STEP_FAILED
        assert _step_indices(result) == [1, 2]
        assert result.failed_step.step_index == 3
        assert result.failed_step.error_type == "ArtifactWriteError"
        assert isinstance(result.error, ArtifactWriteError)
        assert result.error.path == "src/broken.ts"
        assert "KeyError" in result.error.message
        assert runner.commands == ["echo setup"]
        assert (project / "config.json").exists()
        assert not (project / "README.md").exists()

    def test_raising_runner_becomes_command_failure(self, project):
        class ExplodingRunner(FakeRunner):
            def run(self, command, cwd):
                if "second" in command:
                    raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
                return super().run(command, cwd)

        feature = FeatureDescriptor(
            name="sample",
            title="Sample",
            requires=(),
            conflict_flag="has_sample",
            steps=(run_commands("first", "echo first"), run_commands("second", "echo second")),
        )
        result = _executor(ExplodingRunner(), registry=FeatureRegistry([feature])).run("sample", project)

        assert _step_indices(result) == [1]
        assert result.failed_step.error_type == "CommandExecutionError"
        assert result.error.command == "echo second"
        assert result.error.exit_code is None
        assert "UnicodeDecodeError" in result.error.message

    def test_command_failure_carries_output(self, base_project):
        runner = FakeRunner(fail_on="drizzle-orm")
        result = _executor(runner).run("database", base_project)

        assert result.failed_step.step_index == 1
        assert result.completed_steps == ()
        assert result.error.command.startswith("pnpm add drizzle-orm")
        assert "simulated failure" in result.error.output

    def test_manifest_failure(self, project):
        # Base project detected from the config file alone, so there is no package.json to patch
        (project / "next.config.ts").write_text("export default {}\n")
        result = _executor().run("database", project)

        assert result.failed_step.step_index == 6
        assert result.failed_step.error_type == "ManifestPatchError"
        assert isinstance(result.error, ManifestPatchError)
        assert _step_indices(result) == [1, 2, 3, 4, 5]

    def test_invalid_manifest_section(self, base_project):
        write_manifest(base_project, {"dependencies": {"next": "15"}, "scripts": ["dev"]})
        result = _executor().run("database", base_project)
        assert result.failed_step.error_type == "ManifestPatchError"

    def test_completed_count_matches_failed_index(self, base_project):
        result = _executor(FakeRunner(fail_on="drizzle-kit")).run("database", base_project)
        assert len(result.completed_steps) == result.failed_step.step_index - 1


class TestSuccessfulInstall:
    def test_database_install(self, base_project):
        runner = FakeRunner()
        result = _executor(runner).run("database", base_project, {"provider": "sqlite"})

        assert result.succeeded
        assert _step_indices(result) == [1, 2, 3, 4, 5, 6]
        assert runner.commands == [
            "pnpm add drizzle-orm better-sqlite3",
            "pnpm add -D drizzle-kit @types/better-sqlite3",
        ]
        assert read_manifest(base_project)["scripts"]["db:migrate"] == "drizzle-kit migrate"
        assert read_manifest(base_project)["name"] == "app"
        assert scan_project(base_project)[HAS_DATABASE] is True

    def test_core_creates_base_project(self, project):
        runner = FakeRunner()
        result = _executor(runner).run("core", project)

        assert result.succeeded
        assert runner.commands[0].startswith("npx create-next-app@latest . ")
        assert "--use-pnpm" in runner.commands[0]
        assert (project / "lib" / "utils" / ".gitkeep").exists()
        assert scan_project(project)[HAS_BASE_PROJECT] is True

    def test_core_without_shadcn_skips_commands(self, project):
        runner = FakeRunner()
        _executor(runner).run("core", project, {"include_shadcn": False})
        assert not any("shadcn" in command for command in runner.commands)

    def test_command_steps_create_missing_project_dir(self, tmp_path):
        target = tmp_path / "new-app"
        runner = FakeRunner()
        result = _executor(runner).run("core", target)
        assert result.succeeded
        assert runner.calls[0][1] == str(target)

    def test_package_manager_renders_install_commands(self, base_project):
        runner = FakeRunner()
        _executor(runner, package_manager="npm").run("database", base_project)
        assert runner.commands[1] == "npm install --save-dev drizzle-kit @types/pg"

    def test_elapsed_times_are_recorded(self, base_project):
        result = _executor().run("database", base_project)
        assert result.total_elapsed_ms >= sum(s.elapsed_ms for s in result.completed_steps)

    def test_second_install_conflicts(self, base_project):
        (base_project / "drizzle.config.ts").write_text("export default {}\n")
        runner = FakeRunner()
        executor = _executor(runner)

        first = executor.run("auth", base_project)
        calls_after_first = len(runner.calls)
        second = executor.run("auth", base_project)

        assert first.succeeded
        assert second.outcome == Outcome.CONFLICT
        assert second.completed_steps == ()
        assert len(runner.calls) == calls_after_first


class TestCallbacks:
    def test_transitions_for_success(self, base_project):
        transitions = []
        _executor().run("editor", base_project, on_transition=lambda n, s: transitions.append((n, s)))
        assert transitions == [
            ("editor", FeatureStatus.VALIDATING),
            ("editor", FeatureStatus.RUNNING),
            ("editor", FeatureStatus.SUCCEEDED),
        ]

    def test_transitions_for_rejection(self, project):
        transitions = []
        _executor().run("editor", project, on_transition=lambda n, s: transitions.append(s))
        assert transitions == [FeatureStatus.VALIDATING, FeatureStatus.REJECTED]

    def test_on_step_receives_every_executed_step(self, base_project):
        seen = []
        writer = SpyWriter(fail_on=".vscode/extensions.json")
        result = _executor(writer=writer).run(
            "editor", base_project, on_step=lambda name, step: seen.append((step.step_index, step.succeeded))
        )
        assert seen == [(1, True), (2, False)]
        assert result.steps == result.completed_steps + (result.failed_step,)

    def test_to_dict(self, project):
        data = _executor().run("database", project).to_dict()
        assert data["outcome"] == "precondition_failed"
        assert data["status"] == "rejected"
        assert data["error"]["error_code"] == "PRECONDITION_FAILED"
        assert data["completed_steps"] == []
