"""
Tests for project state detection.

Covers:
1. Flag evidence from declared packages and marker files
2. OR across predicates, AND within a predicate
3. Best-effort handling of missing roots and broken manifests
4. Immutability and determinism of ProjectState
"""

import pytest

from conftest import write_manifest
from stackforge.project_state import (
    ALL_FLAGS,
    HAS_AUTHENTICATION,
    HAS_BASE_PROJECT,
    HAS_DATABASE,
    HAS_TEAM_MANAGEMENT,
    HAS_TESTING,
    Evidence,
    ProjectState,
    ProjectStateScanner,
    scan_project,
)


class TestProjectState:
    """ProjectState is a read-only mapping over every known flag."""

    def test_empty_state_has_every_flag_false(self):
        state = ProjectState.empty()
        assert list(state) == list(ALL_FLAGS)
        assert not any(state.values())

    def test_unknown_flag_reads_false(self):
        assert ProjectState.empty()["has_spaceship"] is False
        assert "has_spaceship" not in ProjectState.empty()

    def test_from_flags(self):
        state = ProjectState.from_flags(HAS_BASE_PROJECT, has_database=True)
        assert state.active_flags() == [HAS_BASE_PROJECT, HAS_DATABASE]

    def test_state_cannot_be_mutated(self):
        state = ProjectState.empty()
        with pytest.raises(TypeError):
            state[HAS_DATABASE] = True

    def test_to_dict_keeps_declaration_order(self):
        assert list(ProjectState.empty().to_dict()) == list(ALL_FLAGS)

    def test_equal_states_compare_equal(self):
        assert ProjectState.from_flags(HAS_BASE_PROJECT) == ProjectState.from_flags(HAS_BASE_PROJECT)


class TestScannerEvidence:
    """Flags are derived from packages, files and directories."""

    def test_empty_directory_has_no_flags(self, project):
        assert scan_project(project).active_flags() == []

    def test_next_dependency_marks_base_project(self, base_project):
        state = scan_project(base_project)
        assert state[HAS_BASE_PROJECT] is True
        assert state[HAS_DATABASE] is False

    def test_dev_dependencies_count(self, project):
        write_manifest(project, {"devDependencies": {"next": "15.0.0"}})
        assert scan_project(project)[HAS_BASE_PROJECT] is True

    def test_marker_file_without_manifest(self, project):
        (project / "next.config.mjs").write_text("export default {}\n")
        assert scan_project(project)[HAS_BASE_PROJECT] is True

    def test_database_from_config_file(self, base_project):
        (base_project / "drizzle.config.ts").write_text("export default {}\n")
        assert scan_project(base_project)[HAS_DATABASE] is True

    def test_predicate_needs_all_packages(self, project):
        write_manifest(project, {"dependencies": {"next": "15", "jose": "5"}})
        assert scan_project(project)[HAS_AUTHENTICATION] is False

        write_manifest(project, {"dependencies": {"next": "15", "jose": "5", "bcryptjs": "2"}})
        assert scan_project(project)[HAS_AUTHENTICATION] is True

    def test_predicate_needs_all_files(self, project):
        (project / "vitest.config.ts").write_text("")
        assert scan_project(project)[HAS_TESTING] is False

        (project / "playwright.config.ts").write_text("")
        assert scan_project(project)[HAS_TESTING] is True

    def test_any_predicate_is_enough(self, project):
        (project / "models").mkdir()
        (project / "models" / "team.ts").write_text("")
        assert scan_project(project)[HAS_TEAM_MANAGEMENT] is True

    def test_directory_evidence(self, project):
        scanner = ProjectStateScanner({HAS_BASE_PROJECT: (Evidence(directories=("app",)),)})
        assert scanner.scan(project)[HAS_BASE_PROJECT] is False
        (project / "app").mkdir()
        assert scanner.scan(project)[HAS_BASE_PROJECT] is True

    def test_empty_evidence_never_holds(self, project):
        scanner = ProjectStateScanner({HAS_BASE_PROJECT: (Evidence(),)})
        assert scanner.scan(project)[HAS_BASE_PROJECT] is False


class TestScannerBestEffort:
    """The scanner never raises for a missing or broken project."""

    def test_missing_root(self, tmp_path):
        assert scan_project(tmp_path / "nope") == ProjectState.empty()

    def test_invalid_json_manifest(self, project):
        (project / "package.json").write_text("{not json")
        (project / "next.config.ts").write_text("")
        assert scan_project(project) == ProjectState.empty()

    def test_non_object_manifest(self, project):
        (project / "package.json").write_text("[1, 2, 3]")
        assert scan_project(project) == ProjectState.empty()

    def test_non_object_sections_are_ignored(self, project):
        write_manifest(project, {"dependencies": ["next"], "devDependencies": {"drizzle-orm": "1"}})
        state = scan_project(project)
        assert state[HAS_BASE_PROJECT] is False
        assert state[HAS_DATABASE] is True

    def test_scan_is_deterministic(self, base_project):
        (base_project / "biome.json").write_text("{}")
        assert scan_project(base_project) == scan_project(base_project)

    def test_scan_does_not_modify_the_tree(self, base_project):
        before = sorted(p.name for p in base_project.iterdir())
        scan_project(base_project)
        assert sorted(p.name for p in base_project.iterdir()) == before
