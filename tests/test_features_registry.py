"""
Tests for feature descriptors and the feature registry.

Covers:
1. Registration rules (duplicate names and conflict flags)
2. Topological order with declaration-order tie breaking
3. Cycle and dangling-requirement detection
4. Option validation through the feature's pydantic model
5. Step payload type checks
"""

import pytest

from stackforge.catalog import default_registry
from stackforge.errors import InvalidOptionsError, RegistryError, UnknownFeatureError
from stackforge.features import (
    FeatureDescriptor,
    FeatureOptions,
    FeatureRegistry,
    StepKind,
    StepSpec,
    run_commands,
)


def _feature(name, provides, requires=()):
    return FeatureDescriptor(
        name=name,
        title=name.title(),
        requires=tuple(requires),
        conflict_flag=provides,
        steps=(run_commands(f"{name} step", f"echo {name}"),),
    )


class TestRegistration:
    def test_duplicate_name_rejected(self):
        registry = FeatureRegistry([_feature("a", "has_a")])
        with pytest.raises(RegistryError):
            registry.register(_feature("a", "has_other"))

    def test_duplicate_conflict_flag_rejected(self):
        registry = FeatureRegistry([_feature("a", "has_a")])
        with pytest.raises(RegistryError) as exc_info:
            registry.register(_feature("b", "has_a"))
        assert exc_info.value.details["conflict_flag"] == "has_a"

    def test_get_unknown_lists_known_features(self):
        registry = FeatureRegistry([_feature("a", "has_a")])
        with pytest.raises(UnknownFeatureError) as exc_info:
            registry.get("blog")
        assert exc_info.value.details["known_features"] == ["a"]

    def test_provider_of(self):
        registry = FeatureRegistry([_feature("a", "has_a")])
        assert registry.provider_of("has_a") == "a"
        assert registry.provider_of("has_b") is None


class TestTopologicalOrder:
    def test_requirements_come_first(self):
        registry = FeatureRegistry([
            _feature("auth", "has_auth", ["has_base", "has_db"]),
            _feature("db", "has_db", ["has_base"]),
            _feature("base", "has_base"),
        ])
        assert registry.full_order() == ["base", "db", "auth"]

    def test_ties_follow_declaration_order(self):
        registry = FeatureRegistry([
            _feature("base", "has_base"),
            _feature("zeta", "has_zeta", ["has_base"]),
            _feature("alpha", "has_alpha", ["has_base"]),
        ])
        assert registry.full_order() == ["base", "zeta", "alpha"]

    def test_order_filters_and_deduplicates(self):
        registry = default_registry()
        order = registry.topological_order(["auth", "core", "database", "auth"])
        assert order == ["core", "database", "auth"]

    def test_missing_providers_are_not_added(self):
        assert default_registry().topological_order(["auth"]) == ["auth"]

    def test_unknown_name_raises_before_ordering(self):
        with pytest.raises(UnknownFeatureError):
            default_registry().topological_order(["core", "blog"])

    def test_cycle_detected(self):
        registry = FeatureRegistry([
            _feature("a", "has_a", ["has_b"]),
            _feature("b", "has_b", ["has_a"]),
        ])
        with pytest.raises(RegistryError, match="Cycle"):
            registry.full_order()

    def test_dangling_requirement_detected(self):
        registry = FeatureRegistry([_feature("a", "has_a", ["has_nothing"])])
        with pytest.raises(RegistryError) as exc_info:
            registry.full_order()
        assert exc_info.value.details["flag"] == "has_nothing"

    def test_order_recomputed_after_register(self):
        registry = FeatureRegistry([_feature("base", "has_base")])
        assert registry.full_order() == ["base"]
        registry.register(_feature("db", "has_db", ["has_base"]))
        assert registry.full_order() == ["base", "db"]

    def test_builtin_catalogue_order(self):
        assert default_registry().full_order() == [
            "core",
            "linting",
            "editor",
            "environment",
            "database",
            "auth",
            "protected-routes",
            "payments",
            "webhooks",
            "teams",
            "forms",
            "testing",
            "git-workflow",
            "i18n",
        ]


class TestOptions:
    def test_defaults_apply(self):
        options = default_registry().get("database").parse_options(None)
        assert options.provider == "postgresql"
        assert options.include_examples is True

    def test_unknown_option_rejected(self):
        with pytest.raises(InvalidOptionsError) as exc_info:
            default_registry().get("database").parse_options({"engine": "mongo"})
        assert exc_info.value.errors[0]["field"] == "engine"

    def test_invalid_literal_rejected(self):
        with pytest.raises(InvalidOptionsError) as exc_info:
            default_registry().get("database").parse_options({"provider": "oracle"})
        assert exc_info.value.feature_name == "database"
        assert exc_info.value.errors[0]["field"] == "provider"

    def test_parsed_model_passes_through(self):
        feature = default_registry().get("database")
        parsed = feature.parse_options({"provider": "sqlite"})
        assert feature.parse_options(parsed) is parsed

    def test_base_options_reject_everything(self):
        with pytest.raises(InvalidOptionsError):
            _feature("a", "has_a").parse_options({"x": 1})
        assert isinstance(_feature("a", "has_a").parse_options({}), FeatureOptions)


class TestStepSpec:
    def test_payload_must_match_kind(self):
        with pytest.raises(RegistryError):
            StepSpec("bad", StepKind.PATCH_MANIFEST, ("not", "a", "patch"))

    def test_write_step_needs_artifacts(self):
        with pytest.raises(RegistryError):
            StepSpec("bad", StepKind.WRITE_ARTIFACT, ("README.md",))

    def test_describe_lists_features_with_options(self):
        described = default_registry().describe()
        database = next(f for f in described if f["name"] == "database")
        assert database["requires"] == ["has_base_project"]
        assert database["conflict_flag"] == "has_database"
        assert len(database["steps"]) == 6
        assert "provider" in database["options"]
