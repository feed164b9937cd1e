"""
Built-in Feature Catalogue
==========================

The fourteen features that build up a Next.js SaaS project, declared in the
default chain order. Each feature states the flags it requires, the flag that
marks it as installed, its options model and its ordered steps.

Options defaults follow the behaviour a fresh project usually wants: every
optional part enabled, PostgreSQL as the database provider.

Usage:
    from stackforge.catalog import default_registry

    registry = default_registry()
    registry.topological_order(["auth", "core", "database"])
    # ['core', 'database', 'auth']
"""
from __future__ import annotations

import re
from typing import Literal

from pydantic import Field, field_validator, model_validator

from stackforge import templates
from stackforge.artifacts import Artifact, static
from stackforge.features import (
    FeatureDescriptor,
    FeatureOptions,
    FeatureRegistry,
    StepContext,
    add_scripts,
    install,
    patch,
    run_commands,
    write,
)
from stackforge.project_state import (
    HAS_AUTHENTICATION,
    HAS_BASE_PROJECT,
    HAS_DATABASE,
    HAS_EDITOR_CONFIG,
    HAS_ENV_CONFIG,
    HAS_FORM_HANDLING,
    HAS_GIT_WORKFLOW,
    HAS_I18N,
    HAS_LINTING,
    HAS_PAYMENT_WEBHOOKS,
    HAS_PAYMENTS,
    HAS_PROTECTED_ROUTES,
    HAS_TEAM_MANAGEMENT,
    HAS_TESTING,
)


def _when(option: str):
    """Artifact condition reading a boolean option."""
    def _condition(ctx: StepContext) -> bool:
        return bool(getattr(ctx.options, option))
    return _condition


# =============================================================================
# Options Models
# =============================================================================

class CoreOptions(FeatureOptions):
    include_shadcn: bool = Field(default=True, description="Initialize shadcn/ui")
    include_all_components: bool = Field(default=True, description="Add every shadcn/ui component")


class LintingOptions(FeatureOptions):
    include_custom_rules: bool = Field(default=True, description="Add GritQL custom rules")
    strict_mode: bool = Field(default=True, description="Enable strict lint rules")


class EditorOptions(FeatureOptions):
    optimize_for_biome: bool = Field(default=True, description="Use Biome as formatter")


class EnvironmentOptions(FeatureOptions):
    include_t3_validation: bool = Field(default=True, description="Validate env with @t3-oss/env-nextjs")


class DatabaseOptions(FeatureOptions):
    provider: Literal["postgresql", "mysql", "sqlite"] = Field(default="postgresql")
    include_examples: bool = Field(default=True, description="Generate an example users table")


class AuthOptions(FeatureOptions):
    include_password_hashing: bool = Field(default=True, description="Hash passwords with bcryptjs")
    include_user_management: bool = Field(default=True, description="Generate user queries")


class ProtectedRoutesOptions(FeatureOptions):
    protection_level: Literal["basic", "advanced"] = Field(default="advanced")


class PaymentsOptions(FeatureOptions):
    include_subscriptions: bool = Field(default=True)
    include_one_time: bool = Field(default=True)

    @model_validator(mode="after")
    def check_payment_types(self) -> "PaymentsOptions":
        if not (self.include_subscriptions or self.include_one_time):
            raise ValueError("at least one of include_subscriptions or include_one_time must be true")
        return self


class WebhooksOptions(FeatureOptions):
    include_customer_portal: bool = Field(default=True)


class TeamsOptions(FeatureOptions):
    include_roles: bool = Field(default=True, description="Role column and role validation")
    include_activity_logs: bool = Field(default=True)


class FormsOptions(FeatureOptions):
    include_zod_validation: bool = Field(default=True)
    include_react_query: bool = Field(default=True)


class TestingOptions(FeatureOptions):
    include_mocking: bool = Field(default=True, description="Add MSW request handlers")
    browsers: list[Literal["chromium", "firefox", "webkit"]] = Field(
        default_factory=lambda: ["chromium", "firefox", "webkit"],
        min_length=1,
    )


class GitWorkflowOptions(FeatureOptions):
    include_commit_standards: bool = Field(default=True, description="Conventional commits via commitlint")
    include_lint_staged: bool = Field(default=True)


SUPPORTED_LANGUAGES = tuple(templates.MESSAGES)
_LANGUAGE_CODE = re.compile(r"^[a-z]{2}$")


class I18nOptions(FeatureOptions):
    languages: list[str] = Field(
        default_factory=lambda: ["en", "es", "fr", "de", "ja", "zh"],
        min_length=1,
    )
    default_language: str = Field(default="en")
    include_routing: bool = Field(default=True)

    @field_validator("languages")
    @classmethod
    def check_languages(cls, v: list[str]) -> list[str]:
        for lang in v:
            if not _LANGUAGE_CODE.match(lang) or lang not in SUPPORTED_LANGUAGES:
                raise ValueError(
                    f"unsupported language '{lang}'; choose from {', '.join(SUPPORTED_LANGUAGES)}"
                )
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def check_default_language(self) -> "I18nOptions":
        if self.default_language not in self.languages:
            raise ValueError(f"default_language '{self.default_language}' is not in languages")
        return self


# =============================================================================
# Package Selection
# =============================================================================

_DB_DRIVERS = {
    "postgresql": ["@neondatabase/serverless", "ws"],
    "mysql": ["mysql2"],
    "sqlite": ["better-sqlite3"],
}

_DB_DEV_TYPES = {
    "postgresql": ["@types/pg"],
    "mysql": [],
    "sqlite": ["@types/better-sqlite3"],
}


def _database_packages(ctx: StepContext) -> list[str]:
    return ["drizzle-orm", *_DB_DRIVERS[ctx.options.provider]]


def _database_dev_packages(ctx: StepContext) -> list[str]:
    return ["drizzle-kit", *_DB_DEV_TYPES[ctx.options.provider]]


def _auth_packages(ctx: StepContext) -> list[str]:
    packages = ["jose", "zod"]
    if ctx.options.include_password_hashing:
        packages.append("bcryptjs")
    return packages


def _auth_dev_packages(ctx: StepContext) -> list[str]:
    return ["@types/bcryptjs"] if ctx.options.include_password_hashing else []


def _env_packages(ctx: StepContext) -> list[str]:
    return ["@t3-oss/env-nextjs", "zod"] if ctx.options.include_t3_validation else []


def _form_packages(ctx: StepContext) -> list[str]:
    packages = ["react-hook-form", "@hookform/resolvers"]
    if ctx.options.include_zod_validation:
        packages.append("zod")
    if ctx.options.include_react_query:
        packages.append("@tanstack/react-query")
    return packages


def _testing_dev_packages(ctx: StepContext) -> list[str]:
    packages = [
        "vitest",
        "@vitejs/plugin-react",
        "@testing-library/react",
        "@testing-library/jest-dom",
        "jsdom",
        "@playwright/test",
    ]
    if ctx.options.include_mocking:
        packages.append("msw")
    return packages


def _git_dev_packages(ctx: StepContext) -> list[str]:
    packages = ["lefthook"]
    if ctx.options.include_commit_standards:
        packages += ["@commitlint/cli", "@commitlint/config-conventional"]
    if ctx.options.include_lint_staged:
        packages.append("lint-staged")
    return packages


def _shadcn_init(ctx: StepContext) -> str | None:
    if not ctx.options.include_shadcn:
        return None
    return "npx shadcn@latest init --yes -b neutral"


def _shadcn_add(ctx: StepContext) -> str | None:
    if not (ctx.options.include_shadcn and ctx.options.include_all_components):
        return None
    return "npx shadcn@latest add --all"


def _git_init(ctx: StepContext) -> str | None:
    if (ctx.project_path / ".git").exists():
        return None
    return "git init"


def _subscription_persistence(ctx: StepContext) -> bool:
    return ctx.options.include_subscriptions and ctx.state[HAS_DATABASE]


def _language_artifact(lang: str) -> Artifact:
    return Artifact(
        f"messages/{lang}.json",
        templates.messages(lang),
        condition=lambda ctx: lang in ctx.options.languages,
    )


# =============================================================================
# Features
# =============================================================================

CORE = FeatureDescriptor(
    name="core",
    title="Next.js base project",
    description="Next.js 15 with TypeScript, Tailwind CSS and shadcn/ui",
    requires=(),
    conflict_flag=HAS_BASE_PROJECT,
    options_model=CoreOptions,
    steps=(
        run_commands(
            "create Next.js app",
            "npx create-next-app@latest . --typescript --tailwind --app "
            "--use-{package_manager} --no-eslint --yes",
        ),
        run_commands("initialize shadcn/ui", _shadcn_init),
        run_commands("add shadcn/ui components", _shadcn_add),
        patch("add project scripts", add_scripts({
            "dev": "next dev --turbopack",
            "build": "next build",
            "start": "next start",
            "type-check": "tsc --noEmit",
        })),
        write(
            "create folder structure",
            *(Artifact(f"{d}/.gitkeep", static(templates.GITKEEP))
              for d in ("actions", "hooks", "lib/utils", "types")),
        ),
    ),
)

LINTING = FeatureDescriptor(
    name="linting",
    title="Biome linting",
    description="Biome formatter and linter with optional GritQL rules",
    requires=(HAS_BASE_PROJECT,),
    conflict_flag=HAS_LINTING,
    options_model=LintingOptions,
    steps=(
        install("install Biome", ["@biomejs/biome"], dev=True),
        run_commands("initialize Biome", "{package_manager} exec biome init"),
        write(
            "write Biome configuration",
            Artifact("biome.json", templates.biome_config),
            Artifact(
                "biome-rules/no-relative-parent-imports.grit",
                static(templates.NO_PARENT_IMPORTS_RULE),
                condition=_when("include_custom_rules"),
            ),
        ),
        patch("add lint scripts", add_scripts({
            "lint": "biome check .",
            "lint:fix": "biome check --write .",
            "format": "biome format --write .",
        })),
    ),
)

EDITOR = FeatureDescriptor(
    name="editor",
    title="VS Code configuration",
    requires=(HAS_BASE_PROJECT,),
    conflict_flag=HAS_EDITOR_CONFIG,
    options_model=EditorOptions,
    steps=(
        write("write editor settings", Artifact(".vscode/settings.json", templates.vscode_settings)),
        write("write recommended extensions", Artifact(".vscode/extensions.json", templates.vscode_extensions)),
        write("write launch configuration", Artifact(".vscode/launch.json", static(templates.VSCODE_LAUNCH))),
    ),
)

ENVIRONMENT = FeatureDescriptor(
    name="environment",
    title="Environment variables",
    description="Documented .env.example and typed runtime validation",
    requires=(HAS_BASE_PROJECT,),
    conflict_flag=HAS_ENV_CONFIG,
    options_model=EnvironmentOptions,
    steps=(
        install("install env validation", _env_packages),
        write("write .env.example", Artifact(".env.example", templates.env_example)),
        write(
            "write env schema",
            Artifact("lib/env.ts", templates.env_schema, condition=_when("include_t3_validation")),
        ),
    ),
)

DATABASE = FeatureDescriptor(
    name="database",
    title="Drizzle ORM",
    description="Drizzle ORM with PostgreSQL, MySQL or SQLite",
    requires=(HAS_BASE_PROJECT,),
    conflict_flag=HAS_DATABASE,
    options_model=DatabaseOptions,
    steps=(
        install("install database packages", _database_packages),
        install("install database dev packages", _database_dev_packages, dev=True),
        write("write Drizzle configuration", Artifact("drizzle.config.ts", templates.drizzle_config)),
        write("write database connection", Artifact("lib/db/index.ts", templates.db_connection)),
        write(
            "write schema and migrations",
            Artifact("models/user.ts", templates.user_model, condition=_when("include_examples")),
            Artifact("models/index.ts", templates.models_index),
            Artifact("drizzle/migrations/.gitkeep", static(templates.GITKEEP)),
            Artifact("lib/db/migrate.ts", templates.migrate_script),
        ),
        patch("add database scripts", add_scripts({
            "db:generate": "drizzle-kit generate",
            "db:migrate": "drizzle-kit migrate",
            "db:studio": "drizzle-kit studio",
            "db:push": "drizzle-kit push",
        })),
    ),
)

AUTH = FeatureDescriptor(
    name="auth",
    title="JWT authentication",
    description="Cookie sessions signed with jose, bcrypt password hashing",
    requires=(HAS_BASE_PROJECT, HAS_DATABASE),
    conflict_flag=HAS_AUTHENTICATION,
    options_model=AuthOptions,
    steps=(
        install("install auth packages", _auth_packages),
        install("install auth dev packages", _auth_dev_packages, dev=True),
        write(
            "write session utilities",
            Artifact("lib/auth/session.ts", static(templates.SESSION_UTILS)),
            Artifact("lib/auth/middleware.ts", static(templates.AUTH_MIDDLEWARE_HELPERS)),
        ),
        write(
            "write password utilities",
            Artifact(
                "lib/auth/password.ts",
                static(templates.PASSWORD_UTILS),
                condition=_when("include_password_hashing"),
            ),
        ),
        write(
            "write validations and actions",
            Artifact("lib/validations/auth.ts", static(templates.AUTH_VALIDATIONS)),
            Artifact("actions/auth.ts", templates.auth_actions),
            Artifact(
                "lib/db/user-queries.ts",
                static(templates.USER_QUERIES),
                condition=_when("include_user_management"),
            ),
        ),
        write(
            "write auth forms",
            Artifact("components/auth/login-form.tsx", templates.auth_form("login")),
            Artifact("components/auth/signup-form.tsx", templates.auth_form("signup")),
            Artifact("components/auth/index.ts", static(templates.AUTH_COMPONENTS_INDEX)),
        ),
    ),
)

PROTECTED_ROUTES = FeatureDescriptor(
    name="protected-routes",
    title="Protected routes",
    requires=(HAS_BASE_PROJECT, HAS_AUTHENTICATION),
    conflict_flag=HAS_PROTECTED_ROUTES,
    options_model=ProtectedRoutesOptions,
    steps=(
        write(
            "write route middleware",
            Artifact("middleware.ts", templates.route_middleware),
            Artifact(
                "lib/auth/route-config.ts",
                static(templates.ROUTE_CONFIG),
                condition=lambda ctx: ctx.options.protection_level == "advanced",
            ),
        ),
        write(
            "write auth pages",
            Artifact("app/(auth)/login/page.tsx", templates.auth_page("login")),
            Artifact("app/(auth)/signup/page.tsx", templates.auth_page("signup")),
        ),
        write(
            "write dashboard",
            Artifact("app/(dashboard)/dashboard/layout.tsx", static(templates.DASHBOARD_LAYOUT)),
            Artifact("app/(dashboard)/dashboard/page.tsx", static(templates.DASHBOARD_PAGE)),
        ),
    ),
)

PAYMENTS = FeatureDescriptor(
    name="payments",
    title="Stripe payments",
    description="Stripe checkout for subscriptions and one-time payments",
    requires=(HAS_BASE_PROJECT, HAS_AUTHENTICATION),
    conflict_flag=HAS_PAYMENTS,
    options_model=PaymentsOptions,
    steps=(
        install("install Stripe packages", ["stripe", "@stripe/stripe-js"]),
        install("install Stripe dev packages", ["stripe-event-types"], dev=True),
        write("write Stripe client", Artifact("lib/payments/stripe.ts", static(templates.STRIPE_CLIENT))),
        write(
            "write payment utilities and types",
            Artifact("lib/payments/utils.ts", static(templates.PAYMENT_UTILS)),
            Artifact("types/payments.ts", static(templates.PAYMENT_TYPES)),
        ),
        write(
            "write payment actions",
            Artifact("actions/payments.ts", templates.payment_actions),
            Artifact(
                "models/subscription.ts",
                static(templates.SUBSCRIPTION_MODEL),
                condition=_subscription_persistence,
            ),
            Artifact(
                "lib/db/subscription-queries.ts",
                static(templates.SUBSCRIPTION_QUERIES),
                condition=_subscription_persistence,
            ),
        ),
        write(
            "write payment components",
            Artifact(
                "components/payments/pricing-table.tsx",
                static(templates.PRICING_TABLE),
                condition=_when("include_subscriptions"),
            ),
            Artifact(
                "components/payments/checkout-button.tsx",
                static(templates.CHECKOUT_BUTTON),
                condition=_when("include_one_time"),
            ),
            Artifact("components/payments/index.ts", templates.payment_components_index),
        ),
    ),
)

WEBHOOKS = FeatureDescriptor(
    name="webhooks",
    title="Stripe webhooks",
    requires=(HAS_BASE_PROJECT, HAS_PAYMENTS),
    conflict_flag=HAS_PAYMENT_WEBHOOKS,
    options_model=WebhooksOptions,
    steps=(
        write("write webhook route", Artifact("app/api/webhooks/stripe/route.ts", static(templates.WEBHOOK_ROUTE))),
        write(
            "write webhook handlers",
            Artifact("lib/payments/webhook-handlers.ts", static(templates.WEBHOOK_HANDLERS)),
            Artifact("lib/payments/webhook-utils.ts", static(templates.WEBHOOK_UTILS)),
        ),
        write(
            "write customer portal",
            Artifact(
                "app/api/stripe/portal/route.ts",
                static(templates.PORTAL_ROUTE),
                condition=_when("include_customer_portal"),
            ),
            Artifact(
                "components/payments/customer-portal.tsx",
                static(templates.PORTAL_COMPONENT),
                condition=_when("include_customer_portal"),
            ),
        ),
        write("write webhook docs", Artifact("docs/stripe-webhooks.md", static(templates.WEBHOOK_DOCS))),
    ),
)

TEAMS = FeatureDescriptor(
    name="teams",
    title="Team management",
    description="Multi-tenant teams with members, roles and activity logs",
    requires=(HAS_BASE_PROJECT, HAS_AUTHENTICATION, HAS_DATABASE),
    conflict_flag=HAS_TEAM_MANAGEMENT,
    options_model=TeamsOptions,
    steps=(
        write("write team models", Artifact("models/team.ts", templates.team_model)),
        write("write team queries", Artifact("lib/db/team-queries.ts", static(templates.TEAM_QUERIES))),
        write("write team validations", Artifact("lib/validations/team.ts", templates.team_validations)),
        write("write team actions", Artifact("actions/team.ts", static(templates.TEAM_ACTIONS))),
        write(
            "write team components",
            Artifact("components/teams/team-switcher.tsx", static(templates.TEAM_SWITCHER)),
            Artifact("components/teams/index.ts", static(templates.TEAM_COMPONENTS_INDEX)),
        ),
    ),
)

FORMS = FeatureDescriptor(
    name="forms",
    title="Form handling",
    requires=(HAS_BASE_PROJECT,),
    conflict_flag=HAS_FORM_HANDLING,
    options_model=FormsOptions,
    steps=(
        install("install form packages", _form_packages),
        write(
            "write form hooks",
            Artifact("lib/forms/hooks.ts", static(templates.FORM_HOOKS)),
            Artifact(
                "lib/forms/query-provider.tsx",
                static(templates.QUERY_PROVIDER),
                condition=_when("include_react_query"),
            ),
            Artifact("lib/forms/index.ts", templates.forms_index),
        ),
        write(
            "write form components",
            Artifact("components/forms/form-field.tsx", static(templates.FORM_FIELD)),
            Artifact("components/forms/index.ts", static(templates.FORM_COMPONENTS_INDEX)),
            Artifact(
                "lib/validations/forms.ts",
                static(templates.FORM_SCHEMAS),
                condition=_when("include_zod_validation"),
            ),
        ),
    ),
)

TESTING = FeatureDescriptor(
    name="testing",
    title="Testing suite",
    description="Vitest unit tests and Playwright end-to-end tests",
    requires=(HAS_BASE_PROJECT,),
    conflict_flag=HAS_TESTING,
    options_model=TestingOptions,
    steps=(
        install("install test packages", _testing_dev_packages, dev=True),
        write(
            "write Vitest configuration",
            Artifact("vitest.config.ts", static(templates.VITEST_CONFIG)),
            Artifact("test/setup.ts", static(templates.TEST_SETUP)),
        ),
        write("write Playwright configuration", Artifact("playwright.config.ts", templates.playwright_config)),
        write(
            "write example tests",
            Artifact("__tests__/smoke.test.tsx", static(templates.EXAMPLE_UNIT_TEST)),
            Artifact("e2e/homepage.spec.ts", static(templates.EXAMPLE_E2E_TEST)),
            Artifact("mocks/handlers.ts", static(templates.MSW_HANDLERS), condition=_when("include_mocking")),
        ),
        patch("add test scripts", add_scripts({
            "test": "vitest run",
            "test:watch": "vitest",
            "test:coverage": "vitest run --coverage",
            "test:e2e": "playwright test",
        })),
    ),
)

GIT_WORKFLOW = FeatureDescriptor(
    name="git-workflow",
    title="Git workflow",
    description="Lefthook hooks with conventional commits",
    requires=(HAS_BASE_PROJECT,),
    conflict_flag=HAS_GIT_WORKFLOW,
    options_model=GitWorkflowOptions,
    steps=(
        run_commands("initialize git repository", _git_init),
        install("install git tooling", _git_dev_packages, dev=True),
        write("write Lefthook configuration", Artifact("lefthook.yml", templates.lefthook_config)),
        write(
            "write commit conventions",
            Artifact(
                "commitlint.config.js",
                static(templates.COMMITLINT_CONFIG),
                condition=_when("include_commit_standards"),
            ),
            Artifact(".gitmessage", static(templates.GIT_MESSAGE)),
        ),
        patch("add git scripts", add_scripts({"prepare": "lefthook install"})),
    ),
)

I18N = FeatureDescriptor(
    name="i18n",
    title="Internationalization",
    description="next-intl with per-language message catalogues",
    requires=(HAS_BASE_PROJECT,),
    conflict_flag=HAS_I18N,
    options_model=I18nOptions,
    steps=(
        install("install next-intl", ["next-intl"]),
        write(
            "write i18n configuration",
            Artifact("i18n.ts", templates.i18n_config),
            Artifact("types/i18n.ts", static(templates.I18N_TYPES)),
        ),
        write("write message catalogues", *(_language_artifact(lang) for lang in SUPPORTED_LANGUAGES)),
        write(
            "write locale navigation",
            Artifact("lib/i18n/navigation.ts", static(templates.NAVIGATION), condition=_when("include_routing")),
            Artifact(
                "components/i18n/language-switcher.tsx",
                static(templates.LANGUAGE_SWITCHER),
                condition=_when("include_routing"),
            ),
        ),
        write("wrap Next.js config", Artifact("next.config.ts", static(templates.NEXT_CONFIG_WITH_INTL))),
    ),
)

BUILTIN_FEATURES: tuple[FeatureDescriptor, ...] = (
    CORE,
    LINTING,
    EDITOR,
    ENVIRONMENT,
    DATABASE,
    AUTH,
    PROTECTED_ROUTES,
    PAYMENTS,
    WEBHOOKS,
    TEAMS,
    FORMS,
    TESTING,
    GIT_WORKFLOW,
    I18N,
)


def default_registry() -> FeatureRegistry:
    """A fresh registry holding the built-in features."""
    return FeatureRegistry(BUILTIN_FEATURES)
