"""The three check sets exposed to callers, each one Engine configuration."""
from __future__ import annotations

from amplify_health import config
from amplify_health.checks import amplify, assets, build, cache, dependencies, env, git
from amplify_health.config import CompatibilityTable, load_compatibility_table
from amplify_health.engine import Engine
from amplify_health.registry import Check, CheckRegistry
from amplify_health.versions import VersionResolver

NODE_VERSION = "node_version"
PREDEPLOY = "predeploy"
OPTIMIZATION = "optimization"
PANELS = (NODE_VERSION, PREDEPLOY, OPTIMIZATION)


def _table(table: CompatibilityTable = None) -> CompatibilityTable:
    return table if table is not None else load_compatibility_table()


def node_version_engine(table: CompatibilityTable = None) -> Engine:
    return Engine(CheckRegistry(), VersionResolver(_table(table)), name=NODE_VERSION)


def predeploy_registry() -> CheckRegistry:
    # tsc gets its probe timeout plus headroom so the probe reports its own timeout first
    tsc_timeout = config.PROBE_TIMEOUT + 30
    return CheckRegistry([
        Check("git-uncommitted", git.CATEGORY, git.check_uncommitted),
        Check("git-unpushed", git.CATEGORY, git.check_unpushed),
        Check("deps-package-json", dependencies.CATEGORY, dependencies.check_package_json),
        Check("deps-lockfile", dependencies.CATEGORY, dependencies.check_lockfile),
        Check("deps-node-modules", dependencies.CATEGORY, dependencies.check_node_modules),
        Check("deps-react-mismatch", dependencies.CATEGORY, dependencies.check_react_versions),
        Check("deps-node-engine", dependencies.CATEGORY, dependencies.check_engines_vs_ci),
        Check("build-script", build.CATEGORY, build.check_build_script),
        Check("build-tsconfig", build.CATEGORY, build.check_tsconfig),
        Check("build-typescript", build.CATEGORY, build.check_typescript_compile, timeout=tsc_timeout),
        Check("build-eslint", build.CATEGORY, build.check_eslint),
        Check("env-gitignore", env.CATEGORY, env.check_env_ignored),
        Check("env-required", env.CATEGORY, env.check_env_required),
        Check("env-hardcoded", env.CATEGORY, env.check_secrets),
        Check("amplify-yml", amplify.CATEGORY, amplify.check_amplify_yml),
        Check("amplify-yml-syntax", amplify.CATEGORY, amplify.check_amplify_syntax),
        Check("amplify-version", amplify.CATEGORY, amplify.check_amplify_version),
        Check("amplify-phase", amplify.CATEGORY, amplify.check_amplify_phase),
        Check("amplify-scripts", amplify.CATEGORY, amplify.check_amplify_scripts),
        Check("amplify-nextjs", amplify.CATEGORY, amplify.check_nextjs_artifacts),
    ])


def predeploy_engine() -> Engine:
    return Engine(predeploy_registry(), name=PREDEPLOY)


def optimization_registry(table: CompatibilityTable = None) -> CheckRegistry:
    return CheckRegistry([
        Check("cache-amplify-yml", cache.CATEGORY, cache.check_cache_section),
        Check("cache-node-modules", cache.CATEGORY, cache.check_node_modules_cached),
        Check("cache-nextjs", cache.CATEGORY, cache.check_next_cache),
        Check("deps-lockfile", dependencies.CATEGORY, dependencies.check_lockfile),
        Check("dep-npm-ci", dependencies.CATEGORY, dependencies.check_npm_ci),
        Check("dep-heavy-dev", dependencies.CATEGORY, dependencies.check_heavy_dev_dependencies),
        Check("dep-lock-size", dependencies.CATEGORY, dependencies.check_lock_size),
        Check("build-sourcemaps", build.CATEGORY, build.check_sourcemaps),
        Check("build-skip-lib-check", build.CATEGORY, build.check_skip_lib_check),
        Check("build-parallel", build.CATEGORY, build.check_parallel_commands),
        Check("build-node-version", build.CATEGORY, build.make_ci_node_version_check(_table(table))),
        Check("assets-large-images", assets.CATEGORY, assets.check_large_images),
        Check("config-amplify-yml", amplify.CATEGORY, amplify.check_config_amplify_yml),
        Check("config-artifacts", amplify.CATEGORY, amplify.check_config_artifacts),
        Check("config-env-vars", amplify.CATEGORY, amplify.check_config_env_vars),
        Check("config-prebuild", amplify.CATEGORY, amplify.check_config_prebuild),
    ])


def optimization_engine(table: CompatibilityTable = None) -> Engine:
    table = _table(table)
    return Engine(optimization_registry(table), VersionResolver(table), name=OPTIMIZATION)


def engine_for(panel: str, table: CompatibilityTable = None) -> Engine:
    if panel == NODE_VERSION:
        return node_version_engine(table)
    if panel == PREDEPLOY:
        return predeploy_engine()
    if panel == OPTIMIZATION:
        return optimization_engine(table)
    raise ValueError(f"unknown panel {panel!r}; expected one of {', '.join(PANELS)}")
