"""Tests for Node.js version resolution."""

from __future__ import annotations

import pytest

from amplify_health.models import Status, VersionSource
from amplify_health.versions import (
    Compatibility,
    VersionResolver,
    analyze_versions,
    collect_version_sources,
)


def _src(origin, value):
    return VersionSource(origin=origin, raw_value=value)


@pytest.mark.parametrize("raw,expected", [
    (">=18.0.0", "18"),
    ("18.x", "18"),
    ("v20.11.1", "20"),
    ("lts/*", "20"),
    ("latest", "latest"),
])
def test_normalize(table, raw, expected):
    assert VersionResolver(table).normalize(raw) == expected


def test_local_runtime_excluded_from_conflict_and_authority(table):
    resolver = VersionResolver(table)
    res = resolver.resolve([_src("manifest", "18"), _src("nvmrc", "20"), _src("local", "22")])
    assert res.has_conflict
    assert res.resolved == "20"
    assert res.origin == "nvmrc"
    assert res.major == "20"
    assert res.classification is Compatibility.LTS
    assert res.local_mismatch


def test_ci_outranks_everything_even_when_deprecated(table):
    res = VersionResolver(table).resolve([_src("ci", "16"), _src("nvmrc", "20"), _src("manifest", "18")])
    assert res.resolved == "16"
    assert res.has_conflict
    assert res.classification is Compatibility.DEPRECATED


def test_local_alone_is_never_resolved(table):
    res = VersionResolver(table).resolve([_src("local", "22.1.0")])
    assert res.resolved is None
    assert not res.has_conflict
    assert not res.local_mismatch
    # classified on the platform default
    assert res.major == "18"


def test_agreeing_sources_do_not_conflict(table):
    res = VersionResolver(table).resolve([_src("nvmrc", "20.11.0"), _src("manifest", ">=20"), _src("ci", "20")])
    assert not res.has_conflict


def test_resolve_is_deterministic(table):
    sources = [_src("manifest", "18"), _src("nvmrc", "21"), _src("dockerfile", "16"), _src("local", "22")]
    resolver = VersionResolver(table)
    assert resolver.resolve(sources) == resolver.resolve(list(sources))


def test_unknown_major_is_unsupported(table):
    res = VersionResolver(table).resolve([_src("nvmrc", "12")])
    assert res.classification is Compatibility.UNSUPPORTED
    assert not res.classification.supported


def test_collect_sources_reads_amplify_yml_line(snapshot_of):
    snap = snapshot_of({
        "package.json": {"name": "app", "engines": {"node": ">=18"}},
        ".nvmrc": "20\n",
        "amplify.yml": "version: 1\nfrontend:\n  phases:\n    preBuild:\n      commands:\n        - nvm install 22\n",
        "Dockerfile": "FROM node:16-alpine\n",
    })
    by_origin = {s.origin: s for s in collect_version_sources(snap)}
    assert by_origin["manifest"].raw_value == ">=18"
    assert by_origin["nvmrc"].raw_value == "20"
    assert by_origin["ci"].raw_value == "22"
    assert by_origin["ci"].line == 6
    assert by_origin["dockerfile"].raw_value == "16"
    assert by_origin["local"].raw_value is None


def test_findings_for_unspecified_version(snapshot_of, table):
    snap = snapshot_of({"package.json": {"name": "app"}})
    _, findings = analyze_versions(snap, VersionResolver(table))
    ids = [f.id for f in findings]
    assert ids[0] == "node-version-unspecified"
    assert findings[0].remediation.action_id == "create_nvmrc"
    assert "node-version-consistent" not in ids


def test_findings_for_consistent_version(snapshot_of, table, amplify_yml):
    snap = snapshot_of({"package.json": {"name": "app"}, ".nvmrc": "20", "amplify.yml": amplify_yml})
    _, findings = analyze_versions(snap, VersionResolver(table))
    assert [f.id for f in findings] == ["node-version-compat", "node-version-consistent"]
    assert all(f.status is Status.PASS for f in findings)


def test_unsupported_version_blocks(snapshot_of, table):
    snap = snapshot_of({".nvmrc": "12"})
    _, findings = analyze_versions(snap, VersionResolver(table))
    compat = next(f for f in findings if f.id == "node-version-compat")
    assert compat.status is Status.FAIL
    assert compat.blocking


def test_nvmrc_without_amplify_yml_suggests_creating_one(snapshot_of, table):
    snap = snapshot_of({".nvmrc": "20"})
    _, findings = analyze_versions(snap, VersionResolver(table))
    unused = next(f for f in findings if f.id == "node-version-nvmrc-unused")
    assert unused.status is Status.INFO
    assert unused.remediation.action_id == "create_amplify_yml"
    assert unused.remediation.params == {"node_version": "auto"}


def test_nvm_and_node_version_env_in_amplify_yml_conflict(snapshot_of, table):
    yml = (
        "version: 1\nenv:\n  variables:\n    NODE_VERSION: 20\nfrontend:\n  phases:\n    preBuild:\n"
        "      commands:\n        - nvm use 18\n"
    )
    snap = snapshot_of({"amplify.yml": yml})
    by_origin = {s.origin: s for s in collect_version_sources(snap)}
    assert by_origin["ci"].raw_value == "18"
    assert by_origin["ci-env"].raw_value == "20"
    res, findings = analyze_versions(snap, VersionResolver(table))
    assert res.origin == "ci" and res.major == "18"
    assert res.has_conflict
    assert "node-version-conflict" in [f.id for f in findings]
