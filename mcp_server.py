# mcp_server.py
from mcp.server.fastmcp import FastMCP
import logging
import os
import threading
import time

from amplify_health import config, panels, profiles
from amplify_health.config import load_compatibility_table
from amplify_health.diagnosis import AmplifyMonitorCli
from amplify_health.errors import AmplifyHealthError
from amplify_health.remediation import RemediationDispatcher
from amplify_health.session import AnalysisSession

config.configure_logging()
logger = logging.getLogger("amplify_health.mcp")

mcp = FastMCP("amplify-health", host="0.0.0.0", stateless_http=True)

# Expose ASGI app for HTTP hosting
app = mcp.streamable_http_app

# One AnalysisSession per (project path, panel) for the life of the server process.
_sessions = {}
_sessions_lock = threading.Lock()

READONLY_ERROR = "Server is in read-only mode. {what} is disabled. Set MCP_READONLY=false to allow."


def _log_timing(stage: str, tool: str, t_start: float, t_end: float = None, extra: str = ""):
    """Log duration for a stage (seconds)."""
    t_end = t_end or time.time()
    duration_s = round(t_end - t_start, 2)
    msg = f"[timing] {tool} | {stage}: {duration_s}s"
    if extra:
        msg += f" | {extra}"
    logger.info(msg)


def _readonly(what: str):
    if config.READONLY_MODE:
        return {"success": False, "error": READONLY_ERROR.format(what=what)}
    return None


def get_session(project_path: str, panel: str) -> AnalysisSession:
    """Get or create the session for a project/panel pair."""
    root = os.path.realpath(project_path)
    key = (root, panel)
    with _sessions_lock:
        session = _sessions.get(key)
        if session is None:
            table = load_compatibility_table()
            session = AnalysisSession(
                root,
                panels.engine_for(panel, table),
                RemediationDispatcher(root, node_version=table.recommended),
            )
            _sessions[key] = session
        return session


def get_cli():
    return AmplifyMonitorCli(config.CLI_PATH, config.CLI_TIMEOUT)


def _analyze(project_path: str, panel: str, tool: str) -> dict:
    t0 = time.time()
    try:
        report = get_session(project_path, panel).analyze()
    except (AmplifyHealthError, ValueError) as e:
        _log_timing("total", tool, t0)
        return {"success": False, "error": str(e)}
    _log_timing("total", tool, t0, extra=f"score={report.score} can_proceed={report.can_proceed}")
    return {"success": True, "report": report.to_dict()}


@mcp.tool()
def analyze_node_version(project_path: str) -> dict:
    """
    Resolve which Node.js version an Amplify build will use and check it against
    the supported versions.

    Args:
        project_path: Absolute path to the project root.

    Returns:
        dict with report (findings, summary, score, canProceed).
    """
    return _analyze(project_path, panels.NODE_VERSION, "analyze_node_version")


@mcp.tool()
def run_predeploy_validation(project_path: str) -> dict:
    """
    Run pre-deploy validation: git sync, dependencies, build, env files and amplify.yml.
    canProceed is false while any blocking failure remains.

    Args:
        project_path: Absolute path to the project root.
    """
    return _analyze(project_path, panels.PREDEPLOY, "run_predeploy_validation")


@mcp.tool()
def run_build_optimization(project_path: str) -> dict:
    """
    Score build settings for speed: caching, dependencies, build flags, assets and config.

    Args:
        project_path: Absolute path to the project root.
    """
    return _analyze(project_path, panels.OPTIMIZATION, "run_build_optimization")


@mcp.tool()
def apply_remediation(project_path: str, action_id: str, params: dict = None, panel: str = "predeploy") -> dict:
    """
    Apply a remediation referenced by a finding (finding.remediation.actionId / params).

    Args:
        project_path: Absolute path to the project root.
        action_id: Remediation action id (see list_remediations).
        params: Action parameters from the finding.
        panel: Which analysis to re-run after a file change: node_version, predeploy or optimization.

    Returns:
        dict with result (changed, pending, message) and, for file changes, a fresh report.
        Shell actions return pending=true; run the analysis again when they finish.
    """
    denied = _readonly("Remediation")
    if denied:
        return denied
    t0 = time.time()
    try:
        result, report = get_session(project_path, panel).apply(action_id, params or {})
    except (AmplifyHealthError, ValueError) as e:
        _log_timing("total", "apply_remediation", t0)
        return {"success": False, "error": str(e)}
    _log_timing("total", "apply_remediation", t0, extra=action_id)
    out = {"success": True, "result": result.to_dict()}
    if report is not None:
        out["report"] = report.to_dict()
    return out


@mcp.tool()
def list_remediations() -> dict:
    """List every remediation action with its operation kind and target file."""
    return {"success": True, "actions": RemediationDispatcher.catalogue()}


@mcp.tool()
def list_aws_profiles() -> dict:
    """List AWS profiles from ~/.aws/config and ~/.aws/credentials with their regions."""
    try:
        return {"success": True, "profiles": profiles.list_profiles()}
    except Exception as e:
        return {"success": False, "error": str(e)}


@mcp.tool()
def validate_aws_profile(profile: str) -> dict:
    """Check that a profile's credentials work (sts:GetCallerIdentity)."""
    result = profiles.validate_profile(profile)
    return {"success": result["valid"], **result}


def _cli_call(tool: str, fn, *args, **kwargs) -> dict:
    t0 = time.time()
    try:
        data = fn(*args, **kwargs)
    except AmplifyHealthError as e:
        _log_timing("total", tool, t0)
        return {"success": False, "error": str(e)}
    _log_timing("total", tool, t0)
    return {"success": True, "data": data}


@mcp.tool()
def amplify_list_apps(region: str = None, profile: str = None, all_regions: bool = True) -> dict:
    """
    List Amplify apps.

    Args:
        region: AWS region; when omitted and all_regions is true, every region is scanned.
        profile: AWS profile name.
        all_regions: Scan all regions when no region is given.
    """
    return _cli_call("amplify_list_apps", get_cli().list_apps, all_regions, region, profile)


@mcp.tool()
def amplify_list_branches(app_id: str, region: str = None, profile: str = None) -> dict:
    """List branches of an Amplify app."""
    return _cli_call("amplify_list_branches", get_cli().list_branches, app_id, region, profile)


@mcp.tool()
def amplify_list_jobs(app_id: str, branch: str, region: str = None, profile: str = None) -> dict:
    """List recent build jobs for a branch."""
    return _cli_call("amplify_list_jobs", get_cli().list_jobs, app_id, branch, region, profile)


@mcp.tool()
def amplify_diagnose(app_id: str, branch: str, job_id: str = None, region: str = None, profile: str = None) -> dict:
    """
    Diagnose a build job: known failure patterns, root causes and suggested fixes.

    Args:
        app_id: Amplify app id.
        branch: Branch name.
        job_id: Job to diagnose; the latest failed job when omitted.
    """
    return _cli_call("amplify_diagnose", get_cli().diagnose, app_id, branch, job_id, region, profile)


@mcp.tool()
def amplify_get_latest_failed(app_id: str, branch: str, region: str = None, profile: str = None) -> dict:
    """Latest failed job for a branch; job is null when there is none."""
    job = get_cli().get_latest_failed(app_id, branch, region, profile)
    return {"success": True, "job": job}


@mcp.tool()
def amplify_get_env_vars(app_id: str, branch: str, region: str = None, profile: str = None) -> dict:
    """List branch environment variables."""
    return _cli_call("amplify_get_env_vars", get_cli().get_env_variables, app_id, branch, region, profile)


@mcp.tool()
def amplify_set_env_var(app_id: str, branch: str, name: str, value: str,
                        region: str = None, profile: str = None) -> dict:
    """Set a branch environment variable."""
    denied = _readonly("Setting environment variables")
    if denied:
        return denied
    return _cli_call("amplify_set_env_var", get_cli().set_env_variable, app_id, branch, name, value, region, profile)


@mcp.tool()
def amplify_delete_env_var(app_id: str, branch: str, name: str, region: str = None, profile: str = None) -> dict:
    """Delete a branch environment variable."""
    denied = _readonly("Deleting environment variables")
    if denied:
        return denied
    return _cli_call("amplify_delete_env_var", get_cli().delete_env_variable, app_id, branch, name, region, profile)


@mcp.tool()
def amplify_start_build(app_id: str, branch: str, region: str = None, profile: str = None) -> dict:
    """Start a new build job for a branch."""
    denied = _readonly("Starting builds")
    if denied:
        return denied
    return _cli_call("amplify_start_build", get_cli().start_build, app_id, branch, region, profile)


@mcp.tool()
def amplify_stop_build(app_id: str, branch: str, job_id: str, region: str = None, profile: str = None) -> dict:
    """Stop a running build job."""
    denied = _readonly("Stopping builds")
    if denied:
        return denied
    return _cli_call("amplify_stop_build", get_cli().stop_build, app_id, branch, job_id, region, profile)


@mcp.tool()
def amplify_analyze_migration(project_path: str) -> dict:
    """Analyze a Gen 1 Amplify project for Gen 2 migration readiness."""
    return _cli_call("amplify_analyze_migration", get_cli().analyze_migration, project_path)


if __name__ == "__main__":
    mcp.run(transport=config.TRANSPORT)
