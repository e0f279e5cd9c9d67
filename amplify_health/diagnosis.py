"""Wrapper around the external `amplify-monitor` CLI (apps, jobs, diagnosis, env vars)."""
from __future__ import annotations

import json
import logging
import subprocess
import time
from typing import Any, Dict, List, Optional

from amplify_health import config
from amplify_health.errors import CliError

logger = logging.getLogger(__name__)


class AmplifyMonitorCli:
    """Each call runs `<cli> --format json [--profile P] [--region R] <args>` and parses stdout."""

    def __init__(self, cli_path: str = None, timeout: float = None):
        self.cli_path = cli_path or config.CLI_PATH
        self.timeout = timeout or config.CLI_TIMEOUT

    def run_command(self, args: List[str], region: str = None, profile: str = None) -> Any:
        full_args = [self.cli_path, "--format", "json"]
        if profile:
            full_args += ["--profile", profile]
        if region:
            full_args += ["--region", region]
        full_args += list(args)

        t0 = time.time()
        try:
            proc = subprocess.run(full_args, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            raise CliError(
                f'amplify-monitor CLI not found at "{self.cli_path}". Please install it first.'
            ) from None
        except subprocess.TimeoutExpired:
            raise CliError(f"amplify-monitor {args[0] if args else ''} timed out after {self.timeout}s") from None
        logger.info("[timing] amplify-monitor %s: %.2fs (exit %d)", " ".join(args[:1]), time.time() - t0, proc.returncode)

        if proc.returncode != 0:
            raise CliError((proc.stderr or "").strip() or f"amplify-monitor exited with code {proc.returncode}")
        try:
            return json.loads(proc.stdout)
        except ValueError as e:
            raise CliError(f"amplify-monitor returned invalid JSON: {e}") from e

    def list_apps(self, all_regions: bool = True, region: str = None, profile: str = None) -> List[Dict[str, Any]]:
        args = ["apps"]
        if all_regions and not region:
            args.append("--all-regions")
        return self.run_command(args, region, profile)

    def list_branches(self, app_id: str, region: str = None, profile: str = None) -> List[Dict[str, Any]]:
        return self.run_command(["branches", "--app-id", app_id], region, profile)

    def list_jobs(self, app_id: str, branch: str, region: str = None, profile: str = None) -> List[Dict[str, Any]]:
        return self.run_command(["jobs", "--app-id", app_id, "--branch", branch], region, profile)

    def diagnose(self, app_id: str, branch: str, job_id: str = None, region: str = None, profile: str = None):
        args = ["diagnose", "--app-id", app_id, "--branch", branch]
        if job_id:
            args += ["--job-id", job_id]
        return self.run_command(args, region, profile)

    def get_latest_failed(self, app_id: str, branch: str, region: str = None,
                          profile: str = None) -> Optional[Dict[str, Any]]:
        """Latest failed job, or None when there is none or the CLI fails."""
        try:
            return self.run_command(["latest-failed", "--app-id", app_id, "--branch", branch], region, profile)
        except CliError as e:
            logger.info("latest-failed for %s/%s unavailable: %s", app_id, branch, e)
            return None

    def get_env_variables(self, app_id: str, branch: str, region: str = None, profile: str = None):
        return self.run_command(["env-vars", "--app-id", app_id, "--branch", branch], region, profile)

    def set_env_variable(self, app_id: str, branch: str, name: str, value: str,
                         region: str = None, profile: str = None):
        return self.run_command(
            ["set-env", "--app-id", app_id, "--branch", branch, "--name", name, "--value", value], region, profile,
        )

    def delete_env_variable(self, app_id: str, branch: str, name: str, region: str = None, profile: str = None):
        return self.run_command(
            ["delete-env", "--app-id", app_id, "--branch", branch, "--name", name], region, profile,
        )

    def start_build(self, app_id: str, branch: str, region: str = None, profile: str = None):
        return self.run_command(["start-build", "--app-id", app_id, "--branch", branch], region, profile)

    def stop_build(self, app_id: str, branch: str, job_id: str, region: str = None, profile: str = None):
        return self.run_command(
            ["stop-build", "--app-id", app_id, "--branch", branch, "--job-id", job_id], region, profile,
        )

    def analyze_migration(self, project_path: str):
        return self.run_command(["migration-analysis", "--path", project_path])
