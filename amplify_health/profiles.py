"""AWS profiles from the shared config/credentials files."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

FALLBACK_REGION = "us-east-1"


def default_region(profile: str = None) -> str:
    """Configured region for `profile`, else AWS_REGION, else us-east-1."""
    try:
        region = boto3.session.Session(profile_name=profile).region_name
    except BotoCoreError as e:
        logger.info("cannot load profile %s: %s", profile, e)
        region = None
    return region or os.environ.get("AWS_REGION") or FALLBACK_REGION


def list_profiles() -> List[Dict[str, Any]]:
    """Profiles known to botocore, sorted with "default" first. No API calls."""
    names = boto3.session.Session().available_profiles
    names = sorted(names, key=lambda n: (n != "default", n))
    return [{"name": name, "region": default_region(name)} for name in names]


def validate_profile(profile: str) -> Dict[str, Any]:
    """Resolve the profile's identity with sts:GetCallerIdentity."""
    try:
        sts = boto3.session.Session(profile_name=profile).client("sts")
        identity = sts.get_caller_identity()
    except (BotoCoreError, ClientError) as e:
        return {"name": profile, "valid": False, "error": str(e)}
    return {
        "name": profile,
        "valid": True,
        "accountId": identity.get("Account"),
        "arn": identity.get("Arn"),
    }
