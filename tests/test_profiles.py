"""Tests for AWS profile listing and validation, with boto3 sessions faked out."""

from __future__ import annotations

from botocore.exceptions import ProfileNotFound

from amplify_health import profiles

REGIONS = {None: None, "default": "us-west-2", "dev": None, "prod": "eu-west-1"}


class FakeSTS:
    def get_caller_identity(self):
        return {"Account": "123456789012", "Arn": "arn:aws:iam::123456789012:user/dev"}


class FakeSession:
    def __init__(self, profile_name=None):
        if profile_name == "missing":
            raise ProfileNotFound(profile=profile_name)
        self.region_name = REGIONS.get(profile_name)
        self.available_profiles = ["prod", "dev", "default"]

    def client(self, service):
        assert service == "sts"
        return FakeSTS()


def _fake_boto(monkeypatch):
    monkeypatch.setattr(profiles.boto3.session, "Session", FakeSession)
    monkeypatch.delenv("AWS_REGION", raising=False)


def test_list_profiles_default_first(monkeypatch):
    _fake_boto(monkeypatch)
    assert profiles.list_profiles() == [
        {"name": "default", "region": "us-west-2"},
        {"name": "dev", "region": "us-east-1"},
        {"name": "prod", "region": "eu-west-1"},
    ]


def test_default_region_falls_back_to_env(monkeypatch):
    _fake_boto(monkeypatch)
    monkeypatch.setenv("AWS_REGION", "ap-south-1")
    assert profiles.default_region("dev") == "ap-south-1"
    assert profiles.default_region("missing") == "ap-south-1"


def test_validate_profile(monkeypatch):
    _fake_boto(monkeypatch)
    assert profiles.validate_profile("dev") == {
        "name": "dev", "valid": True, "accountId": "123456789012", "arn": "arn:aws:iam::123456789012:user/dev",
    }
    bad = profiles.validate_profile("missing")
    assert bad["valid"] is False and "missing" in bad["error"]
