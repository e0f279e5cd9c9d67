"""Configuration health and remediation engine for AWS Amplify projects."""

__version__ = "0.3.0"
