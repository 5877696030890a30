"""
AWS client factory
==================
boto3 clients for Cost Explorer, Compute Optimizer and STS.

Credentials: static keys from settings win over the default chain. When
AWS_ROLE_ARN is set, the role is assumed once and the temporary credentials
are reused by every client (the collector builds several clients in
parallel) until they are within REFRESH_MARGIN of expiring.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import boto3
from botocore.config import Config

from cost_insight.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


# Cost Explorer throttles hard; adaptive mode backs off on 429s
_BOTO_RETRY_CONFIG = Config(
    retries={"max_attempts": 3, "mode": "adaptive"},
    connect_timeout=10,
    read_timeout=30,
)

ROLE_SESSION_NAME = "CostInsightCollector"
REFRESH_MARGIN = timedelta(minutes=5)

_role_lock = threading.Lock()
_role_credentials: dict[str, dict[str, Any]] = {}


def _base_session(settings: Settings, region: str) -> boto3.Session:
    kwargs: dict[str, Any] = {"region_name": region}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
        if settings.aws_session_token:
            kwargs["aws_session_token"] = settings.aws_session_token
    return boto3.Session(**kwargs)


def _assumed_credentials(settings: Settings, region: str) -> dict[str, Any]:
    role_arn = settings.aws_role_arn
    with _role_lock:
        creds = _role_credentials.get(role_arn)
        if creds is None or creds["Expiration"] - REFRESH_MARGIN <= datetime.now(tz=timezone.utc):
            logger.info(f"Assuming IAM role {role_arn}")
            sts = _base_session(settings, region).client("sts", config=_BOTO_RETRY_CONFIG)
            creds = sts.assume_role(RoleArn=role_arn, RoleSessionName=ROLE_SESSION_NAME)["Credentials"]
            _role_credentials[role_arn] = creds
        return creds


def clear_role_credentials() -> None:
    with _role_lock:
        _role_credentials.clear()


def get_boto3_session(region: Optional[str] = None, settings: Optional[Settings] = None) -> boto3.Session:
    settings = settings or get_settings()
    effective_region = region or settings.aws_default_region
    if not settings.aws_role_arn:
        return _base_session(settings, effective_region)

    creds = _assumed_credentials(settings, effective_region)
    return boto3.Session(
        aws_access_key_id=creds["AccessKeyId"],
        aws_secret_access_key=creds["SecretAccessKey"],
        aws_session_token=creds["SessionToken"],
        region_name=effective_region,
    )


def get_client(service: str, region: Optional[str] = None, settings: Optional[Settings] = None) -> Any:
    """boto3 client for service/region with the shared retry config."""
    session = get_boto3_session(region, settings)
    return session.client(service, config=_BOTO_RETRY_CONFIG)
