"""
Configuration loader for the NSK booking SDK

Reads connection and polling settings from the environment and fetches the
API subscription key from the environment, a local secrets file, or AWS
Secrets Manager (with exponential backoff), plus logging redaction for
loaded secrets.
"""

import json
import logging
import os
import time
from typing import Any, Dict, Optional

import boto3
import requests
from botocore.exceptions import ClientError

from nsk_booking.api.booking import BookingApi
from nsk_booking.api.executor import RequestExecutor
from nsk_booking.commit.backoff import BackoffPolicy
from nsk_booking.commit.orchestrator import CommitOrchestrator
from nsk_booking.session.guard import SessionGuard
from nsk_booking.utils.logger import PACKAGE_LOGGER
from nsk_booking.validation.rules import DEFAULT_COMMIT_RULESET, load_ruleset

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


# NOTE: This is a secret NAME, not a secret VALUE. The value lives in AWS Secrets Manager.
NSK_SECRET_ID = os.getenv("NSK_SECRET_ID", "nsk-booking/api-credentials")  # nosec B105

DEFAULT_BASE_URL = "https://jmtest.booking.jambojet.com/jm/dotrez/"
DEFAULT_REGION = "eu-west-1"


def _use_local_secrets() -> bool:
    return os.getenv("USE_LOCAL_SECRETS_FILE", "false").lower() == "true"


def _local_secrets_file() -> str:
    return os.getenv("LOCAL_SECRETS_FILE_PATH", ".local/secrets.json")


class SecretRedactionFilter(logging.Filter):
    """
    Logging filter that replaces known secret values with ***REDACTED***.
    """

    def __init__(self, secrets: Optional[Dict[str, Any]] = None):
        """
        Initialize filter with secrets to redact.

        Args:
            secrets: Dictionary of secrets to redact (values will be masked)
        """
        super().__init__()
        self.secrets = secrets or {}
        self.redacted_values: set[str] = set()
        if self.secrets:
            self._extract_secret_values(self.secrets)

    def _extract_secret_values(self, obj: Any, max_depth: int = 5) -> None:
        """Recursively collect secret strings from nested structures."""
        if max_depth <= 0:
            return

        if isinstance(obj, dict):
            for value in obj.values():
                self._extract_secret_values(value, max_depth - 1)
        elif isinstance(obj, (list, tuple)):
            for item in obj:
                self._extract_secret_values(item, max_depth - 1)
        elif isinstance(obj, str) and len(obj) > 3:
            self.redacted_values.add(obj)

    def add_secret(self, value: Optional[str]) -> None:
        if value and len(value) > 3:
            self.redacted_values.add(value)

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.msg = self._redact_string(str(record.msg))
            if record.args:
                if isinstance(record.args, dict):
                    record.args = {k: self._redact_string(str(v)) for k, v in record.args.items()}
                elif isinstance(record.args, (list, tuple)):
                    record.args = tuple(self._redact_string(str(arg)) for arg in record.args)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Error during secret redaction: {e}")
        return True

    def _redact_string(self, text: str) -> str:
        # Longest first so a secret containing another is fully masked
        for secret in sorted(self.redacted_values, key=len, reverse=True):
            if secret in text:
                text = text.replace(secret, "***REDACTED***")
        return text


class Settings:
    """
    SDK configuration.

    Environment variables:
        NSK_BASE_URL: API root URL
        NSK_SUBSCRIPTION_KEY: Ocp-Apim-Subscription-Key (overrides secret stores)
        NSK_TIMEOUT: Per-request timeout in seconds (default 30)
        NSK_ENVIRONMENT: test, staging or production (default test)
        NSK_POLL_BASE_DELAY: First commit status poll delay (default 0.5)
        NSK_POLL_MAX_DELAY: Poll delay cap (default 10)
        NSK_POLL_TIMEOUT: Default commit poll timeout (default 120)
        NSK_MAX_TRANSIENT_RETRIES: Transient status failures tolerated (default 5)
        NSK_COMMIT_RULESET: Optional path to a YAML commit ruleset
        NSK_AWS_REGION: Region for Secrets Manager (default eu-west-1)
    """

    ENVIRONMENTS = ("test", "staging", "production")

    def __init__(self, region_name: Optional[str] = None):
        self.region_name = region_name or os.getenv("NSK_AWS_REGION", DEFAULT_REGION)
        self.secrets_client = None
        self._subscription_key: Optional[str] = os.getenv("NSK_SUBSCRIPTION_KEY") or None

        self.base_url = os.getenv("NSK_BASE_URL", DEFAULT_BASE_URL)
        if not self.base_url:
            raise ConfigurationError("NSK_BASE_URL must not be empty")

        self.environment = os.getenv("NSK_ENVIRONMENT", "test").lower()
        if self.environment not in self.ENVIRONMENTS:
            raise ConfigurationError(
                f"NSK_ENVIRONMENT must be one of {', '.join(self.ENVIRONMENTS)}; "
                f"got '{self.environment}'"
            )

        self.timeout = self._env_float("NSK_TIMEOUT", 30.0)
        self.poll_base_delay = self._env_float("NSK_POLL_BASE_DELAY", 0.5)
        self.poll_max_delay = self._env_float("NSK_POLL_MAX_DELAY", 10.0)
        self.poll_timeout = self._env_float("NSK_POLL_TIMEOUT", 120.0)
        self.max_transient_retries = int(self._env_float("NSK_MAX_TRANSIENT_RETRIES", 5))
        self.commit_ruleset_path = os.getenv("NSK_COMMIT_RULESET") or None

    @staticmethod
    def _env_float(name: str, default: float) -> float:
        raw = os.getenv(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            value = float(raw)
        except ValueError as e:
            raise ConfigurationError(f"{name} must be a number; got '{raw}'") from e
        if value < 0:
            raise ConfigurationError(f"{name} must be non-negative; got {value}")
        return value

    def _get_secrets_client(self):
        """Lazy initialize Secrets Manager client."""
        if self.secrets_client is None:
            self.secrets_client = boto3.client("secretsmanager", region_name=self.region_name)
        return self.secrets_client

    def _get_secret_value(
        self, secret_id: str, max_retries: int = 3, base_wait: float = 1.0
    ) -> Dict[str, Any]:
        """
        Fetch secret from Secrets Manager with exponential backoff.

        Args:
            secret_id: Secret identifier in Secrets Manager
            max_retries: Maximum number of retry attempts
            base_wait: Base wait time in seconds for exponential backoff

        Returns:
            Parsed secret JSON as dictionary

        Raises:
            ConfigurationError: If secret cannot be retrieved after retries
        """
        client = self._get_secrets_client()

        for attempt in range(max_retries):
            try:
                response = client.get_secret_value(SecretId=secret_id)
                secret_string = response.get("SecretString")
                if not secret_string:
                    raise ConfigurationError(f"Secret '{secret_id}' has empty value")
                return json.loads(secret_string)
            except ClientError as e:
                error_code = e.response["Error"]["Code"]
                if error_code == "ResourceNotFoundException":
                    raise ConfigurationError(
                        f"Secret '{secret_id}' not found in Secrets Manager "
                        f"(region {self.region_name})"
                    ) from e
                elif error_code in ("AccessDeniedException", "UnauthorizedOperation"):
                    raise ConfigurationError(
                        f"Access denied to secret '{secret_id}'. "
                        f"Verify the role has secretsmanager:GetSecretValue permission"
                    ) from e
                elif error_code == "DecryptionFailure":
                    raise ConfigurationError(
                        f"Failed to decrypt secret '{secret_id}'. Verify KMS key permissions"
                    ) from e
                elif attempt < max_retries - 1:
                    wait_time = base_wait * (2**attempt)
                    logger.warning(
                        f"Transient error fetching secret {secret_id}: {error_code}. "
                        f"Retrying in {wait_time}s (attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                else:
                    raise ConfigurationError(
                        f"Failed to retrieve secret '{secret_id}' after {max_retries} "
                        f"attempts: {error_code}"
                    ) from e
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Secret '{secret_id}' contains invalid JSON: {e}") from e

        raise ConfigurationError(
            f"Failed to retrieve secret '{secret_id}' - exhausted all retry attempts"
        )

    @staticmethod
    def _load_from_local_file(filepath: str) -> Dict[str, Any]:
        """
        Load secrets from a local JSON file for development.

        Raises:
            ConfigurationError: If the file is missing or contains invalid JSON
        """
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Local secrets file not found: {filepath}. Set NSK_SUBSCRIPTION_KEY, "
                f"or USE_LOCAL_SECRETS_FILE=true with LOCAL_SECRETS_FILE_PATH"
            ) from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Local secrets file contains invalid JSON: {e}") from e

    def load_api_credentials(self) -> Dict[str, str]:
        """
        Load API credentials from the local secrets file or Secrets Manager.

        Returns:
            Dictionary with a 'subscription_key' entry

        Raises:
            ConfigurationError: If credentials cannot be loaded or lack required keys
        """
        if _use_local_secrets():
            credentials = self._load_from_local_file(_local_secrets_file()).get("nsk", {})
        else:
            credentials = self._get_secret_value(NSK_SECRET_ID)

        if not credentials.get("subscription_key"):
            raise ConfigurationError(
                f"NSK credentials missing required keys. Expected: subscription_key. "
                f"Got: {sorted(credentials.keys())}"
            )
        return credentials

    @property
    def subscription_key(self) -> str:
        """Subscription key; NSK_SUBSCRIPTION_KEY wins over secret stores."""
        if self._subscription_key is None:
            self._subscription_key = self.load_api_credentials()["subscription_key"]
        return self._subscription_key

    def backoff_policy(self) -> BackoffPolicy:
        try:
            return BackoffPolicy(
                base_delay=self.poll_base_delay,
                max_delay=self.poll_max_delay,
                max_transient_retries=self.max_transient_retries,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid poll backoff settings: {e}") from e

    def build_executor(self, session: Optional[requests.Session] = None) -> RequestExecutor:
        return RequestExecutor(
            base_url=self.base_url,
            subscription_key=self.subscription_key,
            session=session,
            timeout=self.timeout,
        )

    def build_orchestrator(
        self,
        session: Optional[requests.Session] = None,
        guard: Optional[SessionGuard] = None,
    ) -> CommitOrchestrator:
        """Wire executor, booking endpoints, guard and poll policy from this configuration."""
        ruleset = (
            load_ruleset(self.commit_ruleset_path)
            if self.commit_ruleset_path
            else DEFAULT_COMMIT_RULESET
        )
        return CommitOrchestrator(
            BookingApi(self.build_executor(session)),
            guard=guard,
            ruleset=ruleset,
            backoff=self.backoff_policy(),
            default_timeout=self.poll_timeout,
        )

    def setup_redaction_filter(self, logger_instance: logging.Logger) -> SecretRedactionFilter:
        """
        Attach a SecretRedactionFilter holding every secret this configuration knows.

        The filter goes on the logger and on its current handlers. Logger
        filters only see records logged directly on that logger; records
        propagated from child loggers are redacted by the handler filters.
        """
        redaction_filter = SecretRedactionFilter()
        try:
            redaction_filter.add_secret(self.subscription_key)
        except ConfigurationError as e:
            logger.warning(f"Redaction filter created without subscription key: {e}")

        logger_instance.addFilter(redaction_filter)
        for handler in logger_instance.handlers:
            handler.addFilter(redaction_filter)
        return redaction_filter


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()


def setup_logging_redaction(settings: Optional[Settings] = None) -> SecretRedactionFilter:
    """
    Setup logging redaction for the root logger and the SDK package logger.

    SDK records reach either the root handlers (default propagation) or the
    console handler from ``enable_console_logging``; both are filtered.
    Call after the handlers are configured.
    """
    redaction_filter = (settings or get_settings()).setup_redaction_filter(logging.getLogger())
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        handler.addFilter(redaction_filter)
    return redaction_filter
