"""
Secrets lookup used to load the credential keyring.
Supports environment variables and AWS Secrets Manager.
"""
import os
import json
import logging
from typing import Optional, Dict, Any
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class SecretsProvider(ABC):
    """Where secrets come from"""

    @abstractmethod
    def get_secret(self, secret_name: str) -> Optional[str]:
        pass

    def get_secret_dict(self, secret_name: str) -> Optional[Dict[str, Any]]:
        """Secret stored as a JSON object"""
        value = self.get_secret(secret_name)
        if not value:
            return None
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            logger.error(f"Secret {secret_name} is not valid JSON")
            return None
        if not isinstance(parsed, dict):
            logger.error(f"Secret {secret_name} is not a JSON object")
            return None
        return parsed


class EnvironmentSecretsProvider(SecretsProvider):
    """Reads secrets from environment variables"""

    def get_secret(self, secret_name: str) -> Optional[str]:
        return os.getenv(secret_name)


class AWSSecretsManagerProvider(SecretsProvider):
    """Reads secrets from AWS Secrets Manager (requires the `aws` extra)"""

    def __init__(self, region_name: str = "us-east-1"):
        try:
            import boto3
            from botocore.exceptions import ClientError
        except ImportError:
            logger.error("boto3 not installed. Install with: pip install ordersync[aws]")
            raise
        self.client = boto3.client('secretsmanager', region_name=region_name)
        self.ClientError = ClientError
        logger.info(f"AWS Secrets Manager initialized for region {region_name}")

    def get_secret(self, secret_name: str) -> Optional[str]:
        try:
            response = self.client.get_secret_value(SecretId=secret_name)
            return response.get('SecretString')
        except self.ClientError as e:
            logger.error(f"Error getting secret {secret_name} from AWS: {e}")
            return None


def get_secrets_provider(provider: str = "env", **kwargs) -> SecretsProvider:
    """
    Build a secrets provider

    Args:
        provider: "env" or "aws"
        **kwargs: region_name for AWS
    """
    provider_type = provider.lower()

    if provider_type == "env":
        return EnvironmentSecretsProvider()
    if provider_type == "aws":
        return AWSSecretsManagerProvider(region_name=kwargs.get("region_name", "us-east-1"))

    raise ValueError(f"Unknown secrets provider: {provider}")
