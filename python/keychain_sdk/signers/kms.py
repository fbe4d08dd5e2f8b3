"""
Location: python/keychain_sdk/signers/kms.py

Summary:
    AWS KMS signer. Uses an asymmetric KMS key with key spec
    ECC_NIST_EDWARDS25519 to produce Ed25519 signatures. The private key
    never leaves KMS.

Usage:
    Create the key with:

        aws kms create-key \\
            --key-spec ECC_NIST_EDWARDS25519 \\
            --key-usage SIGN_VERIFY

    Credentials come from boto3's default chain unless static credentials
    are configured. boto3 calls are blocking and run on the event loop's
    default executor.

Example:
    from keychain_sdk.signers import AwsKmsSigner

    signer = AwsKmsSigner(
        key_id="arn:aws:kms:us-east-1:123456789:key/abc123",
        public_key="4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T",
        region="us-east-1",
    )
"""

import asyncio
import logging
from typing import Any, Optional, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..encoding import parse_public_key, signature_from_bytes
from ..errors import ConfigError, RemoteApiError, SigningFailedError
from ..signer import BaseSigner
from ..types import AwsKmsSignerConfig, load_config


logger = logging.getLogger(__name__)

SIGNING_ALGORITHM = "ED25519_SHA_512"
MESSAGE_TYPE = "RAW"
REQUIRED_KEY_SPEC = "ECC_NIST_EDWARDS25519"
REQUIRED_KEY_USAGE = "SIGN_VERIFY"
REQUIRED_KEY_STATE = "Enabled"


def create_kms_client(config: AwsKmsSignerConfig) -> Any:
    """
    Create a boto3 KMS client from the signer config.

    Raises:
        ConfigError: If boto3 cannot build a client (e.g. no region)
    """
    kwargs: dict[str, Any] = {}
    if config.region:
        kwargs["region_name"] = config.region
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    if config.credentials:
        kwargs["aws_access_key_id"] = config.credentials.access_key_id
        kwargs["aws_secret_access_key"] = config.credentials.secret_access_key
        if config.credentials.session_token:
            kwargs["aws_session_token"] = config.credentials.session_token

    try:
        return boto3.client("kms", **kwargs)
    except BotoCoreError as e:
        raise ConfigError(f"Failed to create AWS KMS client: {e}") from e


class AwsKmsSigner(BaseSigner):
    """
    Signer backed by an AWS KMS Ed25519 key.

    Attributes:
        config: The signer configuration (secret key hidden from repr)
    """

    backend = "aws_kms"

    def __init__(
        self,
        config: Union[AwsKmsSignerConfig, dict, None] = None,
        *,
        client: Optional[Any] = None,
        **kwargs,
    ):
        """
        Initialize the KMS signer.

        Args:
            config: AwsKmsSignerConfig or equivalent mapping
            client: Optional pre-built boto3 KMS client
            **kwargs: Config fields, when config is not given

        Raises:
            ConfigError: If the config or public key is invalid
        """
        self.config = load_config(AwsKmsSignerConfig, config, kwargs)
        super().__init__(self.config.request_delay_ms)
        self._pubkey = parse_public_key(self.config.public_key)
        self._client = client if client is not None else create_kms_client(self.config)

    def pubkey(self) -> Pubkey:
        return self._pubkey

    async def _call(self, operation: str, **params: Any) -> dict:
        loop = asyncio.get_running_loop()
        method = getattr(self._client, operation)
        return await loop.run_in_executor(None, lambda: method(**params))

    async def _sign_bytes(self, message: bytes) -> Signature:
        try:
            response = await self._call(
                "sign",
                KeyId=self.config.key_id,
                Message=message,
                MessageType=MESSAGE_TYPE,
                SigningAlgorithm=SIGNING_ALGORITHM,
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            logger.error("AWS KMS Sign failed - code: %s, status: %s", error.get("Code"), status)
            raise RemoteApiError(
                f"AWS KMS Sign operation failed: {error.get('Message') or error.get('Code', 'unknown error')}",
                status=status,
            ) from e
        except BotoCoreError as e:
            logger.error("AWS KMS Sign failed: %s", type(e).__name__)
            raise RemoteApiError(f"AWS KMS Sign operation failed: {e}") from e

        signature = response.get("Signature")
        if not signature:
            raise SigningFailedError("No signature in AWS KMS response")
        return signature_from_bytes(bytes(signature), "AWS KMS signature")

    async def is_available(self) -> bool:
        """
        Check that the key exists, is enabled and is an Ed25519 signing key.

        Returns:
            True only for an enabled ECC_NIST_EDWARDS25519 SIGN_VERIFY key
        """
        try:
            response = await self._call("describe_key", KeyId=self.config.key_id)
        except (ClientError, BotoCoreError) as e:
            logger.debug("AWS KMS availability check failed: %s", type(e).__name__)
            return False

        metadata = response.get("KeyMetadata")
        if not metadata:
            return False
        return (
            metadata.get("KeySpec") == REQUIRED_KEY_SPEC
            and metadata.get("KeyUsage") == REQUIRED_KEY_USAGE
            and metadata.get("KeyState") == REQUIRED_KEY_STATE
        )
