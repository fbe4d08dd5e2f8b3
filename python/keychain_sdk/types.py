"""
Location: python/keychain_sdk/types.py

Summary:
    Pydantic configuration models for keychain-sdk. Defines one immutable
    config model per signer backend and the discriminated SignerConfig
    union used to pick a backend at runtime.

Usage:
    These models are accepted by every signer constructor and by
    KeychainSigner.from_config(). Secrets are excluded from repr() so that
    configs can be logged safely. Both snake_case names and the camelCase
    aliases used by the other keychain SDKs are accepted.

Example:
    from keychain_sdk.types import VaultSignerConfig, parse_signer_config

    config = VaultSignerConfig(
        vault_addr="https://vault.example.com:8200",
        vault_token="hvs.XXXX",
        key_name="solana-hot",
        public_key="4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T",
    )

    config = parse_signer_config({"backend": "memory", "privateKey": "..."})
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from solders.pubkey import Pubkey

from .errors import ConfigError


# Delays above this risk blockhash expiry before the last item is signed
REQUEST_DELAY_WARN_MS = 3000


class _SignerConfigBase(BaseModel):
    """
    Fields shared by all backend configs.

    Attributes:
        request_delay_ms: Stagger between concurrent requests in batch calls;
                          item i waits i * request_delay_ms before starting
    """
    request_delay_ms: int = Field(0, ge=0, alias="requestDelayMs")

    model_config = {"populate_by_name": True, "frozen": True}


def _check_public_key(value: str) -> str:
    try:
        Pubkey.from_string(value)
    except ValueError as e:
        raise ValueError("invalid Solana public key format") from e
    return value


class MemorySignerConfig(_SignerConfigBase):
    """
    Configuration for the in-memory signer.

    Attributes:
        private_key: 64-byte keypair as base58, a JSON byte array, or a path
                     to a JSON keypair file
    """
    backend: Literal["memory"] = "memory"
    private_key: str = Field(alias="privateKey", min_length=1, repr=False)


class VaultSignerConfig(_SignerConfigBase):
    """
    Configuration for the HashiCorp Vault transit signer.

    Attributes:
        vault_addr: Vault server address (e.g. "https://vault:8200")
        vault_token: Token sent in X-Vault-Token
        key_name: Name of the ed25519 transit key
        public_key: Base58 public key matching the transit key
        mount_path: Mount path of the transit engine
        namespace: Optional Vault Enterprise namespace
    """
    backend: Literal["vault"] = "vault"
    vault_addr: str = Field(alias="vaultAddr", min_length=1)
    vault_token: str = Field(alias="vaultToken", min_length=1, repr=False)
    key_name: str = Field(alias="keyName", min_length=1)
    public_key: str = Field(alias="publicKey", min_length=1)
    mount_path: str = Field("transit", alias="mountPath", min_length=1)
    namespace: Optional[str] = None

    check_public_key = field_validator("public_key")(_check_public_key)


class PrivySignerConfig(_SignerConfigBase):
    """
    Configuration for the Privy server wallet signer.

    The wallet address is resolved by PrivySigner.init().

    Attributes:
        app_id: Privy application id
        app_secret: Privy application secret
        wallet_id: Id of the Solana server wallet
        api_base_url: Privy API base URL
    """
    backend: Literal["privy"] = "privy"
    app_id: str = Field(alias="appId", min_length=1)
    app_secret: str = Field(alias="appSecret", min_length=1, repr=False)
    wallet_id: str = Field(alias="walletId", min_length=1)
    api_base_url: str = Field("https://api.privy.io/v1", alias="apiBaseUrl")


class TurnkeySignerConfig(_SignerConfigBase):
    """
    Configuration for the Turnkey signer.

    Attributes:
        api_public_key: Compressed P-256 API public key (hex)
        api_private_key: P-256 API private key scalar (hex)
        organization_id: Turnkey organization id
        private_key_id: Id (or address) of the Ed25519 private key to sign with
        public_key: Base58 public key of that private key
        api_base_url: Turnkey API base URL
    """
    backend: Literal["turnkey"] = "turnkey"
    api_public_key: str = Field(alias="apiPublicKey", min_length=1)
    api_private_key: str = Field(alias="apiPrivateKey", min_length=1, repr=False)
    organization_id: str = Field(alias="organizationId", min_length=1)
    private_key_id: str = Field(alias="privateKeyId", min_length=1)
    public_key: str = Field(alias="publicKey", min_length=1)
    api_base_url: str = Field("https://api.turnkey.com", alias="apiBaseUrl")

    check_public_key = field_validator("public_key")(_check_public_key)


class AwsCredentials(BaseModel):
    """
    Static AWS credentials. When omitted, boto3's default chain is used.

    Attributes:
        access_key_id: AWS access key id
        secret_access_key: AWS secret access key
        session_token: Optional session token for temporary credentials
    """
    access_key_id: str = Field(alias="accessKeyId", min_length=1)
    secret_access_key: str = Field(alias="secretAccessKey", min_length=1, repr=False)
    session_token: Optional[str] = Field(None, alias="sessionToken", repr=False)

    model_config = {"populate_by_name": True, "frozen": True}


class AwsKmsSignerConfig(_SignerConfigBase):
    """
    Configuration for the AWS KMS signer.

    The KMS key must have key spec ECC_NIST_EDWARDS25519 and key usage
    SIGN_VERIFY.

    Attributes:
        key_id: KMS key id, ARN or alias
        public_key: Base58 public key matching the KMS key
        region: AWS region (boto3 default when omitted)
        credentials: Optional static credentials
        endpoint_url: Optional KMS endpoint override
    """
    backend: Literal["aws_kms"] = "aws_kms"
    key_id: str = Field(alias="keyId", min_length=1)
    public_key: str = Field(alias="publicKey", min_length=1)
    region: Optional[str] = None
    credentials: Optional[AwsCredentials] = None
    endpoint_url: Optional[str] = Field(None, alias="endpointUrl")

    check_public_key = field_validator("public_key")(_check_public_key)


class FireblocksSignerConfig(_SignerConfigBase):
    """
    Configuration for the Fireblocks signer.

    The vault address is resolved by FireblocksSigner.init().

    Attributes:
        api_key: Fireblocks API key (X-API-Key header and JWT subject)
        private_key_pem: RSA private key (PEM) used to sign request JWTs
        vault_account_id: Vault account holding the Solana asset
        asset_id: Fireblocks asset id ("SOL", "SOL_TEST" on devnet)
        api_base_url: Fireblocks API base URL
        poll_interval_ms: Delay between transaction status polls
        max_poll_attempts: Polls before giving up
        use_program_call: Sign transactions with PROGRAM_CALL (Fireblocks
                          also broadcasts) instead of RAW message signing
    """
    backend: Literal["fireblocks"] = "fireblocks"
    api_key: str = Field(alias="apiKey", min_length=1)
    private_key_pem: str = Field(alias="privateKeyPem", min_length=1, repr=False)
    vault_account_id: str = Field(alias="vaultAccountId", min_length=1)
    asset_id: str = Field("SOL", alias="assetId", min_length=1)
    api_base_url: str = Field("https://api.fireblocks.io", alias="apiBaseUrl")
    poll_interval_ms: int = Field(1000, ge=0, alias="pollIntervalMs")
    max_poll_attempts: int = Field(60, ge=1, alias="maxPollAttempts")
    use_program_call: bool = Field(False, alias="useProgramCall")


SignerConfig = Annotated[
    Union[
        MemorySignerConfig,
        VaultSignerConfig,
        PrivySignerConfig,
        TurnkeySignerConfig,
        AwsKmsSignerConfig,
        FireblocksSignerConfig,
    ],
    Field(discriminator="backend"),
]

_signer_config_adapter: TypeAdapter = TypeAdapter(SignerConfig)

ConfigT = TypeVar("ConfigT", bound=_SignerConfigBase)


def describe_validation_error(error: ValidationError) -> str:
    """
    Summarize a pydantic ValidationError without echoing input values.

    Args:
        error: The validation error

    Returns:
        "field: message" pairs joined with "; "
    """
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"]) or "config"
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


def parse_signer_config(data: Mapping[str, Any]) -> SignerConfig:
    """
    Validate a raw mapping into the matching backend config.

    Args:
        data: Mapping with a "backend" key plus that backend's fields

    Returns:
        The backend-specific config model

    Raises:
        ConfigError: If the backend is unknown or a field is invalid
    """
    try:
        return _signer_config_adapter.validate_python(dict(data))
    except ValidationError as e:
        raise ConfigError(f"Invalid signer config: {describe_validation_error(e)}") from e


def load_config(
    model: type[ConfigT],
    config: Union[ConfigT, Mapping[str, Any], None],
    overrides: Mapping[str, Any],
) -> ConfigT:
    """
    Build a backend config from a model instance, a mapping or keyword arguments.

    Args:
        model: The expected config model class
        config: A model instance, a raw mapping, or None
        overrides: Keyword arguments passed to the signer constructor

    Returns:
        A validated instance of model

    Raises:
        ConfigError: If both forms are given, the type is wrong, or
                     validation fails
    """
    if config is not None and overrides:
        raise ConfigError("Pass either a config object or keyword arguments, not both")

    if isinstance(config, model):
        return config
    if config is not None and not isinstance(config, Mapping):
        raise ConfigError(
            f"Expected {model.__name__}, got {type(config).__name__}"
        )

    data = dict(config) if config is not None else dict(overrides)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid {model.__name__}: {describe_validation_error(e)}") from e
