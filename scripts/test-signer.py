#!/usr/bin/env python3
"""
Manual live check for a signer backend with real credentials.
Run with: SIGNER_TYPE=vault python scripts/test-signer.py

Builds a KeychainSigner for the backend named by SIGNER_TYPE from that
backend's environment variables, checks availability, signs a message
and verifies the signature locally. Exits non-zero on any failure.

Environment variables per backend:
    memory:     MEMORY_PRIVATE_KEY
    vault:      VAULT_ADDR, VAULT_TOKEN, VAULT_KEY_NAME, VAULT_PUBLIC_KEY,
                VAULT_MOUNT_PATH (optional), VAULT_NAMESPACE (optional)
    privy:      PRIVY_APP_ID, PRIVY_APP_SECRET, PRIVY_WALLET_ID,
                PRIVY_API_BASE_URL (optional)
    turnkey:    TURNKEY_API_PUBLIC_KEY, TURNKEY_API_PRIVATE_KEY,
                TURNKEY_ORGANIZATION_ID, TURNKEY_PRIVATE_KEY_ID,
                TURNKEY_PUBLIC_KEY, TURNKEY_API_BASE_URL (optional)
    aws_kms:    AWS_KMS_KEY_ID, AWS_KMS_PUBLIC_KEY, AWS_KMS_REGION (optional)
    fireblocks: FIREBLOCKS_API_KEY, FIREBLOCKS_PRIVATE_KEY_PEM,
                FIREBLOCKS_VAULT_ACCOUNT_ID, FIREBLOCKS_ASSET_ID (optional)
"""
import asyncio
import logging
import os
import sys
from typing import Dict, List, Tuple

from keychain_sdk import KeychainSigner, SignerBackend, SignerError


# backend -> [(config field, env var, required)]
ENV_FIELDS: Dict[str, List[Tuple[str, str, bool]]] = {
    "memory": [
        ("private_key", "MEMORY_PRIVATE_KEY", True),
    ],
    "vault": [
        ("vault_addr", "VAULT_ADDR", True),
        ("vault_token", "VAULT_TOKEN", True),
        ("key_name", "VAULT_KEY_NAME", True),
        ("public_key", "VAULT_PUBLIC_KEY", True),
        ("mount_path", "VAULT_MOUNT_PATH", False),
        ("namespace", "VAULT_NAMESPACE", False),
    ],
    "privy": [
        ("app_id", "PRIVY_APP_ID", True),
        ("app_secret", "PRIVY_APP_SECRET", True),
        ("wallet_id", "PRIVY_WALLET_ID", True),
        ("api_base_url", "PRIVY_API_BASE_URL", False),
    ],
    "turnkey": [
        ("api_public_key", "TURNKEY_API_PUBLIC_KEY", True),
        ("api_private_key", "TURNKEY_API_PRIVATE_KEY", True),
        ("organization_id", "TURNKEY_ORGANIZATION_ID", True),
        ("private_key_id", "TURNKEY_PRIVATE_KEY_ID", True),
        ("public_key", "TURNKEY_PUBLIC_KEY", True),
        ("api_base_url", "TURNKEY_API_BASE_URL", False),
    ],
    "aws_kms": [
        ("key_id", "AWS_KMS_KEY_ID", True),
        ("public_key", "AWS_KMS_PUBLIC_KEY", True),
        ("region", "AWS_KMS_REGION", False),
    ],
    "fireblocks": [
        ("api_key", "FIREBLOCKS_API_KEY", True),
        ("private_key_pem", "FIREBLOCKS_PRIVATE_KEY_PEM", True),
        ("vault_account_id", "FIREBLOCKS_VAULT_ACCOUNT_ID", True),
        ("asset_id", "FIREBLOCKS_ASSET_ID", False),
    ],
}


def config_from_env(signer_type: str) -> Dict[str, str]:
    """
    Build a raw signer config from environment variables.

    Args:
        signer_type: Backend name

    Returns:
        Mapping accepted by KeychainSigner.from_config()
    """
    fields = ENV_FIELDS[signer_type]
    missing = [env for _, env, required in fields if required and not os.environ.get(env)]
    if missing:
        print(f"Missing environment variables: {', '.join(missing)}")
        sys.exit(1)

    config = {"backend": signer_type}
    for field, env, _ in fields:
        value = os.environ.get(env)
        if value:
            config[field] = value
    return config


def log_status(step: int, message: str) -> None:
    print("-" * 50)
    print(f"[{step}/4] {message}")


async def main() -> int:
    """Run the live check. Returns the process exit code."""
    signer_type = os.environ.get("SIGNER_TYPE", "").lower()
    valid = [b.value for b in SignerBackend]
    if signer_type not in valid:
        print(f"SIGNER_TYPE must be one of: {', '.join(valid)}")
        return 1

    log_status(1, f"Creating {signer_type} signer")
    try:
        signer = await KeychainSigner.from_config(config_from_env(signer_type))
    except SignerError as e:
        print(f"FAIL: {e.code.value}: {e.message}")
        return 1

    async with signer:
        print(f"Public key: {signer.pubkey()}")

        log_status(2, "Checking availability")
        if not await signer.is_available():
            print("FAIL: backend is not available")
            return 1
        print("Backend available")

        log_status(3, "Signing message")
        message = b"keychain-sdk live check"
        try:
            signature = await signer.sign_message(message)
        except SignerError as e:
            print(f"FAIL: {e.code.value}: {e.message}")
            return 1
        print(f"Signature: {signature}")

        log_status(4, "Verifying signature")
        if not signature.verify(signer.pubkey(), message):
            print("FAIL: signature does not verify")
            return 1
        print("PASS: signature verifies")

    return 0


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    sys.exit(asyncio.run(main()))
