"""
keytool/apksigner binding of the SigningTool capability.

The keystore password is handed to apksigner through the environment, not
the command line, so it never shows up in process listings.
"""

from __future__ import annotations

from pathlib import Path

from ..core.exceptions import SigningError
from ..core.logging import get_logger
from ..models.build import SigningKey
from .interface import SigningTool
from .ndk import AndroidSdk
from .process import run_tool

logger = get_logger(__name__)

_PASSWORD_ENV = "APKFORGE_KEYSTORE_PASS"


class ApkSignerTool(SigningTool):
    """Generates keystores with keytool and signs with apksigner."""

    def __init__(self, sdk: AndroidSdk) -> None:
        self.sdk = sdk

    async def generate_keystore(
        self,
        path: Path,
        *,
        password: str,
        alias: str,
        dname: str,
        validity_days: int,
    ) -> None:
        output = await run_tool(
            [
                self.sdk.java_tool("keytool"),
                "-genkeypair", "-v",
                "-keystore", path,
                "-storepass:env", _PASSWORD_ENV,
                "-keypass:env", _PASSWORD_ENV,
                "-alias", alias,
                "-dname", dname,
                "-keyalg", "RSA",
                "-keysize", "2048",
                "-validity", str(validity_days),
            ],
            env={_PASSWORD_ENV: password},
        )
        if not output.ok:
            raise SigningError(message=f"keytool failed: {output.tail()}")

    async def sign(self, apk: Path, key: SigningKey) -> None:
        command: list[str | Path] = [
            self.sdk.build_tool("apksigner", batch=True),
            "sign",
            "--ks", key.path,
            "--ks-pass", f"env:{_PASSWORD_ENV}",
        ]
        if key.alias:
            command.extend(["--ks-key-alias", key.alias])
        command.append(apk)

        output = await run_tool(command, env={_PASSWORD_ENV: key.password})
        if not output.ok:
            detail = output.tail()
            if "password" in detail.lower():
                raise SigningError(message=f"keystore password rejected for {key.path}: {detail}")
            raise SigningError(message=f"apksigner failed: {detail}")
        logger.debug("Package signed", apk=str(apk), keystore=str(key.path))
