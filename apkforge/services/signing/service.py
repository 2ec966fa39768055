"""
Signing Service.

Resolves the credentials for a signing profile and signs the assembled
package. Resolution order is fixed: environment overrides, then the
configuration's signing table, then (development profile only) the shared
debug keystore, which is generated once and never touched again.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Mapping
from pathlib import Path

from ...core.config import SigningConfig
from ...core.exceptions import SigningError
from ...core.logging import get_logger
from ...models.build import CredentialSource, SigningKey
from ...models.project import ProjectConfig
from ...models.target import Profile
from ...toolchain.interface import SigningTool

logger = get_logger(__name__)


class Signer:
    """Service that resolves signing credentials and signs packages."""

    def __init__(
        self,
        signing_tool: SigningTool,
        settings: SigningConfig | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the signer.

        Args:
            signing_tool: Signing capability.
            settings: Debug keystore location and defaults.
            environ: Environment to read overrides from, ``os.environ`` if None.
        """
        self.signing_tool = signing_tool
        self.settings = settings or SigningConfig()
        self.environ = environ if environ is not None else os.environ

    def env_names(self, profile: str) -> tuple[str, str]:
        """Names of the keystore path and password variables for a profile."""
        base = f"{self.settings.env_prefix}_{Profile(profile).env_key()}_KEYSTORE"
        return base, f"{base}_PASSWORD"

    async def resolve(self, config: ProjectConfig, profile: str) -> SigningKey:
        """Resolve exactly one credential record for ``profile``.

        Raises:
            SigningError: If no source provides credentials for the profile.
        """
        path_var, password_var = self.env_names(profile)
        env_path = self.environ.get(path_var)
        env_password = self.environ.get(password_var)
        if env_path and env_password is not None:
            logger.info("Using keystore from environment", profile=profile, variable=path_var)
            return SigningKey(path=Path(env_path).expanduser(), password=env_password, source=CredentialSource.ENVIRONMENT)
        if env_path or env_password is not None:
            missing = password_var if env_path else path_var
            logger.warning("Ignoring incomplete keystore override", profile=profile, missing=missing)

        entry = config.signing.get(profile)
        if entry is not None:
            logger.info("Using keystore from signing table", profile=profile)
            return SigningKey(
                path=config.resolve(entry.path),
                password=entry.keystore_password,
                source=CredentialSource.SIGNING_TABLE,
            )

        if profile == self.settings.dev_profile:
            return await self.debug_keystore(profile)

        raise SigningError(
            message=f"no keystore configured; set {path_var} and {password_var} or add [signing.{profile}]",
            profile=profile,
        )

    async def debug_keystore(self, profile: str) -> SigningKey:
        """Return the development keystore, generating it if no file exists yet."""
        settings = self.settings
        path = settings.debug_keystore_path
        key = SigningKey(
            path=path,
            password=settings.debug_keystore_password,
            source=CredentialSource.DEBUG_KEYSTORE,
            alias=settings.debug_key_alias,
        )
        if path.exists():
            return key

        logger.info("Generating debug keystore", path=str(path))
        path.parent.mkdir(parents=True, exist_ok=True)
        scratch = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            await self.signing_tool.generate_keystore(
                scratch,
                password=settings.debug_keystore_password,
                alias=settings.debug_key_alias,
                dname=settings.debug_key_dname,
                validity_days=settings.debug_key_validity_days,
            )
        except SigningError as e:
            raise SigningError(message=e.message, profile=profile, cause=e) from e

        try:
            self._publish(scratch, path)
        except OSError as e:
            raise SigningError(message=f"cannot create debug keystore {path}: {e}", profile=profile, cause=e) from e
        finally:
            scratch.unlink(missing_ok=True)
        return key

    @staticmethod
    def _publish(scratch: Path, path: Path) -> None:
        """Move a complete keystore into place without replacing an existing one."""
        try:
            # Hard link never replaces an existing file
            os.link(scratch, path)
            return
        except FileExistsError:
            logger.info("Debug keystore appeared concurrently, keeping it", path=str(path))
            return
        except OSError as e:
            logger.debug("Hard link unsupported, renaming keystore into place", error=str(e))

        if path.exists():
            logger.info("Debug keystore appeared concurrently, keeping it", path=str(path))
            return
        try:
            # Atomic, but replaces an existing file on POSIX
            os.rename(scratch, path)
        except FileExistsError:
            logger.info("Debug keystore appeared concurrently, keeping it", path=str(path))

    async def sign(self, apk: Path, config: ProjectConfig, profile: str) -> SigningKey:
        """Sign ``apk`` in place with the credentials resolved for ``profile``.

        Returns:
            The credential record that was used.

        Raises:
            SigningError: On missing keystore, wrong password or tool failure.
        """
        key = await self.resolve(config, profile)
        if not key.path.is_file():
            raise SigningError(message=f"keystore {key.path} does not exist", profile=profile)

        logger.info("Signing package", apk=apk.name, keystore=str(key.path), source=key.source.value)
        try:
            await self.signing_tool.sign(apk, key)
        except SigningError as e:
            raise SigningError(message=e.message, profile=profile, cause=e) from e
        return key
