"""Custom exceptions for Secure Vault."""


class SecureVaultError(Exception):
    """Base exception for Secure Vault."""


class KdfError(SecureVaultError):
    """Key derivation parameters are invalid or derivation failed."""


class ContainerFormatError(SecureVaultError):
    """Container does not match expected format."""


class UnsupportedVersion(ContainerFormatError):
    """Container was written by an unknown format version."""

    def __init__(self, version: int) -> None:
        self.version = version
        super().__init__(f"Unsupported container version: {version}")


class UnsupportedAlgorithm(ContainerFormatError):
    """Container names an AEAD algorithm this build does not know."""

    def __init__(self, algorithm_id: int) -> None:
        self.algorithm_id = algorithm_id
        super().__init__(f"Unsupported algorithm identifier: {algorithm_id}")


class TruncatedFile(ContainerFormatError):
    """Container ended before its final chunk, or has data after it."""


class AuthenticationFailure(SecureVaultError):
    """AEAD tag verification failed for a single chunk."""


class DecryptionFailed(SecureVaultError):
    """Invalid password or corrupted file."""

    def __init__(self, message: str = "Invalid password or corrupted file") -> None:
        super().__init__(message)


class RngFailure(SecureVaultError):
    """The operating system could not supply secure random bytes."""


class VaultIOError(SecureVaultError):
    """Reading the source or writing the sink failed."""


class NonceLimitExceeded(SecureVaultError):
    """The stream has more chunks than the nonce counter can address."""
