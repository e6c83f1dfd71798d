"""Error taxonomy for opening and sealing vaults.

FormatError and AuthenticationError never leave ``open_vault``: both are
reported to callers as the same InvalidVaultError so that a wrong passphrase
cannot be told apart from a damaged or forged file.
"""

INVALID_VAULT_MSG = "Wrong passphrase or invalid vault file."
FILE_TOO_LARGE_MSG = "Vault file is too large. Maximum size is 50 MB."


class VaultError(Exception):
    """Base class for every error raised by legacylink."""


class FormatError(VaultError):
    """Malformed envelope or plaintext structure (internal)."""


class AuthenticationError(VaultError):
    """AEAD tag mismatch: wrong key or tampered ciphertext (internal)."""


class InvalidVaultError(VaultError):
    def __init__(self, message: str = INVALID_VAULT_MSG):
        super().__init__(message)


class VaultTooLargeError(InvalidVaultError):
    def __init__(self, message: str = FILE_TOO_LARGE_MSG):
        super().__init__(message)


class UnsupportedFormatError(VaultError):
    """The file was written by a newer version of the application."""

    def __init__(self, kind: str, found: int, supported: int):
        self.kind = kind
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported {kind} {found} (this version reads up to {supported}). Please upgrade."
        )


class VaultLockedError(VaultError):
    def __init__(self, message: str = "Vault is locked"):
        super().__init__(message)


class VaultNotFoundError(VaultError):
    def __init__(self, message: str = "No vault found"):
        super().__init__(message)
