"""
Failures raised below the sign-in orchestrator.
SIWFService translates these into ServiceError codes.
"""


class NonceError(Exception):
    """Nonce missing or unusable"""


class NonceNotFoundError(NonceError):
    pass


class NonceExpiredError(NonceError):
    pass


class TokenVerificationError(Exception):
    """Quick Auth token rejected for any reason"""


class IdentityIntegrityError(Exception):
    """A Farcaster identity points at a user that does not exist"""


class IdentityConflictError(Exception):
    """Another request created the identity for this fid first"""
