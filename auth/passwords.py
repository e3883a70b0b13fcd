"""
auth/passwords.py -- Password hashing and verification (argon2id).

Security design decisions:
  argon2id via argon2-cffi. Memory-hard: every guess costs the attacker
  memory_cost KiB of RAM as well as CPU, which blunts GPU/ASIC cracking far
  better than bcrypt's CPU-only work factor.

  Salting: argon2-cffi draws a fresh random salt per hash() call and embeds it
  in the encoded digest ($argon2id$v=19$m=...,t=...,p=...$salt$hash). Two
  hashes of the same password therefore differ, and verify() needs nothing
  but the stored string.

  Constant time: the final digest comparison happens inside libargon2, which
  compares in constant time. Mismatch position does not affect timing.

  Errors: a mismatch is a normal False result. A malformed digest or an
  internal failure raises HashingError. Neither the plaintext nor the digest
  ever appears in an error message or a log line.

Layer rule: no imports from api/ or core/. Cost parameters are injected.
"""

from __future__ import annotations

import logging

from argon2 import PasswordHasher as Argon2Hasher
from argon2 import Type
from argon2.exceptions import HashingError as Argon2HashingError
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from auth.errors import HashingError

logger = logging.getLogger("tokengate.auth")


class PasswordHasher:
    """Produce and check argon2id password digests.

    Usage:
        hasher = PasswordHasher(time_cost=3, memory_cost=65536, parallelism=4)
        digest = hasher.hash("Passw0rd!")
        hasher.verify(digest, "Passw0rd!")   # True
        hasher.verify(digest, "wrong")       # False
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4) -> None:
        self._hasher = Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            type=Type.ID,
        )
        self._dummy_digest: str | None = None

    def hash(self, plaintext: str) -> str:
        """Return the encoded argon2id digest of plaintext."""
        try:
            return self._hasher.hash(plaintext)
        except (Argon2HashingError, MemoryError) as exc:
            logger.error("Password hashing failed (%s)", type(exc).__name__)
            raise HashingError("Password hashing failed.") from None

    def verify(self, digest: str, candidate: str) -> bool:
        """Return True if candidate matches digest, False on mismatch.

        Raises HashingError when digest is not a well-formed argon2 string.
        VerifyMismatchError must be caught before VerificationError -- it is
        a subclass, and only the mismatch case is a normal result.
        """
        try:
            return self._hasher.verify(digest, candidate)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError, UnicodeError, TypeError):
            raise HashingError("Stored password digest is malformed.") from None
        except MemoryError:
            raise HashingError("Password verification failed.") from None

    @property
    def dummy_digest(self) -> str:
        """A digest of a throwaway value, computed on first use.

        Login verifies against this when the username does not exist so an
        unknown user costs the same argon2 work as a wrong password.
        """
        if self._dummy_digest is None:
            self._dummy_digest = self.hash("tokengate_timing_dummy")
        return self._dummy_digest
