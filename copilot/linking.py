"""Wallet cooldowns and Telegram bot linking, both backed by a ``KeyValueStore``.

A wallet requests a short one-time code; the bot consumes it together with
the user's Telegram id, binding that id to the wallet.
"""

import logging
import math
import secrets
import time
from typing import Callable, Optional

from copilot.errors import LinkCodeError
from copilot.store.base import KeyValueStore

logger = logging.getLogger("copilot")

CODE_LENGTH = 8
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_CODE_TTL_SECONDS = 600
_MAX_CODE_ATTEMPTS = 5


class WalletCooldown:
    """Allows one action per wallet every *seconds*.

    Args:
        store: Backing store.
        seconds: Cooldown length.
        scope: Key prefix separating independent cooldowns.
        clock: Returns the current time in seconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        seconds: float,
        scope: str = "wallet",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._seconds = seconds
        self._scope = scope
        self._clock = clock

    def check(self, wallet: str) -> Optional[int]:
        """Arm the cooldown for *wallet*.

        Returns ``None`` when the action may proceed, otherwise the number of
        whole seconds until it may be retried (the cooldown is not re-armed).
        """
        key = f"cooldown:{self._scope}:{wallet}"
        now = self._clock()
        next_allowed = self._store.get(key)
        if next_allowed is not None and now < next_allowed:
            return math.ceil(next_allowed - now)
        self._store.set(key, now + self._seconds, ttl_seconds=self._seconds)
        return None


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class BotLinkService:
    """Issues and redeems one-time wallet link codes.

    Args:
        store: Backing store.
        ttl_seconds: Lifetime of an unconsumed code.
        clock: Returns the current time in seconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = DEFAULT_CODE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock

    @staticmethod
    def _code_key(code: str) -> str:
        return f"link:code:{code}"

    @staticmethod
    def _telegram_key(telegram_id: int) -> str:
        return f"link:telegram:{telegram_id}"

    def create_code(self, wallet: str) -> str:
        """Issue a fresh code for *wallet*."""
        code = generate_code()
        attempt = 0
        while self._store.get(self._code_key(code)) is not None and attempt < _MAX_CODE_ATTEMPTS:
            code = generate_code()
            attempt += 1
        # Kept past the ttl so a late redemption reports "expired", not "invalid".
        self._store.set(
            self._code_key(code),
            {"wallet": wallet, "created_at": self._clock()},
            ttl_seconds=self._ttl * 2,
        )
        logger.info("Issued link code for wallet %s…", wallet[:6])
        return code

    def consume_code(self, code: str, telegram_id: int) -> str:
        """Redeem *code* for *telegram_id* and return the linked wallet.

        Codes are single-use.  Raises ``LinkCodeError`` with reason
        ``"invalid"`` or ``"expired"``.
        """
        key = self._code_key(code)
        pending = self._store.get(key)
        if pending is None:
            raise LinkCodeError("invalid")
        self._store.delete(key)
        if self._clock() - pending["created_at"] > self._ttl:
            raise LinkCodeError("expired")
        self._store.set(
            self._telegram_key(telegram_id),
            {"wallet": pending["wallet"], "linked_at": self._clock()},
        )
        logger.info("Linked Telegram user %d to wallet %s…", telegram_id, pending["wallet"][:6])
        return pending["wallet"]

    def get_wallet(self, telegram_id: int) -> Optional[str]:
        binding = self._store.get(self._telegram_key(telegram_id))
        if binding is None:
            return None
        return binding["wallet"]
