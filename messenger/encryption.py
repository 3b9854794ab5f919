"""Memo encryption of serialized payloads through the wallet signing service."""

from abc import ABC, abstractmethod

from common.constants import MEMO_PREFIX
from common.logging_config import get_logger
from ledger.keychain_client import KeychainClient

logger = get_logger(__name__)


class Encryptor(ABC):
    """
    Asymmetric encryption between two ledger identities.

    Implementations raise UserCancelledError, WrongRecipientError or
    ServiceUnavailableError; never a bare exception.
    """

    @abstractmethod
    async def encrypt(self, plaintext: str, from_id: str, to_id: str) -> str:
        """Encrypt plaintext so that to_id (and from_id) can read it."""

    @abstractmethod
    async def decrypt(self, ciphertext: str, my_id: str) -> str:
        """Decrypt ciphertext with my_id's memo key."""


class MemoEncryptor(Encryptor):
    """Encryptor backed by the wallet's memo key."""

    def __init__(self, keychain: KeychainClient):
        self.keychain = keychain

    async def encrypt(self, plaintext: str, from_id: str, to_id: str) -> str:
        ciphertext = await self.keychain.encode_message(from_id, to_id, MEMO_PREFIX + plaintext)
        logger.debug(f"Encrypted payload {from_id}->{to_id}: plaintext={len(plaintext)} ciphertext={len(ciphertext)}")
        return ciphertext

    async def decrypt(self, ciphertext: str, my_id: str) -> str:
        plaintext = await self.keychain.decode_message(my_id, ciphertext)
        if plaintext.startswith(MEMO_PREFIX):
            plaintext = plaintext[len(MEMO_PREFIX):]
        return plaintext
