from typing import Optional, Union

from cryptography.fernet import Fernet


class EncryptionHelper:
    """
    Encrypts/decrypts seller tokens while they sit in the credential store.
    Uses Fernet (AES 128 in CBC mode + HMAC), authenticated encryption.
    """

    def __init__(self, key: Optional[Union[str, bytes]] = None):
        """
        :param key: Base64-encoded 32-byte key. A fresh key is generated when omitted,
                    which is fine as long as the store lives only in this process.
        """
        if key is None:
            key = Fernet.generate_key()
        self.fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypts plaintext (e.g., refresh_token) and returns Base64-encoded ciphertext.
        """
        return self.fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypts Base64-encoded ciphertext and returns plaintext.
        """
        return self.fernet.decrypt(ciphertext.encode()).decode()
