from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.types import Text, TypeDecorator

import config
from logging_setup import get_logger

logger = get_logger(__name__)

_warned = False


def _make_fernet(key):
    global _warned
    if key:
        return Fernet(key)
    if not _warned:
        logger.warning("DB_ENCRYPTION_KEY not set, task text is stored unencrypted")
        _warned = True
    return None


class EncryptedString(TypeDecorator):
    """
    Verschluesselt Werte VOR dem Speichern und entschluesselt sie beim Laden.

    Used for task title and description. The column is ``Text`` because the
    Fernet token is longer than the plaintext. Filtering on these columns
    therefore has to happen after loading, never in SQL.
    """
    impl = Text
    cache_ok = True

    def __init__(self, key=None, **kwargs):
        super().__init__(**kwargs)
        self.fernet = _make_fernet(key if key is not None else config.DB_ENCRYPTION_KEY)

    def process_bind_param(self, value, dialect):
        # Python -> DB
        if value is not None and self.fernet:
            return self.fernet.encrypt(value.encode("utf-8")).decode("utf-8")
        return value

    def process_result_value(self, value, dialect):
        # DB -> Python
        if value is not None and self.fernet:
            try:
                return self.fernet.decrypt(value.encode("utf-8")).decode("utf-8")
            except InvalidToken:
                # Altbestand im Klartext oder anderer Key
                logger.warning("Could not decrypt stored value, returning it unchanged")
                return value
        return value
