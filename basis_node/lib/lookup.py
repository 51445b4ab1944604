"""
Read-mostly label stores for the badge and risk tools.

Keys are lower-cased wallet addresses or domains, values are short labels
("BLOCK", "VIP", "SANCTIONED", ...). Anything with a dict-style get() works;
ShelveLookup is the file-backed one used in deployments.
"""
import logging
import shelve
from typing import Iterable, Mapping, Optional, Protocol, Tuple, Union

logger = logging.getLogger("lookup")


class LabelStore(Protocol):
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        ...


class ShelveLookup:
    """Shelve file of key -> label. Opened per call so edits show up live."""

    def __init__(self, path: str):
        self.path = path
        # Create an empty file so read-only opens succeed before any load
        shelve.open(path).close()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with shelve.open(self.path, flag="r") as db:
            return db.get(key, default)

    def load(self, records: Union[Mapping[str, str], Iterable[Tuple[str, str]]]) -> int:
        """Insert or overwrite records, lower-casing keys. Returns the count written."""
        items = records.items() if isinstance(records, Mapping) else records
        written = 0
        with shelve.open(self.path) as db:
            for key, label in items:
                db[key.strip().lower()] = label
                written += 1
        logger.info(f"Loaded {written} records into {self.path}")
        return written
