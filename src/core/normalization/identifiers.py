"""
Synthetic identifiers for property rows that arrive without a PROPERTY_ID.
"""

import hashlib
from collections import Counter

# Source columns that make up a row's fingerprint
FINGERPRINT_FIELDS: tuple[str, ...] = (
    "OWNER_NAME",
    "OWNER_STREET_1",
    "OWNER_CITY",
    "OWNER_ZIP",
    "HOLDER_NAME",
    "PROPERTY_TYPE",
    "CASH_REPORTED",
    "CURRENT_CASH_BALANCE",
)

SYNTHETIC_PREFIX = "generated_"


class SyntheticIdGenerator:
    """
    Derives deterministic primary keys for ID-less rows.

    The id is the SHA-1 of the row's normalized fingerprint plus the ordinal
    of that fingerprint within the run, so re-importing the same files yields
    the same ids and identical rows still get distinct keys. Counters belong
    to the instance; create one generator per import run.
    """

    def __init__(self, digest_length: int = 16):
        self.digest_length = digest_length
        self._occurrences: Counter[str] = Counter()

    @staticmethod
    def fingerprint(values: dict[str, str]) -> str:
        parts = [" ".join((values.get(name) or "").split()).upper() for name in FINGERPRINT_FIELDS]
        return "|".join(parts)

    def next_id(self, values: dict[str, str]) -> str:
        """
        Return the next identifier for a row lacking a source id.

        Args:
            values: Header-keyed source row

        Returns:
            Identifier of the form generated_<digest>_<ordinal>
        """
        digest = hashlib.sha1(self.fingerprint(values).encode("utf-8")).hexdigest()
        digest = digest[: self.digest_length]
        self._occurrences[digest] += 1
        return f"{SYNTHETIC_PREFIX}{digest}_{self._occurrences[digest]}"

    @property
    def issued(self) -> int:
        return sum(self._occurrences.values())
