"""
UnclaimedPropertyRecord model representing one row of the property table.
"""

from datetime import datetime

from pydantic import BaseModel, Field

# Persisted column order for the unclaimed_properties table (timestamps excluded)
PROPERTY_COLUMNS: tuple[str, ...] = (
    "id",
    "property_type",
    "cash_reported",
    "shares_reported",
    "name_of_securities_reported",
    "number_of_owners",
    "owner_name",
    "owner_street_1",
    "owner_street_2",
    "owner_street_3",
    "owner_city",
    "owner_state",
    "owner_zip",
    "owner_country_code",
    "current_cash_balance",
    "number_of_pending_claims",
    "number_of_paid_claims",
    "holder_name",
    "holder_street_1",
    "holder_street_2",
    "holder_street_3",
    "holder_city",
    "holder_state",
    "holder_zip",
    "cusip",
)

# Largest values the DECIMAL(15,2) and INTEGER columns hold
MAX_AMOUNT = 9_999_999_999_999.99
MAX_COUNT = 2_147_483_647


class UnclaimedPropertyRecord(BaseModel):
    """
    Canonical unclaimed-property entity.

    Attributes:
        id: Primary key (source PROPERTY_ID or a synthesized identifier)
        property_type: Property type code reported by the holder
        cash_reported: Cash amount originally reported
        shares_reported: Number of shares originally reported
        name_of_securities_reported: Securities name, if any
        number_of_owners: Owner count as reported (kept as text)
        owner_name: Owner of record (required)
        current_cash_balance: Balance currently held by the state
        number_of_pending_claims: Claims filed but not yet paid
        number_of_paid_claims: Claims already paid
        holder_name: Business that reported the property
        cusip: Securities identifier
    """

    id: str = Field(..., min_length=1)
    property_type: str = ""
    cash_reported: float = Field(0.0, ge=0, le=MAX_AMOUNT)
    shares_reported: float = Field(0.0, ge=0, le=MAX_AMOUNT)
    name_of_securities_reported: str | None = None
    number_of_owners: str = "1"

    owner_name: str = Field(..., min_length=1)
    owner_street_1: str | None = None
    owner_street_2: str | None = None
    owner_street_3: str | None = None
    owner_city: str | None = None
    owner_state: str | None = None
    owner_zip: str | None = None
    owner_country_code: str | None = None

    current_cash_balance: float = Field(0.0, ge=0, le=MAX_AMOUNT)
    number_of_pending_claims: int = Field(0, ge=0, le=MAX_COUNT)
    number_of_paid_claims: int = Field(0, ge=0, le=MAX_COUNT)

    holder_name: str = ""
    holder_street_1: str | None = None
    holder_street_2: str | None = None
    holder_street_3: str | None = None
    holder_city: str | None = None
    holder_state: str | None = None
    holder_zip: str | None = None

    cusip: str | None = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def column_values(self) -> tuple:
        """Return persisted values in PROPERTY_COLUMNS order."""
        return tuple(getattr(self, column) for column in PROPERTY_COLUMNS)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "P1",
                "property_type": "CK",
                "cash_reported": 100.5,
                "shares_reported": 0,
                "number_of_owners": "1",
                "owner_name": "Jane Doe",
                "owner_city": "SACRAMENTO",
                "owner_state": "CA",
                "current_cash_balance": 100.5,
                "number_of_pending_claims": 0,
                "number_of_paid_claims": 0,
                "holder_name": "ACME BANK",
            }
        }
