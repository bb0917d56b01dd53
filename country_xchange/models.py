from sqlalchemy import BigInteger, Column, DateTime, Float, Integer, String
from sqlalchemy.orm import validates

from country_xchange.database import Base


def normalize_name(name):
    """Lookup key for a country: its display name lowercased."""
    return name.lower()


class Country(Base):
    __tablename__ = "countries"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    name_lower = Column(String(255), unique=True, nullable=False, index=True)
    capital = Column(String(255), nullable=True)
    region = Column(String(100), nullable=True, index=True)
    population = Column(BigInteger, nullable=True)
    currency_code = Column(String(10), nullable=True, index=True)
    exchange_rate = Column(Float, nullable=True)
    estimated_gdp = Column(Float, nullable=True)
    flag_url = Column(String(500), nullable=True)
    last_refreshed_at = Column(DateTime, nullable=False)

    @validates("name")
    def _sync_name_lower(self, key, value):
        self.name_lower = normalize_name(value)
        return value

    def __repr__(self):
        return f"<Country {self.name!r}>"
