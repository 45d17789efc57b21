from sqlalchemy import Column, Integer, String
from app.core.database import Base


class Currency(Base):
    """Entry of the supported-currency catalog, keyed by ISO 4217 code."""
    __tablename__ = "currencies"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(3), unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    symbol = Column(String, nullable=False)
