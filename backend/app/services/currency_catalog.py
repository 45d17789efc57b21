from typing import Iterable
from sqlalchemy.orm import Session
from app.models.currency import Currency

# Catalog shipped with the seed script; matches what the frontend offers
DEFAULT_CURRENCIES = [
    ("USD", "US Dollar", "$"),
    ("EUR", "Euro", "€"),
    ("GBP", "British Pound", "£"),
    ("JPY", "Japanese Yen", "¥"),
    ("CAD", "Canadian Dollar", "C$"),
    ("AUD", "Australian Dollar", "A$"),
    ("CHF", "Swiss Franc", "CHF"),
    ("CNY", "Chinese Yuan", "¥"),
    ("INR", "Indian Rupee", "₹"),
]


def list_currencies(db: Session) -> list[dict]:
    """Whole catalog as plain dicts, ordered by code"""
    currencies = db.query(Currency).order_by(Currency.code).all()
    return [{"code": c.code, "name": c.name, "symbol": c.symbol} for c in currencies]


def seed_currencies(db: Session, entries: Iterable[tuple[str, str, str]] = DEFAULT_CURRENCIES) -> int:
    """
    Insert or update catalog entries by code.

    Safe to run repeatedly; returns the number of codes that were new.
    """
    created = 0
    for code, name, symbol in entries:
        code = code.strip().upper()
        currency = db.query(Currency).filter(Currency.code == code).first()
        if currency is None:
            db.add(Currency(code=code, name=name.strip(), symbol=symbol.strip()))
            created += 1
        else:
            currency.name = name.strip()
            currency.symbol = symbol.strip()
    db.commit()
    return created
