from app.core.config import get_settings
from app.core.database import Base, build_engine, build_session_factory
from app.models.currency import Currency  # noqa: F401
from app.services.currency_catalog import seed_currencies

engine = build_engine(get_settings().DATABASE_URL)
Base.metadata.create_all(bind=engine)

db = build_session_factory(engine)()
try:
    created = seed_currencies(db)
finally:
    db.close()
print(f"Seeded currency catalog ({created} new)")
