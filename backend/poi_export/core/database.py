from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from poi_export.core.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # Export pages are fetched from the threadpool, not the creating thread
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a database session, closed when the request is done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
