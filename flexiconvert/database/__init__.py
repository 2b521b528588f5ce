from .models import Base, ConversionJob, get_db_session, init_db, utcnow

__all__ = ["Base", "ConversionJob", "get_db_session", "init_db", "utcnow"]
