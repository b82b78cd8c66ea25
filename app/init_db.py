import logging

from app.infra.db import engine, SessionLocal
from app.infra.models import Base
from app.infra.observability import setup_logging
from app.services.site_settings import initialize_defaults

logger = logging.getLogger(__name__)


def main():
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("Tabelas criadas!")

    db = SessionLocal()
    try:
        inserted = initialize_defaults(db)
        db.commit()
    finally:
        db.close()
    logger.info("Configurações padrão inseridas: %d", inserted)

if __name__ == "__main__":
    main()
