import logging
from sqlalchemy.orm import Session

from app.db.base import Base
from app.db.session import engine
from app.services.dashboard_template_service import dashboard_template_service

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Owner id recorded on the built-in templates
SYSTEM_USER_ID = 0


def init_db(db: Session) -> None:
    # Create tables
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created")


def create_initial_data(db: Session) -> None:
    created = dashboard_template_service.seed_built_in_templates(db, owner_id=SYSTEM_USER_ID)
    if created:
        logger.info(f"Seeded {created} built-in dashboard templates")
    else:
        logger.info("Built-in dashboard templates already exist")


if __name__ == "__main__":
    from app.db.session import SessionLocal

    db = SessionLocal()
    try:
        init_db(db)
        create_initial_data(db)
    finally:
        db.close()
