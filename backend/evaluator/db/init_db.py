import logging

from evaluator.db.session import engine, Base

logger = logging.getLogger(__name__)


def init_db():
    """Initialize database tables"""
    # Import all models to ensure they are registered with SQLAlchemy
    from evaluator.models.document import Document  # noqa: F401
    from evaluator.models.evaluation import Evaluation  # noqa: F401

    # Create all tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


if __name__ == "__main__":
    init_db()
