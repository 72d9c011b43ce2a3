from appforge.db.base import Base


def init_db(bind=None):
    """Create all tables on the given engine (defaults to the app engine)."""
    import appforge.db.models  # noqa: F401  registers models on Base.metadata

    if bind is None:
        from appforge.db.session import engine
        bind = engine
    Base.metadata.create_all(bind=bind)
