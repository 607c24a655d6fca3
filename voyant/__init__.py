def init_db():
    from voyant.db import engine
    from voyant.models import Base

    Base.metadata.create_all(bind=engine)
