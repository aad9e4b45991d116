from models import factory_session
from seeders.initial_activity import initial_activity


def initial_seeders():
    with factory_session() as session:
        initial_activity(db=session, is_commit=True)
