import random

from sqlalchemy.orm import sessionmaker

from raffledesk import workflows
from raffledesk.allocation import NumberPoolAllocator
from raffledesk.config import RaffleSettings
from raffledesk.db.engine import make_engine
from raffledesk.models import Base

PARTICIPANTS = [
    ("Alice Souza", "(11) 98765-4321", 7),
    ("Bruno Lima", "(21) 91234-5678", 42),
    ("Carla Mendes", "(31) 99876-1234", 108),
    ("Diego Alves", "(41) 98888-0001", 512),
]


def main() -> None:
    """Seed the development database with a small raffle in progress."""
    engine = make_engine()

    # The schema has no foreign-key cycles, so a plain drop works on every backend.
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    settings = RaffleSettings.from_env()
    allocator = NumberPoolAllocator(settings.pool_size, rng=random.Random(2024))

    with Session.begin() as session:
        for name, contact, number in PARTICIPANTS:
            workflows.register_participant(
                session, name, contact, number, settings=settings
            )

        # One approved purchase and one still waiting for an operator.
        approved = workflows.submit_extra_request(
            session,
            "Alice Souza",
            "(11) 98765-4321",
            "21.00",
            "file:///dev/null/alice-receipt.jpg",
            settings=settings,
        )
        workflows.approve_extra_request(
            session, approved.id, settings=settings, allocator=allocator
        )
        workflows.submit_extra_request(
            session,
            "Bruno Lima",
            "(21) 91234-5678",
            "7.00",
            "file:///dev/null/bruno-receipt.jpg",
            settings=settings,
        )

    print("Development database seeded.")


if __name__ == "__main__":
    main()
