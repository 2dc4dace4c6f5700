from datetime import datetime, timedelta, timezone

from poolrank.db.engine import get_sessionmaker, make_engine
from poolrank.models import Base
from poolrank.workflows import (
    build_contest_ranking,
    confirm_payment,
    create_contest,
    create_participation,
    publish_draw,
)


def main() -> None:
    """Seed the development database with a small contest and print its ranking."""
    engine = make_engine()

    # Drop and recreate all tables with foreign key checks off so SQLite can
    # drop them in any order.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    now = datetime.now(timezone.utc)

    with Session.begin() as session:
        contest = create_contest(
            session,
            name="Demo contest",
            min_number=1,
            max_number=25,
            numbers_per_participation=10,
            participation_value=10.0,
            start_date=now - timedelta(days=7),
            end_date=now + timedelta(days=30),
            status="active",
        )

        tickets = {
            "Alice": [1, 2, 3, 4, 5, 6, 7, 8, 9, 10],
            "Bob": [1, 2, 3, 4, 5, 6, 7, 8, 9, 11],
            "Carol": [11, 12, 13, 14, 15, 16, 17, 18, 19, 20],
            "Dave": [5, 10, 15, 20, 21, 22, 23, 24, 25, 1],
        }
        for offset, (name, numbers) in enumerate(tickets.items()):
            participation = create_participation(
                session,
                contest,
                user_id=f"user_{name.lower()}",
                numbers=numbers,
                owner_name=name,
                created_at=now - timedelta(days=5, minutes=offset),
            )
            confirm_payment(session, participation, amount=10.0)

        publish_draw(
            session,
            contest,
            [1, 2, 3, 4, 5, 21, 22],
            draw_date=now - timedelta(days=3),
        )
        publish_draw(
            session,
            contest,
            [6, 7, 8, 9, 10, 12],
            draw_date=now - timedelta(days=1),
        )

        ranking = build_contest_ranking(session, contest)
        for entry in ranking.entries:
            print(
                f"{entry.position:>2}. {entry.owner_name:<6} score={entry.score:<2} "
                f"{entry.category.value:<6} prize={entry.prize_amount:.2f}"
            )

    print("Seeding complete.")


if __name__ == "__main__":
    main()
