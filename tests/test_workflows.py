import unittest
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from poolrank.models import Base, Contest, Participation, Payment
from poolrank.models.utils import DRAW_CODE_PREFIX, TICKET_CODE_PREFIX, is_valid_code
from poolrank.ranking import (
    Category,
    ConfigurationError,
    DataIntegrityError,
    RankingEngine,
)
from poolrank.workflows import (
    apply_discount,
    build_contest_ranking,
    can_accept_participations,
    confirm_payment,
    contest_phase,
    contest_report,
    contest_total_revenue,
    create_contest,
    create_discount,
    create_participation,
    finish_contest_if_completed,
    publish_draw,
    revenue_by_day,
)

START = datetime(2025, 1, 1, tzinfo=timezone.utc)
END = datetime(2025, 12, 31, tzinfo=timezone.utc)


class WorkflowTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self):
        self.engine.dispose()

    def _active_contest(self, session, **overrides) -> Contest:
        values = dict(
            name="Five of twenty",
            min_number=1,
            max_number=20,
            numbers_per_participation=5,
            participation_value=10.0,
            start_date=START,
            end_date=END,
            status="active",
        )
        values.update(overrides)
        return create_contest(session, **values)

    def _paid_ticket(self, session, contest, name, numbers, created_at):
        participation = create_participation(
            session,
            contest,
            user_id=f"user-{name.lower()}",
            numbers=numbers,
            owner_name=name,
            created_at=created_at,
        )
        confirm_payment(session, participation, 10.0, external_id=f"pix-{name}")
        return participation


class CreateContestTests(WorkflowTestCase):
    def test_invalid_percentages_are_rejected(self):
        with self.Session() as session:
            with self.assertRaises(ConfigurationError):
                self._active_contest(session, admin_fee_pct=20)

    def test_invalid_window_is_rejected(self):
        with self.Session() as session:
            with self.assertRaises(ValueError):
                self._active_contest(session, start_date=END, end_date=START)

    def test_contest_is_persisted(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            self.assertIsNotNone(contest.id)
            self.assertEqual(Contest.list_active(session), [contest])


class ParticipationWorkflowTests(WorkflowTestCase):
    def test_create_participation_assigns_ticket_code(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            created = datetime(2025, 2, 1, 9, 30, tzinfo=timezone.utc)
            participation = create_participation(
                session, contest, "user-1", [9, 3, 1, 7, 5], created_at=created
            )
            self.assertEqual(participation.numbers, [1, 3, 5, 7, 9])
            self.assertEqual(participation.status, "pending")
            self.assertTrue(is_valid_code(TICKET_CODE_PREFIX, participation.ticket_code))
            self.assertTrue(participation.ticket_code.startswith("TKT-20250201-"))

    def test_invalid_ticket_is_rejected(self):
        created = datetime(2025, 2, 1, tzinfo=timezone.utc)
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            with self.assertRaises(DataIntegrityError):
                create_participation(session, contest, "u", [1, 2, 3], created_at=created)
            with self.assertRaises(DataIntegrityError):
                create_participation(
                    session, contest, "u", [1, 2, 3, 4, 21], created_at=created
                )
            with self.assertRaises(ValueError):
                create_participation(
                    session, contest, "u", [1, 1, 2, 3, 4], created_at=created
                )

    def test_closed_contest_rejects_participations(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            with self.assertRaises(ValueError):
                create_participation(
                    session,
                    contest,
                    "u",
                    [1, 2, 3, 4, 5],
                    created_at=END + timedelta(days=1),
                )
            contest.status = "draft"
            with self.assertRaises(ValueError):
                create_participation(
                    session,
                    contest,
                    "u",
                    [1, 2, 3, 4, 5],
                    created_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
                )

    def test_confirm_payment_activates_participation(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            participation = create_participation(
                session,
                contest,
                "user-1",
                [1, 2, 3, 4, 5],
                created_at=datetime(2025, 2, 1, tzinfo=timezone.utc),
            )
            self.assertEqual(contest_total_revenue(session, contest), 0.0)

            payment = confirm_payment(session, participation, 12.5)
            self.assertEqual(payment.status, "paid")
            self.assertTrue(participation.is_active)
            self.assertEqual(contest_total_revenue(session, contest), 12.5)

    def test_cancelled_participation_cannot_be_paid(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            participation = create_participation(
                session,
                contest,
                "user-1",
                [1, 2, 3, 4, 5],
                created_at=datetime(2025, 2, 1, tzinfo=timezone.utc),
            )
            participation.status = "cancelled"
            with self.assertRaises(ValueError):
                confirm_payment(session, participation, 10.0)


class PaymentConfirmationTests(WorkflowTestCase):
    def _pending_ticket(self, session, contest, user_id="user-1"):
        return create_participation(
            session,
            contest,
            user_id,
            range(1, 6),
            created_at=datetime(2025, 2, 1, tzinfo=timezone.utc),
        )

    def test_repeated_confirmation_keeps_a_single_payment(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            participation = self._pending_ticket(session, contest)

            first = confirm_payment(session, participation, 10.0)
            second = confirm_payment(session, participation, 10.0)
            self.assertIs(first, second)
            self.assertEqual(len(participation.payments), 1)
            self.assertEqual(contest_total_revenue(session, contest), 10.0)

            publish_draw(
                session,
                contest,
                range(1, 6),
                draw_date=datetime(2025, 2, 2, tzinfo=timezone.utc),
            )
            ranking = build_contest_ranking(session, contest)
            self.assertAlmostEqual(ranking.entries[0].prize_amount, 6.5)

    def test_replayed_external_id_returns_existing_payment(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            participation = self._pending_ticket(session, contest)
            first = confirm_payment(session, participation, 10.0, external_id="pix-1")
            again = confirm_payment(session, participation, 10.0, external_id="pix-1")
            self.assertEqual(first.id, again.id)
            self.assertEqual(contest_total_revenue(session, contest), 10.0)

    def test_pending_gateway_payment_is_marked_paid(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            participation = self._pending_ticket(session, contest)
            pending = Payment(
                participation=participation,
                amount=0.0,
                status="pending",
                external_id="pix-2",
            )
            session.add(pending)
            session.flush()

            paid_at = datetime(2025, 2, 1, 12, tzinfo=timezone.utc)
            payment = confirm_payment(
                session, participation, 10.0, external_id="pix-2", paid_at=paid_at
            )
            self.assertIs(payment, pending)
            self.assertEqual(payment.status, "paid")
            self.assertEqual(payment.amount, 10.0)
            self.assertEqual(len(participation.payments), 1)
            self.assertEqual(contest_total_revenue(session, contest), 10.0)

    def test_external_id_of_another_participation_is_rejected(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            first = self._pending_ticket(session, contest)
            other = self._pending_ticket(session, contest, user_id="user-2")
            confirm_payment(session, first, 10.0, external_id="pix-3")
            with self.assertRaises(ValueError):
                confirm_payment(session, other, 10.0, external_id="pix-3")
            self.assertEqual(other.status, "pending")


class DiscountWorkflowTests(WorkflowTestCase):
    def _discount(self, session, **overrides):
        values = dict(
            code="launch20",
            name="Launch",
            discount_type="percentage",
            discount_value=20,
            start_date=START,
            end_date=END,
        )
        values.update(overrides)
        return create_discount(session, **values)

    def _join(self, session, contest, code=None, user_id="user-1"):
        return create_participation(
            session,
            contest,
            user_id,
            range(1, 6),
            created_at=datetime(2025, 2, 1, tzinfo=timezone.utc),
            discount_code=code,
        )

    def test_participation_without_code_owes_full_price(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            participation = self._join(session, contest)
            self.assertEqual(participation.amount_due, 10.0)
            self.assertIsNone(participation.discount_id)

    def test_code_reduces_amount_due_and_counts_use(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            discount = self._discount(session)
            self.assertEqual(discount.code, "LAUNCH20")

            participation = self._join(session, contest, code=" Launch20 ")
            self.assertAlmostEqual(participation.amount_due, 8.0)
            self.assertEqual(participation.discount_id, discount.id)
            self.assertEqual(discount.current_uses, 1)

    def test_fixed_discount_never_goes_below_zero(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            self._discount(session, code="FREE", discount_type="fixed", discount_value=25)
            applied = apply_discount(
                session, contest, "free", datetime(2025, 3, 1, tzinfo=timezone.utc)
            )
            self.assertEqual(applied.original_price, 10.0)
            self.assertEqual(applied.final_price, 0.0)

    def test_used_up_code_is_rejected(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            self._discount(session, max_uses=1)
            self._join(session, contest, code="LAUNCH20")
            with self.assertRaises(ValueError):
                self._join(session, contest, code="LAUNCH20", user_id="user-2")

    def test_code_scoped_to_another_contest_is_rejected(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            other = self._active_contest(session, name="Other")
            self._discount(session, contest=other)
            with self.assertRaises(ValueError):
                self._join(session, contest, code="LAUNCH20")
            self.assertAlmostEqual(
                self._join(session, other, code="LAUNCH20").amount_due, 8.0
            )

    def test_invalid_codes(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            with self.assertRaises(ValueError):
                self._join(session, contest, code="NOPE")
            self._discount(session)
            with self.assertRaises(ValueError):
                self._discount(session, code="LAUNCH20")
            with self.assertRaises(ValueError):
                self._discount(session, code="BACKWARDS", start_date=END, end_date=START)
            self._discount(
                session,
                code="LATE",
                start_date=datetime(2025, 6, 1, tzinfo=timezone.utc),
            )
            with self.assertRaises(ValueError):
                self._join(session, contest, code="LATE")

    def test_unpriced_contest_cannot_be_discounted(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session, participation_value=None)
            self._discount(session)
            with self.assertRaises(ValueError):
                self._join(session, contest, code="LAUNCH20")


class DrawWorkflowTests(WorkflowTestCase):
    def test_publish_draw_generates_code(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            drawn_at = datetime(2025, 3, 2, 20, tzinfo=timezone.utc)
            draw = publish_draw(session, contest, [5, 1, 3], draw_date=drawn_at)
            self.assertEqual(draw.numbers, [1, 3, 5])
            self.assertTrue(is_valid_code(DRAW_CODE_PREFIX, draw.code))
            self.assertTrue(draw.code.startswith("DRW-20250302-"))

    def test_publish_draw_validates_input(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            with self.assertRaises(ValueError):
                publish_draw(session, contest, [])
            with self.assertRaises(ValueError):
                publish_draw(session, contest, [1, 1])
            with self.assertRaises(ValueError):
                publish_draw(session, contest, [0, 4])
            with self.assertRaises(ValueError):
                publish_draw(session, contest, [1, 2], code="bad-code")

            contest.status = "finished"
            with self.assertRaises(ValueError):
                publish_draw(session, contest, [1, 2])


class RankingWorkflowTests(WorkflowTestCase):
    def _seed(self, session):
        contest = self._active_contest(session)
        day = datetime(2025, 1, 2, tzinfo=timezone.utc)
        self._paid_ticket(session, contest, "Alice", [1, 2, 3, 4, 5], day)
        self._paid_ticket(
            session, contest, "Bob", [1, 2, 3, 4, 6], day + timedelta(hours=1)
        )
        self._paid_ticket(
            session, contest, "Carol", [7, 8, 9, 10, 11], day + timedelta(hours=2)
        )
        # never paid, so it stays out of the ranking
        create_participation(
            session,
            contest,
            "user-dave",
            [1, 2, 3, 4, 5],
            owner_name="Dave",
            created_at=day,
        )
        draw = publish_draw(
            session,
            contest,
            [1, 2, 3, 4, 5, 7],
            draw_date=datetime(2025, 1, 5, tzinfo=timezone.utc),
        )
        self._paid_ticket(
            session,
            contest,
            "Eve",
            [1, 2, 3, 4, 5],
            datetime(2025, 1, 6, tzinfo=timezone.utc),
        )
        return contest, draw

    def test_build_contest_ranking(self):
        with self.Session.begin() as session:
            contest, draw = self._seed(session)
            self.assertEqual(contest_total_revenue(session, contest), 40.0)

            ranking = build_contest_ranking(session, contest)
            names = [entry.owner_name for entry in ranking.entries]
            self.assertEqual(names, ["Alice", "Bob", "Carol"])
            self.assertEqual(
                [entry.category for entry in ranking.entries],
                [Category.TOP, Category.SECOND, Category.LOWEST],
            )
            self.assertAlmostEqual(ranking.entries[0].prize_amount, 40.0 * 0.65)
            self.assertAlmostEqual(ranking.entries[1].prize_amount, 40.0 * 0.10)
            self.assertAlmostEqual(ranking.entries[2].prize_amount, 40.0 * 0.07)
            self.assertEqual(ranking.summary.invalid_participations_count, 1)
            self.assertEqual(ranking.draws_used, (draw.id,))

    def test_ranking_as_of_unknown_draw_uses_full_history(self):
        with self.Session.begin() as session:
            contest, _ = self._seed(session)
            ranking = build_contest_ranking(
                session, contest, selected_draw_id=999, engine=RankingEngine(strict=True)
            )
            self.assertEqual(ranking.summary.top_winners_count, 1)

    def test_finish_contest_when_top_is_reached(self):
        with self.Session.begin() as session:
            contest, _ = self._seed(session)
            self.assertTrue(finish_contest_if_completed(session, contest))
            self.assertEqual(contest.status, "finished")
            self.assertFalse(finish_contest_if_completed(session, contest))

    def test_contest_without_top_stays_active(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            self._paid_ticket(
                session,
                contest,
                "Alice",
                [1, 2, 3, 4, 5],
                datetime(2025, 1, 2, tzinfo=timezone.utc),
            )
            publish_draw(
                session,
                contest,
                [1, 2],
                draw_date=datetime(2025, 1, 3, tzinfo=timezone.utc),
            )
            self.assertFalse(finish_contest_if_completed(session, contest))
            self.assertEqual(contest.status, "active")

    def test_revenue_by_day(self):
        with self.Session.begin() as session:
            contest, _ = self._seed(session)
            rows = revenue_by_day(session, contest)
            self.assertEqual([row.day for row in rows], [date(2025, 1, 2), date(2025, 1, 6)])
            self.assertEqual([row.participations for row in rows], [3, 1])
            self.assertEqual([row.revenue for row in rows], [30.0, 10.0])

    def test_report_before_any_draw_is_initial(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            report = contest_report(session, contest)
            self.assertEqual(report.report_type, "initial")
            self.assertIsNone(report.draw)
            self.assertEqual(report.total_participations, 0)
            self.assertEqual(report.total_revenue, 0.0)

    def test_report_totals_and_type(self):
        with self.Session.begin() as session:
            contest, draw = self._seed(session)
            second_ticket = create_participation(
                session,
                contest,
                "user-alice",
                [6, 7, 8, 9, 10],
                owner_name="Alice",
                created_at=datetime(2025, 1, 6, tzinfo=timezone.utc),
            )
            confirm_payment(session, second_ticket, 10.0, external_id="pix-Alice-2")
            report = contest_report(session, contest)
            self.assertEqual(report.report_type, "intermediate")
            self.assertEqual(report.draw, draw)
            self.assertEqual(report.total_participations, 5)
            self.assertEqual(report.total_participants, 4)
            self.assertEqual(report.total_revenue, 50.0)
            self.assertEqual(report.participations[-1].owner_name, "Alice")
            self.assertEqual(report.ranking.summary.top_winners_count, 1)
            self.assertEqual([row.participations for row in report.revenue_by_day], [3, 2])

            self.assertIsNone(contest_report(session, contest, draw_id=999).draw)

            finish_contest_if_completed(session, contest)
            self.assertEqual(contest_report(session, contest).report_type, "final")


class ContestPhaseTests(unittest.TestCase):
    def _contest(self, status="active") -> Contest:
        return Contest(
            name="Phase",
            min_number=1,
            max_number=20,
            numbers_per_participation=5,
            status=status,
            start_date=START,
            end_date=END,
        )

    def test_phases(self):
        during = datetime(2025, 6, 1, tzinfo=timezone.utc)
        self.assertEqual(contest_phase(self._contest("finished"), during).phase, "finished")
        draft = contest_phase(self._contest("draft"), during)
        self.assertEqual((draft.phase, draft.label), ("inactive", "Draft"))
        self.assertEqual(
            contest_phase(self._contest("cancelled"), during).label, "Cancelled"
        )
        self.assertEqual(
            contest_phase(self._contest(), START - timedelta(days=1)).phase, "upcoming"
        )
        self.assertEqual(
            contest_phase(self._contest(), END + timedelta(days=1)).phase,
            "awaiting_result",
        )
        ongoing = contest_phase(self._contest(), during, has_draws=True)
        self.assertEqual(ongoing.phase, "ongoing")
        self.assertTrue(ongoing.accepts_participations)
        self.assertEqual(contest_phase(self._contest(), during).phase, "accepting")

    def test_can_accept_participations(self):
        contest = self._contest()
        self.assertTrue(can_accept_participations(contest, datetime(2025, 6, 1)))
        self.assertFalse(can_accept_participations(contest, END + timedelta(seconds=1)))
        self.assertFalse(can_accept_participations(self._contest("draft"), START))


class ParticipationQueryTests(WorkflowTestCase):
    def test_list_by_user(self):
        with self.Session.begin() as session:
            contest = self._active_contest(session)
            first = create_participation(
                session,
                contest,
                "user-1",
                [1, 2, 3, 4, 5],
                created_at=datetime(2025, 2, 1, tzinfo=timezone.utc),
            )
            second = create_participation(
                session,
                contest,
                "user-1",
                [6, 7, 8, 9, 10],
                created_at=datetime(2025, 2, 2, tzinfo=timezone.utc),
            )
            create_participation(
                session,
                contest,
                "user-2",
                [6, 7, 8, 9, 10],
                created_at=datetime(2025, 2, 2, tzinfo=timezone.utc),
            )
            self.assertEqual(
                Participation.list_by_user(session, contest.id, "user-1"),
                [second, first],
            )


if __name__ == "__main__":
    unittest.main()
