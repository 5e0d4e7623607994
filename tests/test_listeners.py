"""
Snapshot listener lifecycle.
"""
from app.services.listeners import (
    ListenerGroup,
    Subscription,
    buyer_pending_orders_query,
    pending_payments_query,
    unread_notifications_query,
    watch_count,
    watch_query,
)


class TestSubscription:
    def test_receives_updates_until_closed(self, db):
        counts = []
        sub = watch_count(pending_payments_query(db), counts.append, "pending-payments")

        db.collection("payments").document("P1").set({"status": "pending"})
        db.collection("payments").document("P2").set({"status": "pending"})
        sub.close()
        db.collection("payments").document("P3").set({"status": "pending"})

        assert counts == [0, 1, 2]
        assert sub.closed is True

    def test_close_is_idempotent(self, db):
        sub = watch_query(pending_payments_query(db), lambda rows: None)
        sub.close()
        sub.close()
        assert db.watches == []

    def test_context_manager_closes(self, db):
        with watch_query(pending_payments_query(db), lambda rows: None) as sub:
            assert len(db.watches) == 1
        assert sub.closed
        assert db.watches == []

    def test_callback_errors_do_not_kill_the_listener(self, db):
        calls = []

        def flaky(rows):
            calls.append(len(rows))
            if len(calls) == 2:
                raise ValueError("render failed")

        sub = watch_query(pending_payments_query(db), flaky)
        db.collection("payments").document("P1").set({"status": "pending"})
        db.collection("payments").document("P2").set({"status": "pending"})
        sub.close()

        assert calls == [0, 1, 2]

    def test_unsubscribe_failure_is_logged_not_raised(self):
        class BrokenWatch:
            def unsubscribe(self):
                raise RuntimeError("stream already gone")

        sub = Subscription(BrokenWatch(), "broken")
        sub.close()
        assert sub.closed


class TestListenerGroup:
    def test_close_all(self, db):
        group = ListenerGroup()
        unread = []
        group.add(watch_count(unread_notifications_query(db, "U1"), unread.append, "badge"))
        group.add(watch_query(buyer_pending_orders_query(db, "U1"), lambda rows: None, "orders"))
        assert group.active == 2

        db.collection("users").document("U1").collection("notifications").add({"read": False})
        group.close_all()
        db.collection("users").document("U1").collection("notifications").add({"read": False})

        assert unread == [0, 1]
        assert group.active == 0
        assert db.watches == []

    def test_buyer_query_is_scoped(self, db):
        rows = []
        db.seed("orders/O1", {"buyerId": "U1", "status": "pending"})
        db.seed("orders/O2", {"buyerId": "U2", "status": "pending"})
        db.seed("orders/O3", {"buyerId": "U1", "status": "delivered"})

        with ListenerGroup() as group:
            group.add(watch_query(buyer_pending_orders_query(db, "U1"), rows.append))

        assert [row["id"] for row in rows[0]] == ["O1"]
        assert db.watches == []
