from __future__ import annotations

from unittest import mock

import pytest

from dealerdb.apps.accounts import models as account_models
from dealerdb.apps.audit import services as audit_services
from dealerdb.apps.audit.router import router


def _create_user(db) -> account_models.User:
    user = account_models.User(email="audit@example.com", full_name="Auditor", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_log_event_records_and_filters(db_session):
    user = _create_user(db_session)
    audit_services.log_event(
        db_session,
        user_id=user.id,
        entity_type="VehicleInvoice",
        entity_id=7,
        action="create",
        after={"invoice_no": "RINV-2425-0001"},
        metadata={"source": "test"},
    )
    audit_services.log_event(
        db_session, user_id=user.id, entity_type="Purchase", entity_id="3", action="delete"
    )
    db_session.commit()

    events = audit_services.list_audit_events(db_session, user_id=user.id, entity_type="VehicleInvoice")
    assert len(events) == 1
    assert events[0].entity_id == "7"
    assert events[0].after == {"invoice_no": "RINV-2425-0001"}
    assert events[0].metadata_json == {"source": "test"}
    assert len(audit_services.list_audit_events(db_session, user_id=user.id)) == 2


def test_log_event_is_best_effort_unless_critical(db_session):
    user = _create_user(db_session)
    with mock.patch.object(audit_services, "create_audit_event", side_effect=RuntimeError("db down")):
        assert (
            audit_services.log_event(
                db_session, user_id=user.id, entity_type="StockUnit", entity_id="CH1", action="reserve"
            )
            is None
        )
        with pytest.raises(RuntimeError):
            audit_services.log_event(
                db_session,
                user_id=user.id,
                entity_type="StockUnit",
                entity_id="CH1",
                action="reserve",
                critical=True,
            )


def test_audit_routes_registered():
    paths = {(route.path, tuple(sorted(route.methods))) for route in router.routes}
    assert ("/audit/events", ("GET",)) in paths
