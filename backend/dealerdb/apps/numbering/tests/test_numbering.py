from __future__ import annotations

from datetime import date

import pytest

from dealerdb.apps.accounts import models as account_models
from dealerdb.apps.numbering import fiscal
from dealerdb.apps.numbering import models as numbering_models
from dealerdb.apps.numbering import schemas as numbering_schemas
from dealerdb.apps.numbering import services as numbering_services
from dealerdb.apps.numbering.router import router

DocumentType = numbering_models.DocumentType


def _create_user(db, email: str = "dealer@example.com") -> account_models.User:
    user = account_models.User(email=email, full_name="Dealer", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_financial_year_starts_in_april():
    assert fiscal.financial_year(date(2024, 4, 1)) == "24-25"
    assert fiscal.financial_year(date(2025, 3, 31)) == "24-25"
    assert fiscal.financial_year(date(2024, 3, 31)) == "23-24"
    assert fiscal.financial_year("2099-12-01") == "99-00"


def test_financial_year_bounds_and_fallback():
    assert fiscal.financial_year_bounds("24-25") == (date(2024, 4, 1), date(2025, 3, 31))
    current = fiscal.financial_year_bounds(None)
    assert fiscal.financial_year_bounds("garbage") == current
    assert fiscal.financial_year_bounds("24-26") == current
    assert current[0] <= date.today() <= current[1]


def test_upcoming_financial_years():
    assert fiscal.upcoming_financial_years(2024, 3) == ["24-25", "25-26", "26-27"]


def test_format_number_pads_sequence():
    assert numbering_services.format_number("RINV-", "24-25", 7) == "RINV-2425-0007"
    assert numbering_services.format_number("JC-", "25-26", 12345) == "JC-2526-12345"


def test_preview_does_not_persist(db_session):
    user = _create_user(db_session)
    on = date(2024, 6, 1)

    first = numbering_services.preview_number(
        db_session, user_id=user.id, document_type=DocumentType.REGISTERED, on_date=on
    )
    second = numbering_services.preview_number(
        db_session, user_id=user.id, document_type=DocumentType.REGISTERED, on_date=on
    )

    assert first.number == second.number == "RINV-2425-0001"
    assert numbering_services.list_counters(db_session, user_id=user.id) == []
    assert db_session.get(numbering_models.DealerSettings, user.id) is None


def test_preview_skips_taken_numbers_like_issue(db_session):
    user = _create_user(db_session)
    on = date(2024, 5, 5)
    taken = {"PR-2425-0001", "PR-2425-0002"}

    preview = numbering_services.preview_number(
        db_session,
        user_id=user.id,
        document_type=DocumentType.PURCHASE_RETURN,
        on_date=on,
        is_taken=lambda n: n in taken,
    )
    issued = numbering_services.issue_number(
        db_session,
        user_id=user.id,
        document_type=DocumentType.PURCHASE_RETURN,
        on_date=on,
        is_taken=lambda n: n in taken,
    )

    assert preview.number == issued == "PR-2425-0003"
    assert preview.sequence == 3


def test_issued_numbers_strictly_increase_per_scope(db_session):
    user = _create_user(db_session)
    on = date(2024, 6, 1)

    issued = [
        numbering_services.issue_number(
            db_session, user_id=user.id, document_type=DocumentType.NON_REGISTERED, on_date=on
        )
        for _ in range(3)
    ]
    assert issued == ["NRINV-2425-0001", "NRINV-2425-0002", "NRINV-2425-0003"]

    # Other series and other years count independently.
    assert (
        numbering_services.issue_number(
            db_session, user_id=user.id, document_type=DocumentType.REGISTERED, on_date=on
        )
        == "RINV-2425-0001"
    )
    assert (
        numbering_services.issue_number(
            db_session, user_id=user.id, document_type=DocumentType.NON_REGISTERED, on_date=date(2025, 4, 1)
        )
        == "NRINV-2526-0001"
    )

    preview = numbering_services.preview_number(
        db_session, user_id=user.id, document_type=DocumentType.NON_REGISTERED, on_date=on
    )
    assert preview.sequence == 4


def test_issue_number_skips_numbers_already_taken(db_session):
    user = _create_user(db_session)
    taken = {"PR-2425-0001", "PR-2425-0002"}

    number = numbering_services.issue_number(
        db_session,
        user_id=user.id,
        document_type=DocumentType.PURCHASE_RETURN,
        on_date=date(2024, 5, 5),
        is_taken=lambda n: n in taken,
    )

    assert number == "PR-2425-0003"
    counter = numbering_services.list_counters(db_session, user_id=user.id)[0]
    assert counter.last_sequence == 3


def test_rolled_back_issue_leaves_counter_untouched(db_session):
    user = _create_user(db_session)
    on = date(2024, 5, 5)

    numbering_services.issue_number(
        db_session, user_id=user.id, document_type=DocumentType.SALES_RETURN, on_date=on
    )
    db_session.commit()
    numbering_services.issue_number(
        db_session, user_id=user.id, document_type=DocumentType.SALES_RETURN, on_date=on
    )
    db_session.rollback()

    assert (
        numbering_services.issue_number(
            db_session, user_id=user.id, document_type=DocumentType.SALES_RETURN, on_date=on
        )
        == "SR-2425-0002"
    )


def test_custom_prefix_is_used(db_session):
    user = _create_user(db_session)
    numbering_services.update_settings(
        db_session,
        user_id=user.id,
        payload=numbering_schemas.DealerSettingsUpdate(registered_invoice_prefix=" GST/ "),
    )

    number = numbering_services.issue_number(
        db_session, user_id=user.id, document_type=DocumentType.REGISTERED, on_date=date(2024, 8, 1)
    )

    assert number == "GST/2425-0001"


def test_settings_are_created_with_defaults(db_session):
    user = _create_user(db_session)

    settings = numbering_services.get_settings(db_session, user_id=user.id)

    assert settings.company_name == "Showroom Pro"
    for document_type, prefix in numbering_models.DEFAULT_PREFIXES.items():
        assert settings.prefix_for(document_type) == prefix


def test_financial_year_listing():
    listing = numbering_services.financial_years(start_year=2023, count=2)
    assert [y.financial_year for y in listing.years] == ["23-24", "24-25"]
    assert listing.years[1].start == date(2024, 4, 1)


def test_numbering_routes_registered():
    paths = {(route.path, tuple(sorted(route.methods))) for route in router.routes}
    assert ("/settings", ("GET",)) in paths
    assert ("/settings", ("PUT",)) in paths
    assert ("/numbering/preview", ("GET",)) in paths
    assert ("/numbering/financial-years", ("GET",)) in paths
