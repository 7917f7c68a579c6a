import os
import sys
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
sys.path.append(str(Path(__file__).resolve().parents[2]))

from dealerdb import main  # noqa: E402


def test_public_error_message_is_generic_in_production():
    exc = RuntimeError("relation stock_units does not exist")
    assert main._public_error_message(exc, env="production") == "An unexpected error occurred. Please try again."
    assert main._public_error_message(exc, env="development") == "relation stock_units does not exist"
    assert main._public_error_message(ValueError(), env="development") == "ValueError"


def test_allowed_origins_from_env(monkeypatch):
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://dealer.example.com, ,https://admin.example.com")
    assert main._allowed_origins() == ["https://dealer.example.com", "https://admin.example.com"]
    monkeypatch.delenv("CORS_ALLOWED_ORIGINS")
    assert "http://localhost:5173" in main._allowed_origins()


def test_all_routers_are_mounted():
    paths = {route.path for route in main.app.routes}
    expected = {
        "/health",
        "/accounts/me",
        "/audit/events",
        "/settings",
        "/numbering/preview",
        "/customers",
        "/stock",
        "/stock/check",
        "/purchases",
        "/purchases/{purchase_id}",
        "/purchase-returns",
        "/vehicle-invoices",
        "/vehicle-invoices/preview-number",
        "/vehicle-invoices/{invoice_id}",
        "/sales-returns",
        "/workshop/parts",
        "/job-cards",
        "/job-cards/{job_card_id}",
        "/reports/consistency",
        "/reports/sales-register",
    }
    assert expected <= paths
