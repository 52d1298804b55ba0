"""Tests for the leasedoc CLI."""

from unittest.mock import patch

from click.testing import CliRunner

from leasedoc_api.auth.invitation import get_invitation_service
from leasedoc_api.auth.session import decode_session_token
from leasedoc_api.cli import cli
from leasedoc_api.db.seed import DEMO_OWNER_EMAIL
from leasedoc_api.models import Lease, LeaseSigner, Profile


def test_seed_is_idempotent(db, session_factory):
    runner = CliRunner()

    with patch("leasedoc_api.cli.SessionLocal", session_factory):
        first = runner.invoke(cli, ["seed"])
        second = runner.invoke(cli, ["seed"])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert "already exists" in second.output
    assert db.query(Profile).filter(Profile.email == DEMO_OWNER_EMAIL).count() == 1
    assert db.query(Lease).count() == 1
    assert db.query(LeaseSigner).count() == 2


def test_session_token():
    result = CliRunner().invoke(cli, ["session-token", "profile-42"])

    assert result.exit_code == 0
    assert decode_session_token(result.output.strip()) == "profile-42"


def test_invite_token():
    result = CliRunner().invoke(cli, ["invite-token", "lease-42", "Jeanne@Example.com"])

    assert result.exit_code == 0
    claims = get_invitation_service().verify(result.output.strip())
    assert claims.lease_id == "lease-42"
    assert claims.email == "jeanne@example.com"


def test_serve_uses_configured_address():
    with patch("leasedoc_api.cli.uvicorn.run") as mock_run:
        result = CliRunner().invoke(cli, ["serve", "--port", "9001"])

    assert result.exit_code == 0, result.output
    args, kwargs = mock_run.call_args
    assert args == ("leasedoc_api.main:app",)
    assert kwargs["host"] == "0.0.0.0"
    assert kwargs["port"] == 9001
    assert kwargs["reload"] is False
