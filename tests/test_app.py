import importlib
import json
import warnings

from conftest import TestConfig
from minishare import create_app
from minishare.errors import InvariantViolation, NotFoundError


def make_config(tmp_path, **overrides):
    attrs = {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'app.db'}",
        "UPLOAD_DIR": str(tmp_path / "uploads"),
    }
    attrs.update(overrides)
    return type("AppTestConfig", (TestConfig,), attrs)


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_auto_create_seeds_admin(tmp_path):
    app = create_app(make_config(tmp_path, AUTO_CREATE_DB=True, SEED_ADMIN=True))
    client = app.test_client()

    resp = client.post("/auth/login", json={"username": app.config["ADMIN_USERNAME"], "password": app.config["ADMIN_PASSWORD"]})

    assert resp.status_code == 200
    assert resp.get_json()["user"]["is_admin"] is True


def test_json_logging(tmp_path, capsys):
    create_app(make_config(tmp_path, LOG_JSON=True, LOG_LEVEL="INFO"))

    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    record = json.loads(lines[-1])
    assert record["message"].startswith("MiniShare app created")
    assert record["level"] == "INFO"
    assert record["logger"] == "minishare"


def test_json_formatter_import_is_not_deprecated():
    from pythonjsonlogger import jsonlogger

    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        importlib.reload(jsonlogger)

def test_app_errors_render_as_json(tmp_path):
    app = create_app(make_config(tmp_path))

    @app.get("/boom/missing")
    def missing():
        raise NotFoundError("Nothing here", details={"id": 3})

    @app.get("/boom/invariant")
    def invariant():
        raise InvariantViolation("image owned twice")

    @app.get("/boom/crash")
    def crash():
        raise RuntimeError("kaboom")

    client = app.test_client()

    missing_resp = client.get("/boom/missing")
    assert missing_resp.status_code == 404
    assert missing_resp.get_json() == {"error": {"code": "NOT_FOUND", "message": "Nothing here", "details": {"id": 3}}}

    invariant_resp = client.get("/boom/invariant")
    assert invariant_resp.status_code == 500
    assert "owned twice" not in invariant_resp.get_data(as_text=True)

    crash_resp = client.get("/boom/crash")
    assert crash_resp.status_code == 500
    assert crash_resp.get_json()["error"]["code"] == "internal_server_error"

    assert client.post("/health").status_code == 405
