import json

from flask import Flask

from flask_app.importer import IMPORTER_EXTENSION_KEY, init_importer


def build_app(enabled=False):
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY="test-secret",
        TESTING=True,
        IMPORTER_ENABLED=enabled,
        IMPORTER_MAX_ROWS=250,
    )

    init_importer(app)
    return app


def test_importer_disabled_registers_stub_cli():
    app = build_app(enabled=False)

    assert "importer" not in app.blueprints
    assert app.extensions[IMPORTER_EXTENSION_KEY]["enabled"] is False

    runner = app.test_cli_runner()
    result = runner.invoke(args=["importer"])
    assert result.exit_code != 0
    assert "Importer commands are unavailable" in result.output


def test_importer_enabled_registers_blueprint_and_cli():
    app = build_app(enabled=True)

    assert "importer" in app.blueprints
    assert "importer.importer_healthcheck" in app.view_functions
    assert "importer" in app.cli.commands

    client = app.test_client()
    response = client.get("/importer/health")
    assert response.status_code == 200
    payload = json.loads(response.data)
    assert payload == {"status": "ok", "enabled": True, "atomicRows": True, "maxRows": 250}


def test_init_importer_is_repeat_safe():
    app = build_app(enabled=True)
    init_importer(app)

    assert list(app.blueprints) == ["importer"]
    assert app.extensions[IMPORTER_EXTENSION_KEY]["enabled"] is True
