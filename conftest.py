# conftest.py

import os

import pytest

# Set testing environment BEFORE importing app so app.py picks TestingConfig
os.environ["FLASK_ENV"] = "testing"

# Now import app and other modules after environment is set
from app import app as flask_app  # noqa: E402
from flask_app.models import Grade, SchoolClass, db  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application bound to the in-memory database"""
    flask_app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "ENABLE_FILE_LOGGING": False,
            "ENABLE_CONSOLE_LOGGING": False,
            "LOG_LEVEL": "WARNING",
            "IMPORTER_ENABLED": True,
            "IMPORTER_ATOMIC_ROWS": True,
            "IMPORTER_MAX_ROWS": 5000,
            "IMPORTER_LOOKUP_SUGGESTION_CUTOFF": 80,
        }
    )

    from flask_app.utils.logging_config import setup_logging

    setup_logging(flask_app)

    with flask_app.app_context():
        # Drop any existing tables to ensure clean state
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


@pytest.fixture
def first_grade(app):
    """Grade "1st Grade" with classes 1A and 1B"""
    grade = Grade(name="1st Grade", level=1)
    db.session.add(grade)
    db.session.flush()
    db.session.add_all(
        [
            SchoolClass(name="1A", grade_id=grade.id),
            SchoolClass(name="1B", grade_id=grade.id),
        ]
    )
    db.session.commit()
    return grade


@pytest.fixture
def second_grade(app):
    """Grade "2nd Grade" with class 2A"""
    grade = Grade(name="2nd Grade", level=2)
    db.session.add(grade)
    db.session.flush()
    db.session.add(SchoolClass(name="2A", grade_id=grade.id))
    db.session.commit()
    return grade


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers and ensure testing environment"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers"""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.slow)
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
