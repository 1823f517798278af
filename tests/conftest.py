import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Must be set before `app` is imported so the module-level engine uses it.
os.environ["DARTS_DATABASE_URI"] = "sqlite://"

import app as app_module  # noqa: E402


@pytest.fixture()
def client():
    flask_app = app_module.app
    flask_app.config["TESTING"] = True
    with flask_app.app_context():
        app_module.db.drop_all()
        app_module.db.create_all()
    with flask_app.test_client() as c:
        yield c
    with flask_app.app_context():
        app_module.db.session.remove()
        app_module.db.drop_all()
