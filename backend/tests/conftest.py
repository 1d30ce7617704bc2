import os, sys, pytest
# Ensure project root and backend directory are on path so 'app' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from flask_jwt_extended import create_access_token
from app import create_app, get_db
from app.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import app.models.table  # noqa: F401
import app.models.notification  # noqa: F401
import app.models.audit  # noqa: F401

TEST_CONFIG = {
    'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
    'JWT_SECRET_KEY': 'test-secret-key-that-is-long-enough-for-hs256',
    'TESTING': True,
}


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app(TEST_CONFIG)
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def fresh_schema(app_instance):
    """Every test starts from empty tables."""
    import app as app_pkg
    app_pkg.SessionLocal.remove()
    Base.metadata.drop_all(app_pkg.db_engine)
    Base.metadata.create_all(app_pkg.db_engine)
    yield
    app_pkg.SessionLocal.remove()


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def auth(app_instance):
    """Build Authorization headers for a user id (tokens minted directly, no login)."""
    def _headers(user_id: int, role: str = 'user'):
        with app_instance.app_context():
            token = create_access_token(identity=str(user_id), additional_claims={'role': role})
        return {'Authorization': f'Bearer {token}'}
    return _headers
