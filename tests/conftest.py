import pytest
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from app.database import Base, get_db
from app.main import app
from app.services.notification import NotificationDispatcher, get_notification_dispatcher
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def connection():
    """One outer transaction per test, rolled back at teardown."""
    connection = engine.connect()
    transaction = connection.begin()
    yield connection
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def db_session(connection):
    """Get a clean database session for each test function with rollback safety."""
    session = TestingSessionLocal(bind=connection)
    yield session
    session.close()


@pytest.fixture(scope="function")
def dispatcher(connection):
    """Notification delivery against the test transaction."""
    return NotificationDispatcher(session_factory=lambda: TestingSessionLocal(bind=connection))


@pytest.fixture(scope="function")
def create_account(db_session):
    """Factory for a user account with a linked employee record."""
    from app.models.employee import Employee
    from app.models.user import User

    def _create_account(email, role="employee", first_name="Test", last_name="User", with_employee=True):
        user = User(email=email, full_name=f"{first_name} {last_name}", role=role, is_active=True)
        db_session.add(user)
        db_session.flush()
        employee = None
        if with_employee:
            employee = Employee(first_name=first_name, last_name=last_name, email=email, user_id=user.id)
            db_session.add(employee)
        db_session.commit()
        return user, employee
    return _create_account


@pytest.fixture(scope="function")
def admin_account(create_account):
    return create_account("admin@alphacorp.com", role="admin", first_name="Ada", last_name="Admin")


@pytest.fixture(scope="function")
def employee_account(create_account):
    return create_account("jane.doe@alphacorp.com", role="employee", first_name="Jane", last_name="Doe")


@pytest.fixture(scope="function")
def other_employee_account(create_account):
    return create_account("john.roe@alphacorp.com", role="employee", first_name="John", last_name="Roe")


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for an account."""
    from app.core.security import create_access_token

    def _get_token(user, employee=None):
        claims = {"sub": user.id, "role": user.role, "email": user.email}
        if employee is not None:
            claims["employee_id"] = employee.id
        return create_access_token(data=claims)
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(account):
        user, employee = account
        return {"Authorization": f"Bearer {get_token(user, employee)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session, dispatcher):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
