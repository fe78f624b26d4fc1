# tests/conftest.py
from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from PIL import Image
from sqlalchemy.pool import StaticPool

from agrimarket.database import db
from agrimarket.models.enums import ProductStatus, Role, UserStatus
from agrimarket.services.auth.credentials import PasswordHasher, issue_token
from agrimarket.tables import Farmer, Product, User
from app import create_app

PASSWORD = "secret123"


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SQLALCHEMY_ENGINE_OPTIONS": {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        },
        "JWT_SECRET_KEY": "test-secret-key-with-enough-length-for-hs256",
        "BCRYPT_LOG_ROUNDS": 4,
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "APP_ENV": "testing",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# ------------------------------------------------------------
# factories (return ids; instances would detach after the context)
# ------------------------------------------------------------
@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role=Role.CUSTOMER, email=None, full_name="Test User",
              password=PASSWORD, status=UserStatus.ACTIVE, **extra):
        counter["n"] += 1
        with app.app_context():
            user = User(
                full_name=full_name,
                email=email or f"user{counter['n']}@example.com",
                password=PasswordHasher.hash(password),
                role=role,
                status=status,
                **extra,
            )
            db.session.add(user)
            db.session.commit()
            return user.user_id

    return _make


@pytest.fixture
def make_farmer(app, make_user):
    def _make(verified=True, farm_name="Green Acres", **user_kwargs):
        user_kwargs.setdefault("full_name", "Farmer Joe")
        user_id = make_user(role=Role.FARMER, **user_kwargs)
        with app.app_context():
            farmer = Farmer(
                user_id=user_id,
                farm_name=farm_name,
                barangay="Poblacion",
                product_categories="Vegetables",
                verified_status=verified,
            )
            db.session.add(farmer)
            db.session.commit()
            return user_id, farmer.farmer_id

    return _make


@pytest.fixture
def make_product(app):
    def _make(farmer_id, product_name="Tomato", category="Vegetables",
              price="25.50", quantity=5, status=ProductStatus.AVAILABLE, **extra):
        with app.app_context():
            product = Product(
                farmer_id=farmer_id,
                product_name=product_name,
                category=category,
                price=Decimal(price),
                quantity=quantity,
                status=status,
                **extra,
            )
            db.session.add(product)
            db.session.commit()
            return product.product_id

    return _make


@pytest.fixture
def auth(app):
    def _headers(user_id):
        with app.app_context():
            user = db.session.get(User, user_id)
            return {"Authorization": f"Bearer {issue_token(user)}"}

    return _headers


@pytest.fixture
def fetch(app):
    """Read a row in a fresh context: fetch(Product, 1).quantity"""

    def _fetch(model, pk):
        with app.app_context():
            obj = db.session.get(model, pk)
            if obj is not None:
                db.session.expunge(obj)
            return obj

    return _fetch


@pytest.fixture
def png_bytes():
    buf = BytesIO()
    Image.new("RGB", (4, 4), color=(0, 128, 0)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def today():
    return date.today()
