"""
Pytest fixtures for CashMais backend tests.

Provides test database setup, company/cashier/customer fixtures, and test client.
"""

from datetime import date, time
from decimal import Decimal

import pytest

from cashmais import create_app
from cashmais.extensions import db
from cashmais.models import (
    AffiliateBalance,
    Cashier,
    Company,
    CompanyCashbackConfig,
    CustomerCoupon,
    Identity,
    IdentityKind,
    Purchase,
)
from cashmais.services.auth_service import hash_password


PASSWORD = "segredo123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # bcrypt minimum cost keeps the suite fast
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        db.session.remove()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client (fresh cookie jar per test)."""
    return app.test_client()


def _make_company(db_session, *, nome: str, cnpj: str, email: str, pct: str = "5.00") -> Company:
    company = Company(
        razao_social=f"{nome} LTDA",
        nome_fantasia=nome,
        cnpj=cnpj,
        email=email,
        telefone="11999990000",
        responsavel="Maria Oliveira",
        senha_hash=hash_password(PASSWORD),
        is_active=True,
        identity=Identity(kind=IdentityKind.COMPANY, full_name="Maria Oliveira"),
    )
    company.cashback_config = CompanyCashbackConfig(cashback_percentage=Decimal(pct))
    db_session.add(company)
    db_session.commit()
    return company


def _make_cashier(db_session, company: Company, *, name: str, cpf: str) -> Cashier:
    cashier = Cashier(
        company_id=company.id,
        identity=Identity(kind=IdentityKind.CASHIER, cpf=cpf, full_name=name),
        name=name,
        cpf=cpf,
        password_hash=hash_password(PASSWORD),
        is_active=True,
    )
    db_session.add(cashier)
    db_session.commit()
    return cashier


@pytest.fixture(scope='function')
def company(db_session):
    """Company A with the default 5% cashback."""
    return _make_company(db_session, nome="Pão Quente", cnpj="12345678000190", email="contato@paoquente.com.br")


@pytest.fixture(scope='function')
def other_company(db_session):
    """Company B (second tenant)."""
    return _make_company(db_session, nome="Mercado Bom Preço", cnpj="98765432000110", email="gerencia@bompreco.com.br")


@pytest.fixture(scope='function')
def cashier(db_session, company):
    """Active cashier of Company A."""
    return _make_cashier(db_session, company, name="Carlos Caixa", cpf="11122233344")


@pytest.fixture(scope='function')
def other_cashier(db_session, other_company):
    """Active cashier of Company B."""
    return _make_cashier(db_session, other_company, name="Beatriz Caixa", cpf="22233344455")


@pytest.fixture(scope='function')
def plain_user(db_session):
    """Customer outside the affiliate network."""
    user = Identity(kind=IdentityKind.PLAIN_USER, cpf="99988877766", full_name="João Silva", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


def _make_affiliate(db_session, *, name: str, cpf: str, email: str, sponsor: Identity | None = None) -> Identity:
    affiliate = Identity(
        kind=IdentityKind.AFFILIATE,
        cpf=cpf,
        full_name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        sponsor=sponsor,
        is_active=True,
    )
    affiliate.balance = AffiliateBalance(available_balance=Decimal("0"), total_earnings=Decimal("0"))
    db_session.add(affiliate)
    db_session.commit()
    return affiliate


@pytest.fixture(scope='function')
def sponsor(db_session):
    """Affiliate at the top of the network."""
    return _make_affiliate(db_session, name="Paula Patrocinadora", cpf="33344455566", email="paula@example.com")


@pytest.fixture(scope='function')
def affiliate(db_session, sponsor):
    """Affiliate sponsored by `sponsor`."""
    return _make_affiliate(
        db_session, name="Ana Souza", cpf="55566677788", email="ana@example.com", sponsor=sponsor
    )


@pytest.fixture(scope='function')
def make_purchase(db_session):
    """
    Insert a purchase row directly (bypassing the recorder).

    Usage: make_purchase(company, cashier, "99988877766", "100.00", "5.00", date(2024, 3, 5))
    """
    def _make(company, cashier, cpf, value, pct, purchase_date: date, identity_id=None):
        coupon = db_session.query(CustomerCoupon).filter_by(coupon_code=cpf).first()
        if coupon is None:
            if identity_id is None:
                identity = Identity(kind=IdentityKind.PLAIN_USER, cpf=cpf, full_name=f"Cliente {cpf}")
                db_session.add(identity)
                db_session.flush()
                identity_id = identity.id
            coupon = CustomerCoupon(coupon_code=cpf, cpf=cpf, identity_id=identity_id, total_usage_count=0)
            db_session.add(coupon)
            db_session.flush()

        value = Decimal(value)
        pct = Decimal(pct)
        purchase = Purchase(
            company_id=company.id,
            cashier_id=cashier.id,
            customer_coupon_id=coupon.id,
            customer_coupon=cpf,
            cashier_cpf=cashier.cpf,
            purchase_value=value,
            cashback_percentage=pct,
            cashback_generated=value * pct / Decimal(100),
            purchase_date=purchase_date,
            purchase_time=time(12, 0, 0),
        )
        db_session.add(purchase)
        db_session.commit()
        return purchase

    return _make


@pytest.fixture(scope='function')
def password():
    """Password of every company, cashier and affiliate fixture."""
    return PASSWORD


@pytest.fixture(scope='function')
def company_client(app, company):
    """Test client holding a company_session cookie for Company A."""
    client = app.test_client()
    resp = client.post('/api/empresa/login', json={'email': company.email, 'senha': PASSWORD})
    assert resp.status_code == 200
    return client


@pytest.fixture(scope='function')
def cashier_client(app, cashier):
    """Test client holding a cashier_session cookie for Company A's cashier."""
    client = app.test_client()
    resp = client.post('/api/caixa/login', json={'cpf': cashier.cpf, 'password': PASSWORD})
    assert resp.status_code == 200
    return client


@pytest.fixture(scope='function')
def affiliate_client(app, affiliate):
    """Test client holding an affiliate_session cookie."""
    client = app.test_client()
    resp = client.post('/api/afiliado/login', json={'cpf': affiliate.cpf, 'senha': PASSWORD})
    assert resp.status_code == 200
    return client
