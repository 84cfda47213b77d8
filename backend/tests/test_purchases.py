# Overview: Pytest coverage for purchase recording and commission distribution.

"""
Purchase Recording Tests

Covers the cashier purchase endpoint end to end:
- cashback calculation and the confirmation messages
- customer resolution by CPF (plain user, affiliate, cashier of another company)
- self-redeem blocking and its audit event
- coupon creation, reuse and reactivation
- atomicity of the purchase transaction
- commission outbox delivery, failure and retry
"""

from decimal import Decimal

import pytest

from cashmais.models import (
    AffiliateBalance,
    CommissionCredit,
    CommissionOutbox,
    CustomerCoupon,
    IdentityKind,
    OutboxStatus,
    Purchase,
    SecurityEvent,
)
from cashmais.services import commission_service, purchase_service


def _buy(cashier_client, cpf, value):
    return cashier_client.post('/api/caixa/compra', json={
        'customer_coupon': cpf,
        'purchase_value': value,
    })


def _balance(db_session, identity):
    return db_session.query(AffiliateBalance).filter_by(identity_id=identity.id).one()


# =============================================================================
# CASHBACK AND MESSAGES
# =============================================================================

class TestRecordPurchase:

    def test_plain_user_purchase(self, cashier_client, db_session, plain_user, company):
        resp = _buy(cashier_client, '999.888.777-66', 100)

        assert resp.status_code == 201
        body = resp.get_json()
        assert body['success'] is True
        assert body['cashback_generated'] == 5.0
        assert body['customer_name'] == 'João Silva'
        assert body['message'] == 'Compra registrada! Cashback de R$ 5,00 creditado para João Silva'

        purchase = db_session.get(Purchase, body['purchase_id'])
        assert purchase.company_id == company.id
        assert purchase.customer_coupon == '99988877766'
        assert purchase.cashier_cpf == '11122233344'
        assert purchase.purchase_value == Decimal('100.00')
        assert purchase.cashback_percentage == Decimal('5.00')

    def test_affiliate_purchase_message(self, cashier_client, affiliate):
        resp = _buy(cashier_client, affiliate.cpf, '100.00')

        assert resp.status_code == 201
        assert resp.get_json()['message'] == (
            'Compra registrada! Comissão de R$ 0,35 será creditada para Ana Souza '
            '(cashback de R$ 5,00 gerado)'
        )

    def test_cashback_is_exact(self, cashier_client, db_session, company, plain_user):
        company.cashback_config.cashback_percentage = Decimal('7.50')
        db_session.commit()

        resp = _buy(cashier_client, plain_user.cpf, '33.33')

        assert resp.status_code == 201
        purchase = db_session.get(Purchase, resp.get_json()['purchase_id'])
        # 33.33 * 7.5 / 100, no rounding
        assert purchase.cashback_generated == Decimal('2.49975')

    def test_stored_cashback_matches_stored_value(self, cashier_client, db_session, plain_user):
        resp = _buy(cashier_client, plain_user.cpf, '10.500')

        assert resp.status_code == 201
        purchase = db_session.get(Purchase, resp.get_json()['purchase_id'])
        assert purchase.purchase_value == Decimal('10.50')
        assert purchase.cashback_generated == purchase.purchase_value * purchase.cashback_percentage / 100

    def test_percentage_is_frozen_on_the_purchase(self, cashier_client, db_session, company, plain_user):
        resp = _buy(cashier_client, plain_user.cpf, 200)
        purchase_id = resp.get_json()['purchase_id']

        company.cashback_config.cashback_percentage = Decimal('10.00')
        db_session.commit()

        purchase = db_session.get(Purchase, purchase_id)
        assert purchase.cashback_percentage == Decimal('5.00')
        assert purchase.cashback_generated == Decimal('10')

    def test_cashier_of_another_company_is_a_customer(self, cashier_client, other_cashier):
        resp = _buy(cashier_client, other_cashier.cpf, 50)

        assert resp.status_code == 201
        assert resp.get_json()['customer_name'] == 'Beatriz Caixa'

    def test_requires_cashier_session(self, client, plain_user):
        resp = client.post('/api/caixa/compra', json={'customer_coupon': plain_user.cpf, 'purchase_value': 10})
        assert resp.status_code == 401

    def test_blocked_cashier_is_logged_out(self, cashier_client, db_session, cashier, plain_user):
        cashier.is_active = False
        db_session.commit()

        resp = _buy(cashier_client, plain_user.cpf, 10)
        assert resp.status_code == 401


# =============================================================================
# REJECTED PURCHASES
# =============================================================================

class TestRejectedPurchases:

    def test_own_cpf_is_blocked_and_audited(self, cashier_client, db_session, cashier):
        resp = _buy(cashier_client, '111.222.333-44', 100)

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Você não pode usar seu próprio CPF'
        assert db_session.query(Purchase).count() == 0

        events = db_session.query(SecurityEvent).filter_by(event_type='SELF_REDEEM_BLOCKED').all()
        assert len(events) == 1
        assert events[0].actor_id == cashier.id
        assert events[0].identifier == cashier.cpf

    def test_unknown_cpf(self, cashier_client, db_session):
        resp = _buy(cashier_client, '000.111.222-33', 100)

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'CPF não encontrado ou cliente inativo'
        assert db_session.query(CustomerCoupon).count() == 0

    def test_inactive_customer(self, cashier_client, db_session, plain_user):
        plain_user.is_active = False
        db_session.commit()

        resp = _buy(cashier_client, plain_user.cpf, 100)
        assert resp.status_code == 400

    @pytest.mark.parametrize('value', [0, -5, 'abc', None, True])
    def test_invalid_purchase_value(self, cashier_client, db_session, plain_user, value):
        resp = _buy(cashier_client, plain_user.cpf, value)

        assert resp.status_code == 400
        assert db_session.query(Purchase).count() == 0

    def test_missing_customer_coupon(self, cashier_client):
        resp = cashier_client.post('/api/caixa/compra', json={'purchase_value': 10})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'CPF do cliente é obrigatório'

    def test_short_cpf(self, cashier_client):
        resp = _buy(cashier_client, '123', 10)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'CPF deve ter 11 dígitos'

    def test_sub_centavo_value_rejected(self, cashier_client, db_session, plain_user):
        resp = _buy(cashier_client, plain_user.cpf, 10.005)

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'purchase_value deve ter no máximo 2 casas decimais'
        assert db_session.query(Purchase).count() == 0


# =============================================================================
# COUPONS AND ATOMICITY
# =============================================================================

class TestCoupons:

    def test_coupon_created_then_reused(self, cashier_client, db_session, plain_user):
        _buy(cashier_client, plain_user.cpf, 10)
        _buy(cashier_client, plain_user.cpf, 20)

        coupons = db_session.query(CustomerCoupon).all()
        assert len(coupons) == 1
        assert coupons[0].coupon_code == plain_user.cpf
        assert coupons[0].identity_id == plain_user.id
        assert coupons[0].total_usage_count == 2
        assert coupons[0].last_used_at is not None

        purchase_coupon_ids = {p.customer_coupon_id for p in db_session.query(Purchase).all()}
        assert purchase_coupon_ids == {coupons[0].id}

    def test_inactive_coupon_is_reactivated(self, cashier_client, db_session, plain_user):
        _buy(cashier_client, plain_user.cpf, 10)
        coupon = db_session.query(CustomerCoupon).one()
        coupon.is_active = False
        db_session.commit()

        resp = _buy(cashier_client, plain_user.cpf, 10)

        assert resp.status_code == 201
        db_session.refresh(coupon)
        assert coupon.is_active is True
        assert coupon.total_usage_count == 2

    def test_failure_inside_transaction_writes_nothing(
        self, cashier_client, db_session, affiliate, monkeypatch
    ):
        def _broken_outbox(**kwargs):
            raise RuntimeError("outbox unavailable")

        monkeypatch.setattr(purchase_service, 'CommissionOutbox', _broken_outbox)

        resp = _buy(cashier_client, affiliate.cpf, 100)

        assert resp.status_code == 500
        assert resp.get_json()['error'] == 'Erro interno do servidor'
        assert db_session.query(Purchase).count() == 0
        assert db_session.query(CustomerCoupon).count() == 0


# =============================================================================
# COMMISSIONS
# =============================================================================

class TestCommissions:

    def test_plain_user_purchase_has_no_outbox_entry(self, cashier_client, db_session, plain_user):
        _buy(cashier_client, plain_user.cpf, 100)
        assert db_session.query(CommissionOutbox).count() == 0
        assert db_session.query(CommissionCredit).count() == 0

    def test_affiliate_purchase_credits_buyer_and_sponsor(
        self, cashier_client, db_session, affiliate, sponsor
    ):
        resp = _buy(cashier_client, affiliate.cpf, 100)
        purchase_id = resp.get_json()['purchase_id']

        entry = db_session.query(CommissionOutbox).filter_by(purchase_id=purchase_id).one()
        assert entry.status == OutboxStatus.DONE
        assert entry.attempts == 1
        assert entry.buyer_kind == IdentityKind.AFFILIATE
        assert entry.cashback_amount == Decimal('5')

        credits = {
            c.level: c for c in db_session.query(CommissionCredit).filter_by(purchase_id=purchase_id)
        }
        assert credits[0].identity_id == affiliate.id
        assert credits[0].amount == Decimal('0.35')
        assert credits[1].identity_id == sponsor.id
        assert credits[1].amount == Decimal('0.35')

        assert _balance(db_session, affiliate).available_balance == Decimal('0.35')
        assert _balance(db_session, affiliate).total_earnings == Decimal('0.35')
        assert _balance(db_session, sponsor).available_balance == Decimal('0.35')

    def test_inactive_sponsor_is_skipped(self, cashier_client, db_session, affiliate, sponsor):
        sponsor.is_active = False
        db_session.commit()

        resp = _buy(cashier_client, affiliate.cpf, 100)
        purchase_id = resp.get_json()['purchase_id']

        levels = [c.level for c in db_session.query(CommissionCredit).filter_by(purchase_id=purchase_id)]
        assert levels == [0]

    def test_distribution_failure_keeps_purchase_and_retries(
        self, app, cashier_client, db_session, affiliate, sponsor, monkeypatch
    ):
        def _fail(*args, **kwargs):
            raise RuntimeError("ledger offline")

        monkeypatch.setattr(commission_service, 'distribute_network_commissions', _fail)

        resp = _buy(cashier_client, affiliate.cpf, 100)

        assert resp.status_code == 201
        purchase_id = resp.get_json()['purchase_id']
        assert db_session.get(Purchase, purchase_id) is not None

        entry = db_session.query(CommissionOutbox).filter_by(purchase_id=purchase_id).one()
        assert entry.status == OutboxStatus.FAILED
        assert entry.attempts == 1
        assert 'ledger offline' in entry.last_error
        assert _balance(db_session, affiliate).available_balance == Decimal('0')

        monkeypatch.undo()
        result = commission_service.process_pending()

        assert result == {'processed': 1, 'succeeded': 1, 'failed': 0}
        db_session.refresh(entry)
        assert entry.status == OutboxStatus.DONE
        assert entry.attempts == 2
        assert entry.last_error is None
        assert _balance(db_session, affiliate).available_balance == Decimal('0.35')
        assert _balance(db_session, sponsor).available_balance == Decimal('0.35')

    def test_entries_past_max_attempts_are_skipped(self, cashier_client, db_session, affiliate, monkeypatch):
        def _fail(*args, **kwargs):
            raise RuntimeError("down")

        monkeypatch.setattr(commission_service, 'distribute_network_commissions', _fail)
        _buy(cashier_client, affiliate.cpf, 100)

        result = commission_service.process_pending(max_attempts=1)
        assert result['processed'] == 0

    def test_distribution_is_idempotent(self, cashier_client, db_session, affiliate, sponsor):
        resp = _buy(cashier_client, affiliate.cpf, 100)
        purchase_id = resp.get_json()['purchase_id']
        entry = db_session.query(CommissionOutbox).filter_by(purchase_id=purchase_id).one()

        assert commission_service.process_outbox_entry(entry.id) is True

        credits = commission_service.distribute_network_commissions(
            purchase_id, affiliate.id, IdentityKind.AFFILIATE, Decimal('5')
        )
        db_session.commit()

        assert len(credits) == 2
        assert db_session.query(CommissionCredit).filter_by(purchase_id=purchase_id).count() == 2
        assert _balance(db_session, affiliate).available_balance == Decimal('0.35')

    def test_preview_matches_distributed_amount(self, app):
        cashback = Decimal('12.345678')
        rates = commission_service.CommissionRates.from_config()

        assert commission_service.preview_buyer_commission(cashback) == rates.buyer_share(cashback)
        # 12.345678 * 0.7 * 0.1 = 0.86419746
        assert rates.buyer_share(cashback) == Decimal('0.8642')

    def test_promoted_plain_user_earns_commission(self, cashier_client, client, db_session, plain_user, sponsor):
        _buy(cashier_client, plain_user.cpf, 100)
        assert db_session.query(CommissionOutbox).count() == 0

        resp = client.post('/api/afiliado/registrar', json={
            'cpf': plain_user.cpf,
            'full_name': 'João Silva',
            'email': 'joao@example.com',
            'senha': 'segredo123',
            'sponsor_cpf': sponsor.cpf,
        })
        assert resp.status_code == 201
        assert resp.get_json()['affiliate']['id'] == plain_user.id

        resp = _buy(cashier_client, plain_user.cpf, 100)
        assert 'Comissão de R$ 0,35' in resp.get_json()['message']
        assert db_session.query(CustomerCoupon).one().total_usage_count == 2
        assert db_session.query(CommissionOutbox).count() == 1
