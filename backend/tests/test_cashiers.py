# Overview: Pytest coverage for company cashier management and tenant isolation.

"""
Cashier Management Tests

A company manages its own cashiers only: every lookup is scoped to the
logged-in company, so another company's cashier behaves as if it did not
exist (404).
"""

from datetime import date

from cashmais.models import Cashier, CashierSession, Identity, IdentityKind
from cashmais.services import cashier_service


def _new_cashier(**overrides):
    payload = {'name': 'Fernanda Lima', 'cpf': '444.555.666-77', 'password': 'caixa123'}
    payload.update(overrides)
    return payload


class TestCreateCashier:

    def test_create(self, company_client, db_session, company):
        resp = company_client.post('/api/empresa/caixas', json=_new_cashier())

        assert resp.status_code == 201
        body = resp.get_json()
        assert body['message'] == 'Caixa cadastrado com sucesso!'
        assert body['cashier']['cpf'] == '44455566677'
        assert body['cashier']['is_active'] is True
        assert 'password_hash' not in body['cashier']

        cashier = db_session.get(Cashier, body['cashier']['id'])
        assert cashier.company_id == company.id
        assert cashier.identity.kind == IdentityKind.CASHIER

    def test_created_cashier_can_login(self, company_client, client):
        company_client.post('/api/empresa/caixas', json=_new_cashier())

        resp = client.post('/api/caixa/login', json={'cpf': '44455566677', 'password': 'caixa123'})
        assert resp.status_code == 200

    def test_duplicate_cpf_same_company(self, company_client, cashier):
        resp = company_client.post('/api/empresa/caixas', json=_new_cashier(cpf=cashier.cpf))

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'CPF já cadastrado para esta empresa'

    def test_cpf_of_other_company_cashier(self, company_client, other_cashier, db_session):
        resp = company_client.post('/api/empresa/caixas', json=_new_cashier(cpf=other_cashier.cpf))

        assert resp.status_code == 409
        assert resp.get_json()['error'] == 'CPF já vinculado a outra empresa'
        assert db_session.query(Cashier).count() == 1

    def test_reuses_cashier_identity(self, db_session, company, cashier):
        db_session.delete(cashier)
        db_session.commit()

        cashier_service.create_cashier(company.id, _new_cashier(cpf='111.222.333-44'))

        assert db_session.query(Identity).filter_by(kind=IdentityKind.CASHIER, cpf='11122233344').count() == 1

    def test_short_password(self, company_client):
        resp = company_client.post('/api/empresa/caixas', json=_new_cashier(password='123'))
        assert resp.status_code == 400

    def test_requires_company_session(self, client):
        resp = client.post('/api/empresa/caixas', json=_new_cashier())
        assert resp.status_code == 401


class TestListAndUpdate:

    def test_list_only_own_cashiers(self, company_client, cashier, other_cashier):
        resp = company_client.get('/api/empresa/caixas')

        assert resp.status_code == 200
        ids = [c['id'] for c in resp.get_json()['cashiers']]
        assert ids == [cashier.id]

    def test_update_name_and_password(self, company_client, client, db_session, cashier):
        resp = company_client.put(f'/api/empresa/caixas/{cashier.id}', json={
            'name': 'Carlos Souza',
            'password': 'novasenha',
        })

        assert resp.status_code == 200
        assert resp.get_json()['message'] == 'Caixa atualizado com sucesso!'
        db_session.refresh(cashier)
        assert cashier.name == 'Carlos Souza'

        resp = client.post('/api/caixa/login', json={'cpf': cashier.cpf, 'password': 'novasenha'})
        assert resp.status_code == 200

    def test_blank_password_keeps_current_one(self, company_client, client, db_session, cashier, password):
        resp = company_client.put(f'/api/empresa/caixas/{cashier.id}', json={'name': 'Carlos Souza', 'password': ''})

        assert resp.status_code == 200
        db_session.refresh(cashier)
        assert cashier.name == 'Carlos Souza'

        resp = client.post('/api/caixa/login', json={'cpf': cashier.cpf, 'password': password})
        assert resp.status_code == 200

    def test_update_other_company_cashier(self, company_client, other_cashier):
        resp = company_client.put(f'/api/empresa/caixas/{other_cashier.id}', json={'name': 'Hack'})

        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'Caixa não encontrado'


class TestToggleAndDelete:

    def test_toggle_blocks_and_logs_out(self, company_client, cashier_client, db_session, cashier):
        assert db_session.query(CashierSession).filter_by(cashier_id=cashier.id).count() == 1

        resp = company_client.patch(f'/api/empresa/caixas/{cashier.id}/toggle')

        assert resp.status_code == 200
        assert resp.get_json()['message'] == 'Caixa bloqueado com sucesso!'
        assert resp.get_json()['is_active'] is False
        assert db_session.query(CashierSession).filter_by(cashier_id=cashier.id).count() == 0
        assert cashier_client.get('/api/caixa/me').status_code == 401

    def test_toggle_twice_reactivates(self, company_client, cashier):
        company_client.patch(f'/api/empresa/caixas/{cashier.id}/toggle')
        resp = company_client.patch(f'/api/empresa/caixas/{cashier.id}/toggle')

        assert resp.get_json()['message'] == 'Caixa ativado com sucesso!'
        assert resp.get_json()['is_active'] is True

    def test_toggle_other_company_cashier(self, company_client, other_cashier):
        resp = company_client.patch(f'/api/empresa/caixas/{other_cashier.id}/toggle')
        assert resp.status_code == 404

    def test_delete(self, company_client, db_session, cashier):
        cashier_id = cashier.id
        resp = company_client.delete(f'/api/empresa/caixas/{cashier_id}')

        assert resp.status_code == 200
        assert resp.get_json()['message'] == 'Caixa excluído com sucesso!'
        assert db_session.get(Cashier, cashier_id) is None

    def test_delete_with_purchases_is_refused(self, company_client, db_session, company, cashier, make_purchase):
        make_purchase(company, cashier, '99988877766', '10.00', '5.00', date(2024, 3, 5))

        resp = company_client.delete(f'/api/empresa/caixas/{cashier.id}')

        assert resp.status_code == 400
        assert 'Bloqueie' in resp.get_json()['error']
        assert db_session.get(Cashier, cashier.id) is not None

    def test_delete_other_company_cashier(self, company_client, db_session, other_cashier):
        resp = company_client.delete(f'/api/empresa/caixas/{other_cashier.id}')

        assert resp.status_code == 404
        assert db_session.get(Cashier, other_cashier.id) is not None
