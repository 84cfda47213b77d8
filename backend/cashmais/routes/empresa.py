# Overview: Flask API routes for company operations; parses input and returns JSON responses.

"""
Company API

Registration, login/logout, cashier management, cashback configuration
and reports. Everything except registration and login requires the
company_session cookie; every query is scoped to g.company.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import (
    api_errors,
    clear_session_cookie,
    json_body,
    require_company,
    session_token,
    set_session_cookie,
)
from ..services import (
    auth_service,
    cashier_service,
    company_service,
    login_throttle_service,
    reporting_service,
    session_service,
)
from ..time_utils import business_now, parse_iso_date, parse_month
from ..validation import clean_digits


empresa_bp = Blueprint("empresa", __name__, url_prefix="/api/empresa")


# =============================================================================
# REGISTRATION AND SESSION
# =============================================================================

@empresa_bp.post("/registrar")
@api_errors("register company")
def register_route():
    company_service.register_company(json_body())
    return jsonify({"success": True, "message": "Empresa cadastrada com sucesso!"}), 201


@empresa_bp.post("/login")
@api_errors("login company")
def login_route():
    """
    Log a company in by email or CNPJ.

    Request body: {"email": "...", "senha": "..."} or {"cnpj": "...", "senha": "..."}
    Sets the company_session cookie.
    """
    data = json_body()
    email = str(data.get("email") or "").strip()
    cnpj = clean_digits(data.get("cnpj"))
    senha = data.get("senha") or ""

    if not email and not cnpj:
        return jsonify({"error": "Email ou CNPJ é obrigatório"}), 400

    # CNPJ is keyed digits-only, so every mask of one CNPJ shares a throttle bucket
    identifier = email.lower() if email else cnpj
    invalid_message = "Email ou senha inválidos" if email else "CNPJ ou senha inválidos"

    login_throttle_service.ensure_not_locked("company", identifier)

    company = auth_service.authenticate_company(email=email or None, cnpj=cnpj or None, password=senha)
    if company is None:
        login_throttle_service.record_failed_attempt(
            "company",
            identifier,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"error": invalid_message}), 401

    login_throttle_service.record_successful_login(
        "company",
        company.id,
        identifier,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )

    _, token = session_service.create_session(session_service.COMPANY, company.id)
    response = jsonify({"success": True, "company": company.to_dict()})
    return set_session_cookie(response, session_service.COMPANY, token)


@empresa_bp.get("/me")
@require_company
def me_route():
    return jsonify({"company": g.company.to_dict()})


@empresa_bp.post("/logout")
@api_errors("logout company")
def logout_route():
    session_service.delete_session(session_service.COMPANY, session_token(session_service.COMPANY))
    response = jsonify({"success": True})
    return clear_session_cookie(response, session_service.COMPANY)


# =============================================================================
# CASHIERS
# =============================================================================

@empresa_bp.post("/caixas")
@require_company
@api_errors("create cashier")
def create_cashier_route():
    """
    Request body: {"name": "...", "cpf": "000.000.000-00", "password": "..."}
    """
    cashier = cashier_service.create_cashier(g.company.id, json_body())
    return jsonify({
        "success": True,
        "message": "Caixa cadastrado com sucesso!",
        "cashier": cashier.to_dict(),
    }), 201


@empresa_bp.get("/caixas")
@require_company
@api_errors("list cashiers")
def list_cashiers_route():
    cashiers = cashier_service.list_cashiers(g.company.id)
    return jsonify({"cashiers": [c.to_dict() for c in cashiers]})


@empresa_bp.put("/caixas/<int:cashier_id>")
@require_company
@api_errors("update cashier")
def update_cashier_route(cashier_id: int):
    cashier_service.update_cashier(g.company.id, cashier_id, json_body())
    return jsonify({"success": True, "message": "Caixa atualizado com sucesso!"})


@empresa_bp.patch("/caixas/<int:cashier_id>/toggle")
@require_company
@api_errors("toggle cashier")
def toggle_cashier_route(cashier_id: int):
    cashier = cashier_service.toggle_cashier(g.company.id, cashier_id)
    return jsonify({
        "success": True,
        "message": "Caixa ativado com sucesso!" if cashier.is_active else "Caixa bloqueado com sucesso!",
        "is_active": cashier.is_active,
    })


@empresa_bp.delete("/caixas/<int:cashier_id>")
@require_company
@api_errors("delete cashier")
def delete_cashier_route(cashier_id: int):
    cashier_service.delete_cashier(g.company.id, cashier_id)
    return jsonify({"success": True, "message": "Caixa excluído com sucesso!"})


# =============================================================================
# CASHBACK CONFIGURATION
# =============================================================================

@empresa_bp.put("/cashback")
@require_company
@api_errors("update cashback percentage")
def update_cashback_route():
    """Request body: {"cashback_percentage": 1..20}"""
    pct = company_service.set_cashback_percentage(g.company.id, json_body().get("cashback_percentage"))
    return jsonify({
        "success": True,
        "message": "Percentual de cashback atualizado com sucesso!",
        "cashback_percentage": float(pct),
    })


# =============================================================================
# REPORTS
# =============================================================================

@empresa_bp.get("/relatorio")
@require_company
@api_errors("build purchase report")
def report_route():
    """
    Latest purchases with cashier name.

    Query params: start, end (YYYY-MM-DD, inclusive, optional)
    """
    try:
        start = parse_iso_date(request.args.get("start"))
        end = parse_iso_date(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "Data inválida, use AAAA-MM-DD"}), 400

    purchases = reporting_service.get_recent_purchases(g.company.id, start=start, end=end)
    return jsonify({"purchases": purchases})


@empresa_bp.get("/estatisticas")
@require_company
@api_errors("build statistics")
def statistics_route():
    """
    All-time and monthly totals.

    Query params: month (YYYY-MM, optional, defaults to the current month)
    """
    try:
        month = parse_month(request.args.get("month"))
    except ValueError:
        return jsonify({"error": "Mês inválido, use AAAA-MM"}), 400
    if month is None:
        month = business_now(current_app.config["BUSINESS_TIMEZONE"]).date()

    stats = reporting_service.get_statistics(
        g.company.id,
        month,
        company_service.get_cashback_percentage(g.company.id),
    )
    return jsonify(stats)


@empresa_bp.get("/dados-mensais")
@require_company
@api_errors("build monthly data")
def monthly_data_route():
    today = business_now(current_app.config["BUSINESS_TIMEZONE"]).date()
    return jsonify({"monthly_data": reporting_service.get_monthly_data(g.company.id, today)})
