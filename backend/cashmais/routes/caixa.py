# Overview: Flask API routes for cashier operations; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import (
    api_errors,
    clear_session_cookie,
    json_body,
    require_cashier,
    session_token,
    set_session_cookie,
)
from ..services import auth_service, login_throttle_service, purchase_service, session_service
from ..validation import clean_digits


caixa_bp = Blueprint("caixa", __name__, url_prefix="/api/caixa")


@caixa_bp.post("/login")
@api_errors("login cashier")
def login_route():
    """
    Log a cashier in by CPF.

    Request body: {"cpf": "...", "password": "..."}
    Sets the cashier_session cookie.
    """
    data = json_body()
    cpf = clean_digits(data.get("cpf"))
    password = data.get("password") or ""

    if not cpf or not password:
        return jsonify({"error": "CPF e senha são obrigatórios"}), 400

    login_throttle_service.ensure_not_locked("cashier", cpf)

    cashier = auth_service.authenticate_cashier(cpf, password)
    if cashier is None:
        login_throttle_service.record_failed_attempt(
            "cashier",
            cpf,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"error": "CPF ou senha inválidos"}), 401

    login_throttle_service.record_successful_login(
        "cashier",
        cashier.id,
        cpf,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )

    _, token = session_service.create_session(session_service.CASHIER, cashier.id)
    response = jsonify({"success": True, "cashier": cashier.to_session_dict()})
    return set_session_cookie(response, session_service.CASHIER, token)


@caixa_bp.get("/me")
@require_cashier
def me_route():
    return jsonify({"cashier": g.cashier.to_session_dict()})


@caixa_bp.post("/logout")
@api_errors("logout cashier")
def logout_route():
    session_service.delete_session(session_service.CASHIER, session_token(session_service.CASHIER))
    response = jsonify({"success": True})
    return clear_session_cookie(response, session_service.CASHIER)


@caixa_bp.post("/compra")
@require_cashier
@api_errors("record purchase")
def purchase_route():
    """
    Record a purchase for a customer.

    Request body: {"customer_coupon": "CPF", "purchase_value": 123.45}
    """
    result = purchase_service.record_purchase(
        g.cashier,
        json_body(),
        ip_address=request.remote_addr,
    )
    return jsonify(result), 201
