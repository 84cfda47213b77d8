# Overview: Flask API routes for affiliate operations; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import (
    api_errors,
    clear_session_cookie,
    json_body,
    require_affiliate,
    session_token,
    set_session_cookie,
)
from ..services import affiliate_service, auth_service, login_throttle_service, session_service
from ..validation import clean_digits


afiliado_bp = Blueprint("afiliado", __name__, url_prefix="/api/afiliado")


def _affiliate_dict(affiliate) -> dict:
    return {
        "id": affiliate.id,
        "full_name": affiliate.full_name,
        "cpf": affiliate.cpf,
        "email": affiliate.email,
        "sponsor_id": affiliate.sponsor_id,
        "role": "affiliate",
    }


@afiliado_bp.post("/registrar")
@api_errors("register affiliate")
def register_route():
    """
    Request body: {"cpf", "full_name", "email", "senha", "sponsor_cpf"?}
    """
    affiliate = affiliate_service.register_affiliate(json_body())
    return jsonify({
        "success": True,
        "message": "Afiliado cadastrado com sucesso!",
        "affiliate": _affiliate_dict(affiliate),
    }), 201


@afiliado_bp.post("/login")
@api_errors("login affiliate")
def login_route():
    """
    Log an affiliate in by CPF or email.

    Request body: {"cpf" | "email": "...", "senha": "..."}
    """
    data = json_body()
    email = str(data.get("email") or "").strip().lower()
    cpf = clean_digits(data.get("cpf"))
    senha = data.get("senha") or ""

    identifier = email or cpf
    if not identifier:
        return jsonify({"error": "CPF ou email é obrigatório"}), 400

    login_throttle_service.ensure_not_locked("affiliate", identifier)

    affiliate = auth_service.authenticate_affiliate(identifier, senha)
    if affiliate is None:
        login_throttle_service.record_failed_attempt(
            "affiliate",
            identifier,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"error": "Credenciais inválidas"}), 401

    login_throttle_service.record_successful_login(
        "affiliate",
        affiliate.id,
        identifier,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )

    _, token = session_service.create_session(session_service.AFFILIATE, affiliate.id)
    response = jsonify({"success": True, "affiliate": _affiliate_dict(affiliate)})
    return set_session_cookie(response, session_service.AFFILIATE, token)


@afiliado_bp.get("/me")
@require_affiliate
def me_route():
    return jsonify({"affiliate": _affiliate_dict(g.affiliate)})


@afiliado_bp.post("/logout")
@api_errors("logout affiliate")
def logout_route():
    session_service.delete_session(session_service.AFFILIATE, session_token(session_service.AFFILIATE))
    response = jsonify({"success": True})
    return clear_session_cookie(response, session_service.AFFILIATE)


@afiliado_bp.get("/saldo")
@require_affiliate
@api_errors("read affiliate balance")
def balance_route():
    return jsonify(affiliate_service.get_balance(g.affiliate))


@afiliado_bp.get("/extrato")
@require_affiliate
@api_errors("read affiliate statement")
def statement_route():
    """Query params: limit (optional)"""
    limit = request.args.get("limit", type=int)
    return jsonify({"transactions": affiliate_service.get_statement(g.affiliate, limit=limit)})


@afiliado_bp.get("/rede")
@require_affiliate
@api_errors("read affiliate network")
def network_route():
    return jsonify({"network": affiliate_service.get_network(g.affiliate)})
