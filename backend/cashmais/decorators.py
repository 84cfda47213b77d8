# Overview: Request decorators and session cookie helpers for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .extensions import db
from .services import session_service
from .services.login_throttle_service import ThrottledError
from .services.session_service import SessionKind
from .validation import ConflictError, NotFoundError, ValidationError


LOCAL_HOST_MARKERS = ("localhost", "127.0.0.1")


def _is_local_request() -> bool:
    origin = request.headers.get("Origin") or request.host or ""
    return any(marker in origin for marker in LOCAL_HOST_MARKERS)


def _cookie_flags() -> dict:
    """
    Local development (http://localhost): SameSite=Lax, not secure.
    Deployed frontends on another site: SameSite=None; Secure.
    """
    if _is_local_request():
        return {"secure": False, "samesite": "Lax"}
    return {"secure": True, "samesite": "None"}


def set_session_cookie(response, kind: SessionKind, token: str):
    response.set_cookie(
        kind.cookie_name,
        token,
        max_age=int(kind.lifetime().total_seconds()),
        path="/",
        httponly=True,
        **_cookie_flags(),
    )
    return response


def clear_session_cookie(response, kind: SessionKind):
    response.delete_cookie(kind.cookie_name, path="/", httponly=True, **_cookie_flags())
    return response


def session_token(kind: SessionKind) -> str | None:
    return request.cookies.get(kind.cookie_name)


def _require_session(kind: SessionKind, attr: str):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            owner = session_service.validate_session(kind, session_token(kind))
            if owner is None:
                return jsonify({"error": "Não autorizado"}), 401

            setattr(g, attr, owner)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_company(f):
    """Require a valid company_session cookie. Sets g.company."""
    return _require_session(session_service.COMPANY, "company")(f)


def require_cashier(f):
    """Require a valid cashier_session cookie. Sets g.cashier."""
    return _require_session(session_service.CASHIER, "cashier")(f)


def require_affiliate(f):
    """Require a valid affiliate_session cookie. Sets g.affiliate (an AFFILIATE Identity)."""
    return _require_session(session_service.AFFILIATE, "affiliate")(f)


def api_errors(action: str):
    """
    Map service exceptions to JSON error responses.

    - ThrottledError -> 429
    - ConflictError  -> 409
    - NotFoundError  -> 404
    - ValueError (ValidationError, PasswordValidationError, ReportError) -> 400
    - anything else  -> logged, rolled back, 500 without internals
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except ThrottledError as e:
                return jsonify({
                    "error": str(e),
                    "locked": True,
                    "retry_after_seconds": e.seconds_remaining,
                }), 429
            except ConflictError as e:
                return jsonify({"error": str(e)}), 409
            except NotFoundError as e:
                return jsonify({"error": str(e)}), 404
            except ValueError as e:
                return jsonify({"error": str(e)}), 400
            except Exception:
                db.session.rollback()
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Erro interno do servidor"}), 500

        return decorated_function
    return decorator


def json_body() -> dict:
    """Request JSON as a dict; empty/missing body is {}, any other JSON type is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("JSON inválido")
    return data
