from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings

DEFAULT_SCOPE = "tx-editor"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_settings().csrf_secret, salt="finance-csrf")


def generate_csrf_token(scope: str = DEFAULT_SCOPE) -> str:
    return _serializer().dumps({"scope": scope})


def validate_csrf_token(
    token: str, scope: str = DEFAULT_SCOPE, max_age_hours: int = 2
) -> bool:
    if not token:
        return False
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadSignature:
        return False
    return isinstance(data, dict) and data.get("scope") == scope
