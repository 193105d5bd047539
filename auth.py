import argparse
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy import select

from config import get_settings


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.auth_secret, salt="access-token")


def issue_access_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id})


def read_access_token(token: str, max_age_secs: Optional[int] = None) -> Optional[int]:
    """Return the user id carried by ``token`` or None when it is not valid."""
    max_age = max_age_secs or get_settings().token_max_age_secs
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        return None
    except BadSignature:
        return None
    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int) or user_id <= 0:
        return None
    return user_id


def main() -> None:
    from database import session_scope
    from models import User

    parser = argparse.ArgumentParser(description="Create a user and print a token")
    parser.add_argument("email")
    parser.add_argument("--name", default=None)
    args = parser.parse_args()

    with session_scope() as session:
        user = session.scalar(select(User).where(User.email == args.email))
        if user is None:
            user = User(email=args.email, full_name=args.name)
            session.add(user)
            session.flush()
        user_id = user.id
    print(issue_access_token(user_id))


if __name__ == "__main__":
    main()
