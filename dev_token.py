import argparse

from app.core.config import get_settings
from app.core.security import Identity, create_identity_token
from app.domain.enums import IdentityRole


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Mint a signed identity token for local development."
    )
    parser.add_argument("user_id")
    parser.add_argument(
        "--role",
        choices=[role.value for role in IdentityRole],
        default=IdentityRole.CUSTOMER.value,
    )
    parser.add_argument("--ttl-minutes", type=int, default=None)
    args = parser.parse_args()

    settings = get_settings()
    token, expires_at = create_identity_token(
        identity=Identity(user_id=args.user_id, role=IdentityRole(args.role)),
        secret=settings.auth_token_secret,
        ttl_minutes=args.ttl_minutes or settings.auth_token_ttl_minutes,
    )
    print(token)
    print(f"# expires at {expires_at.isoformat()}")


if __name__ == "__main__":
    main()
