from __future__ import annotations

import argparse
import os
import sys
import uuid

# Allow running from the repo root or from backend/.
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))
sys.path.append(os.getcwd())

from learnhub.db.session import SessionLocal
from learnhub.models.tenant import MembershipRole
from learnhub.services.tenants import ensure_membership, ensure_tenant


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a tenant and grant a user access to it")
    parser.add_argument("--slug", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--user-id", required=True, help="identity provider user id (token subject)")
    parser.add_argument("--email", required=True)
    parser.add_argument("--full-name", default=None)
    parser.add_argument("--role", choices=[r.value for r in MembershipRole], default=MembershipRole.admin.value)
    args = parser.parse_args()

    try:
        user_id = uuid.UUID(args.user_id)
    except ValueError:
        parser.error("--user-id must be a UUID")

    with SessionLocal() as db:
        tenant = ensure_tenant(db, slug=args.slug, name=args.name)
        ensure_membership(
            db,
            tenant=tenant,
            user_id=user_id,
            email=args.email,
            full_name=args.full_name,
            role=MembershipRole(args.role),
        )
        db.commit()
        print(f"tenant={tenant.slug} id={tenant.id} user={user_id} role={args.role}")


if __name__ == "__main__":
    main()
