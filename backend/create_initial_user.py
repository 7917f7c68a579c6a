# backend/create_initial_user.py

import os
from datetime import timedelta

from dealerdb.database import SessionLocal
from dealerdb.apps.accounts import schemas as account_schemas
from dealerdb.apps.accounts import services as account_services
from dealerdb.apps.numbering import services as numbering_services
from dealerdb.security import create_access_token


def main() -> None:
    db = SessionLocal()
    try:
        email = os.getenv("INITIAL_USER_EMAIL", "admin@dealer.local")
        full_name = os.getenv("INITIAL_USER_NAME", "Showroom Admin")

        user = account_services.get_user_by_email(db, email)
        if user:
            print(f"[INFO] User already exists: id={user.id}, email={user.email}")
        else:
            user = account_services.create_user(
                db,
                payload=account_schemas.UserCreate(email=email, full_name=full_name, is_admin=True),
            )
            numbering_services.get_settings(db, user_id=user.id)
            db.commit()
            db.refresh(user)
            print("[OK] Created admin user:")
            print(f"  id:      {user.id}")
            print(f"  email:   {user.email}")

        token = create_access_token(data={"sub": user.id}, expires_delta=timedelta(days=1))
        print(f"  access token (24h): {token}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
