import argparse

from sqlalchemy.orm import Session

from db import SessionLocal
from dragonhub.core.settings import settings
from dragonhub.models.school import SCHOOL_ROLES, School, SchoolMembership
from dragonhub.models.user import User
from dragonhub.services.auth import create_user, hash_password


def upsert_user(
    email: str,
    first: str,
    last: str,
    password: str | None,
    make_admin: bool,
    join_code: str | None = None,
    role: str = "member",
    school_year: str | None = None,
) -> tuple[bool, int]:
    s: Session = SessionLocal()
    try:
        user = s.query(User).filter(User.Email == email).first()
        created = False
        if not user:
            if not password:
                raise ValueError("Password required to create a new user")
            user = create_user(s, first, last, email, password)
            if not user:
                raise ValueError("Email already exists or failed to create user")
            created = True
        else:
            if first:
                user.FirstName = first
            if last:
                user.LastName = last
            if password:
                user.HashedPassword = hash_password(password)
        user.IsActive = True
        if make_admin:
            user.IsAdmin = True

        if join_code:
            school = s.query(School).filter(School.JoinCode == join_code).first()
            if school is None:
                raise ValueError(f"No school with join code {join_code!r}")
            year = school_year or settings.CURRENT_SCHOOL_YEAR
            membership = (
                s.query(SchoolMembership)
                .filter(
                    SchoolMembership.SchoolID == school.SchoolID,
                    SchoolMembership.UserID == user.UserID,
                    SchoolMembership.SchoolYear == year,
                )
                .first()
            )
            if membership is None:
                membership = SchoolMembership(
                    SchoolID=school.SchoolID, UserID=user.UserID, SchoolYear=year
                )
                s.add(membership)
            membership.Role = role
            membership.Status = "approved"
        s.commit()
        s.refresh(user)
        return created, int(user.UserID)
    finally:
        s.close()


def main():
    parser = argparse.ArgumentParser(
        description="Create or update a user and, optionally, their school membership."
    )
    parser.add_argument("--email", required=True)
    parser.add_argument("--first", default="")
    parser.add_argument("--last", default="")
    parser.add_argument("--password", default=None)
    parser.add_argument("--admin", action="store_true", help="Grant site admin (board everywhere)")
    parser.add_argument("--school", default=None, help="School join code to enroll the user in")
    parser.add_argument("--role", default="member", choices=SCHOOL_ROLES)
    parser.add_argument("--year", default=None, help="School year, defaults to the current one")
    args = parser.parse_args()

    created, user_id = upsert_user(
        email=args.email.strip().lower(),
        first=args.first.strip(),
        last=args.last.strip(),
        password=args.password,
        make_admin=bool(args.admin),
        join_code=args.school,
        role=args.role,
        school_year=args.year,
    )
    status = "created" if created else "updated"
    print(
        f"User {status}: id={user_id} email={args.email} admin={args.admin} "
        f"school={args.school or '-'} role={args.role if args.school else '-'}"
    )


if __name__ == "__main__":
    main()
