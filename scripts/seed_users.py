"""
Seeds demo accounts with linked employee records and prints a bearer token
for each, so the API can be exercised locally without an identity provider.

Usage: python -m scripts.seed_users
"""
from app.core.security import create_access_token
from app.database import SessionLocal, init_db
from app.models.employee import Employee
from app.models.user import User, UserRole

DEMO_ACCOUNTS = [
    ("employee@example.com", "Erin", "Employee", UserRole.EMPLOYEE),
    ("manager@example.com", "Morgan", "Manager", UserRole.MANAGER),
    ("hr@example.com", "Harper", "Reyes", UserRole.HR),
]


def create_account(db, email, first_name, last_name, role):
    # Check if user already exists to avoid unique constraint errors
    user = db.query(User).filter(User.email == email).first()
    if user:
        print(f"User {email} already exists. Skipping.")
    else:
        user = User(email=email, full_name=f"{first_name} {last_name}", role=role.value, is_active=True)
        db.add(user)
        db.flush()
        db.add(Employee(first_name=first_name, last_name=last_name, email=email, user_id=user.id))
        db.commit()
        db.refresh(user)
        print(f"Created {role.value} -> {email}")

    employee = db.query(Employee).filter(Employee.user_id == user.id).first()
    token = create_access_token(data={
        "sub": user.id,
        "role": user.role,
        "email": user.email,
        "employee_id": employee.id if employee else None,
    })
    print(f"  token: {token}")


def main():
    init_db()
    db = SessionLocal()
    try:
        for email, first_name, last_name, role in DEMO_ACCOUNTS:
            create_account(db, email, first_name, last_name, role)
    finally:
        db.close()


if __name__ == "__main__":
    main()
