# db.py
import os
os.environ.setdefault('FLASK_ENV', 'development')

from sqlalchemy import inspect

from howisyourday import repository
from howisyourday.main import create_app
from howisyourday.models.user import db

app = create_app()

# Create all tables
with app.app_context():
    db.create_all()
    print("Tables created successfully!")

    # Show what tables were created
    tables = inspect(db.engine).get_table_names()
    print(f"Created tables: {', '.join(tables)}")

    # Seed the admin account from ADMIN_EMAIL / ADMIN_PASSWORD
    email = app.config.get('ADMIN_EMAIL')
    password = app.config.get('ADMIN_PASSWORD')
    if email and password:
        if repository.ensure_admin_user(email, password):
            print(f"Admin user {email} created")
        else:
            print(f"Admin user {email} already exists")
    else:
        print("ADMIN_EMAIL / ADMIN_PASSWORD not set, skipping admin seed")
