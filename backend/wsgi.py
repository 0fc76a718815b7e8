# backend/wsgi.py
from aymur import create_app

app = create_app()
