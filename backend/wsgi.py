# backend/wsgi.py
from ledgerpos import create_app

app = create_app()
