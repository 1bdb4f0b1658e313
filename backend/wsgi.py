# backend/wsgi.py
from garment_erp import create_app

app = create_app()
