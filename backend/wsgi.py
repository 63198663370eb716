# Overview: WSGI entrypoint (FLASK_APP=wsgi.py, or gunicorn wsgi:app).

from negocios_pos import create_app

app = create_app()
