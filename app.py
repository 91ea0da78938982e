# app.py
# WSGI entrypoint: gunicorn app:app, or `flask --app app run`
from core import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
