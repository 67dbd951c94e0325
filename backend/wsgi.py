# Overview: WSGI entrypoint for production servers and `flask --app wsgi`.

from retail_assist import create_app

app = create_app()
