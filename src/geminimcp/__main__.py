from geminimcp.cli import app

app()
