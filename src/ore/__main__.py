from ore.cli import app

app()
