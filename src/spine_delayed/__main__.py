from spine_delayed.cli.app import app

app(prog_name="spine-delayed")
