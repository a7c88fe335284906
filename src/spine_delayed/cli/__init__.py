"""spine-delayed command line interface (typer)."""
