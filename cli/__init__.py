"""CLI package for interacting with the sensor telemetry aggregator.

The Typer application lives in ``cli.app``; it is not re-exported here so
that ``cli.app`` keeps resolving to the module, which tests patch.
"""

__all__: list[str] = []
