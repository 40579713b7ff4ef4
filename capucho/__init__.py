"""capucho: build, version and publish app updates to a capucho server."""

__version__ = "0.4.0"
