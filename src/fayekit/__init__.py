"""fayekit - asyncio client for the Bayeux publish/subscribe protocol."""

__version__ = "0.1.0"
