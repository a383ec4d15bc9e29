from __future__ import annotations


class PanelwatchError(Exception):
    pass


class ConfigError(PanelwatchError):
    pass


class ChainSourceError(PanelwatchError):
    """
    Height or log query against the RPC node failed.
    Transient by contract: the poll loop logs it and retries next tick.
    """


class DecodeError(PanelwatchError, ValueError):
    """A single log could not be decoded; the caller skips it."""
