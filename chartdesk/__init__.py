"""chartdesk: multi-source candles and chart overlays for trading dashboards."""

__version__ = "0.1.0"
