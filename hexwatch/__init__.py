"""hexwatch — live H3 cell heatmap viewer for a relay event API."""

__version__ = "0.3.0"
