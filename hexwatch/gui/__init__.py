"""Qt widgets: map, stats strip, detail drawer."""
