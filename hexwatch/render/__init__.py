"""Count → colour → overlay pipeline."""
