"""Command-line interface for calabaria-trafo."""
