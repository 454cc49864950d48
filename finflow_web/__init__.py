"""JSON web API over the finflow engine."""
