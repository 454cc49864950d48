"""Personal-finance computation engine: loans, recurring commitments and the monthly waterfall."""
