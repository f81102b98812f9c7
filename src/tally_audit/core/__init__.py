"""Core reconciliation logic: poll window, voter graph, stake tally."""
