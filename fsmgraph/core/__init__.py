"""Graph model, store and execution simulator."""
