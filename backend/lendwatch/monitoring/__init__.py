"""Finding model and delivery."""
