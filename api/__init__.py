"""HTTP surface for the subscription manager."""
