"""HTTP shell exposing route gating and the cart."""
