"""HTTP blueprints for the onboarding functions."""
