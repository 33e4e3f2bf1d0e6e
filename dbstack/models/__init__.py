"""dbstack resource models and enumerations."""
