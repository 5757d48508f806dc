"""Domain layer: value types and errors shared by every component."""
