"""Core decision engine: rule graphs, intake, scoring, guided testing."""
