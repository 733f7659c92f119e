"""FitStudio class booking service."""
