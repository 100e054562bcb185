"""homefiles - declarative home directory file deployment."""

__version__ = "0.4.0"
