"""rabbithole: dependency health check CLI for npm projects."""

__version__ = "1.0.0"
