"""Version information for the loading states coordinator"""

__version__ = "0.1.0"
