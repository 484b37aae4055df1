"""Armory backend: enchantment resolution for the game-server CMS."""
__version__ = "1.0.0"
