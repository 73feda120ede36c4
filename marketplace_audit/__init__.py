"""bol.com marketplace seller health platform"""

__version__ = "1.0.0"
