"""encheres-publiques.com connector."""

from .connector import EncheresPubliquesConnector

__all__ = ["EncheresPubliquesConnector"]
