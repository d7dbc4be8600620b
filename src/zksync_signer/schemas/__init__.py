from .bases import CanonicalModel, FrozenModel, BaseSignature

__all__ = [
    "CanonicalModel",
    "FrozenModel",
    "BaseSignature",
]
