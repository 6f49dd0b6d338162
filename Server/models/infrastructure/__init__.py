"""
LabQueue Server - Infrastructure Models Package

This package contains dataclass models for infrastructure components
such as transition effects.
"""

from models.infrastructure.effect import Effect, EffectKind, NoticeKind

__all__ = [
    'Effect',
    'EffectKind',
    'NoticeKind',
]
